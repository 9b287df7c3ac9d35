"""Core domain model: tasks, workflow progress, checklists and the queue document."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Workflow states, in their only legal order
STATE_SEQUENCE = (
    "UNDERSTANDING",
    "DESIGNING",
    "IMPLEMENTING",
    "TESTING",
    "REVIEWING",
    "READY_TO_COMMIT",
)
INITIAL_STATE = STATE_SEQUENCE[0]
FINAL_STATE = STATE_SEQUENCE[-1]

# Task lifecycle tags
STATUS_QUEUED = "queued"
STATUS_ACTIVE = "active"
STATUS_DONE = "done"
STATUS_ARCHIVED = "archived"
VALID_STATUSES = {STATUS_QUEUED, STATUS_ACTIVE, STATUS_DONE, STATUS_ARCHIVED}

PRIORITIES = ("critical", "high", "medium", "low")
DEFAULT_PRIORITY = "medium"

EVIDENCE_TYPES = {
    "file_created",
    "file_modified",
    "command_run",
    "test_passed",
    "validation_passed",
    "manual",
    "other",
}


def _require_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _require_list(data: Any, what: str) -> List[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"{what} must be a list, got {type(data).__name__}")
    return data


@dataclass
class HistoryEntry:
    """One exited workflow state."""

    state: str
    entered_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        data = _require_dict(data, "stateHistory entry")
        if "state" not in data:
            raise ValueError("stateHistory entry is missing 'state'")
        return cls(state=str(data["state"]), entered_at=str(data.get("enteredAt") or ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state, "enteredAt": self.entered_at}


@dataclass
class WorkflowProgress:
    """Workflow position of a task: live state plus exited states."""

    current_state: str = INITIAL_STATE
    state_entered_at: Optional[str] = None
    state_history: List[HistoryEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowProgress":
        data = _require_dict(data, "workflow")
        if not data.get("currentState"):
            raise ValueError("workflow is missing 'currentState'")
        history = _require_list(data.get("stateHistory"), "workflow.stateHistory")
        return cls(
            current_state=str(data["currentState"]),
            state_entered_at=data.get("stateEnteredAt"),
            state_history=[HistoryEntry.from_dict(entry) for entry in history],
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"currentState": self.current_state}
        if self.state_entered_at is not None:
            result["stateEnteredAt"] = self.state_entered_at
        result["stateHistory"] = [entry.to_dict() for entry in self.state_history]
        return result

    def history_states(self) -> List[str]:
        return [entry.state for entry in self.state_history]


@dataclass
class Evidence:
    """Structured proof attached to a completed checklist item."""

    type: str
    description: str
    timestamp: str = ""
    files: List[str] = field(default_factory=list)
    command: str = ""
    output: str = ""
    test_results: Optional[Dict[str, int]] = None
    manual_notes: str = ""
    verified: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        data = _require_dict(data, "evidence")
        return cls(
            type=str(data.get("type", "")),
            description=str(data.get("description", "")),
            timestamp=str(data.get("timestamp", "")),
            files=[str(f) for f in _require_list(data.get("files"), "evidence.files")],
            command=str(data.get("command", "") or ""),
            output=str(data.get("output", "") or ""),
            test_results=data.get("testResults"),
            manual_notes=str(data.get("manualNotes", "") or ""),
            verified=bool(data.get("verified", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": self.type,
            "description": self.description,
            "timestamp": self.timestamp,
        }
        if self.files:
            result["files"] = list(self.files)
        if self.command:
            result["command"] = self.command
        if self.output:
            result["output"] = self.output
        if self.test_results is not None:
            result["testResults"] = dict(self.test_results)
        if self.manual_notes:
            result["manualNotes"] = self.manual_notes
        if self.verified:
            result["verified"] = True
        return result


@dataclass
class ChecklistItem:
    """A single checklist entry for one workflow state."""

    id: str
    title: str
    description: str
    required: bool = False
    priority: str = DEFAULT_PRIORITY
    completed: bool = False
    completed_at: Optional[str] = None
    notes: str = ""
    evidence: Optional[Evidence] = None
    evidence_required: bool = False
    source: str = "template"  # template | pattern
    pattern_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChecklistItem":
        data = _require_dict(data, "checklist item")
        if not data.get("id"):
            raise ValueError("checklist item is missing 'id'")
        evidence = data.get("evidence")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or data.get("description") or data["id"]),
            description=str(data.get("description", "")),
            required=bool(data.get("required", False)),
            priority=str(data.get("priority", DEFAULT_PRIORITY)),
            completed=bool(data.get("completed", False)),
            completed_at=data.get("completedAt"),
            notes=str(data.get("notes", "") or ""),
            evidence=Evidence.from_dict(evidence) if evidence else None,
            evidence_required=bool(data.get("evidenceRequired", False)),
            source=str(data.get("source", "template")),
            pattern_id=data.get("patternId"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "required": self.required,
            "priority": self.priority,
            "completed": self.completed,
        }
        if self.completed_at:
            result["completedAt"] = self.completed_at
        if self.notes:
            result["notes"] = self.notes
        if self.evidence is not None:
            result["evidence"] = self.evidence.to_dict()
        if self.evidence_required:
            result["evidenceRequired"] = True
        result["source"] = self.source
        if self.pattern_id:
            result["patternId"] = self.pattern_id
        return result


@dataclass
class StateChecklist:
    """Checklist instance for one (task, workflow state) pair."""

    items: List[ChecklistItem] = field(default_factory=list)
    completed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateChecklist":
        data = _require_dict(data, "checklist")
        items = _require_list(data.get("items"), "checklist.items")
        return cls(
            items=[ChecklistItem.from_dict(item) for item in items],
            completed_at=data.get("completedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"items": [item.to_dict() for item in self.items]}
        if self.completed_at:
            result["completedAt"] = self.completed_at
        return result

    def find(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


# Keys owned by Task; anything else in a stored task is carried through untouched
_TASK_KEYS = {
    "id",
    "goal",
    "status",
    "priority",
    "tags",
    "createdAt",
    "activatedAt",
    "completedAt",
    "archivedAt",
    "actualHours",
    "workflow",
    "requirements",
    "stateChecklists",
    "reviewChecklist",
}


@dataclass
class Task:
    """Single source of truth for the stored task schema."""

    id: str
    goal: str
    status: str
    created_at: str
    priority: str = DEFAULT_PRIORITY
    tags: List[str] = field(default_factory=list)
    activated_at: Optional[str] = None
    completed_at: Optional[str] = None
    archived_at: Optional[str] = None
    actual_hours: Optional[float] = None
    workflow: WorkflowProgress = field(default_factory=WorkflowProgress)
    requirements: List[str] = field(default_factory=list)
    state_checklists: Dict[str, StateChecklist] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate status and priority values at write-time."""
        if self.status not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status '{self.status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
            )
        if self.priority not in PRIORITIES:
            raise ValueError(
                f"Invalid priority '{self.priority}'. Must be one of: {', '.join(PRIORITIES)}"
            )

    @property
    def review_checklist(self) -> Optional[StateChecklist]:
        return self.state_checklists.get("REVIEWING")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create Task from a stored dictionary."""
        data = _require_dict(data, "task")
        for key in ("id", "goal", "status", "createdAt"):
            if key not in data:
                raise ValueError(f"task is missing '{key}'")

        checklists_raw = data.get("stateChecklists") or {}
        _require_dict(checklists_raw, "stateChecklists")
        checklists = {
            state: StateChecklist.from_dict(raw) for state, raw in checklists_raw.items()
        }
        # Documents written before per-state checklists only carry reviewChecklist
        review_raw = data.get("reviewChecklist")
        if review_raw and "REVIEWING" not in checklists:
            checklists["REVIEWING"] = StateChecklist.from_dict(review_raw)

        workflow_raw = data.get("workflow")
        workflow = (
            WorkflowProgress.from_dict(workflow_raw)
            if workflow_raw
            else WorkflowProgress(state_entered_at=data["createdAt"])
        )

        return cls(
            id=str(data["id"]),
            goal=str(data["goal"]),
            status=str(data["status"]).lower(),
            created_at=str(data["createdAt"]),
            priority=str(data.get("priority") or DEFAULT_PRIORITY).lower(),
            tags=[str(t) for t in _require_list(data.get("tags"), "tags")],
            activated_at=data.get("activatedAt"),
            completed_at=data.get("completedAt"),
            archived_at=data.get("archivedAt"),
            actual_hours=data.get("actualHours"),
            workflow=workflow,
            requirements=[
                str(r) for r in _require_list(data.get("requirements"), "requirements")
            ],
            state_checklists=checklists,
            extra={k: v for k, v in data.items() if k not in _TASK_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert Task to its stored dictionary form."""
        result: Dict[str, Any] = dict(self.extra)
        result.update(
            {
                "id": self.id,
                "goal": self.goal,
                "status": self.status,
                "priority": self.priority,
                "tags": list(self.tags),
                "createdAt": self.created_at,
            }
        )
        for key, value in (
            ("activatedAt", self.activated_at),
            ("completedAt", self.completed_at),
            ("archivedAt", self.archived_at),
            ("actualHours", self.actual_hours),
        ):
            if value is not None:
                result[key] = value
        result["workflow"] = self.workflow.to_dict()
        result["requirements"] = list(self.requirements)
        if self.state_checklists:
            result["stateChecklists"] = {
                state: checklist.to_dict()
                for state, checklist in self.state_checklists.items()
            }
        if self.review_checklist is not None:
            result["reviewChecklist"] = self.review_checklist.to_dict()
        return result


@dataclass
class TaskQueue:
    """The whole queue document: every task plus the active task pointer."""

    tasks: List[Task] = field(default_factory=list)
    active_task_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskQueue":
        data = _require_dict(data, "queue")
        if not isinstance(data.get("tasks"), list):
            raise ValueError("queue is missing the 'tasks' list")
        active_task_id = data.get("activeTaskId")
        if active_task_id is not None and not isinstance(active_task_id, str):
            raise ValueError("activeTaskId must be a string or null")
        metadata = data.get("metadata") or {}
        queue = cls(
            tasks=[Task.from_dict(task) for task in data["tasks"]],
            active_task_id=active_task_id,
            metadata=dict(_require_dict(metadata, "metadata")),
        )
        queue.validate()
        return queue

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "activeTaskId": self.active_task_id,
            "metadata": dict(self.metadata),
        }

    def validate(self) -> None:
        """
        Check per-task values, id uniqueness and active task exclusivity.

        Raises:
            ValueError: If any invariant is violated.
        """
        seen = set()
        for task in self.tasks:
            task.validate()
            if task.id in seen:
                raise ValueError(f"Duplicate task id '{task.id}'")
            seen.add(task.id)

        active = [task.id for task in self.tasks if task.status == STATUS_ACTIVE]
        if len(active) > 1:
            raise ValueError(f"More than one active task: {', '.join(active)}")
        expected = active[0] if active else None
        if self.active_task_id != expected:
            raise ValueError(
                f"activeTaskId '{self.active_task_id}' does not match active task '{expected}'"
            )

    def find(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def active_task(self) -> Optional[Task]:
        if self.active_task_id is None:
            return None
        return self.find(self.active_task_id)

    def refresh_metadata(self, now: str) -> None:
        """Recompute queue counters."""

        def count(status: str) -> int:
            return sum(1 for task in self.tasks if task.status == status)

        self.metadata = {
            "totalTasks": len(self.tasks),
            "queuedCount": count(STATUS_QUEUED),
            "activeCount": count(STATUS_ACTIVE),
            "completedCount": count(STATUS_DONE),
            "archivedCount": count(STATUS_ARCHIVED),
            "lastUpdated": now,
        }
