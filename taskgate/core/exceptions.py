"""Core exceptions: the workflow error taxonomy."""

from typing import Dict, List, Optional


class WorkflowError(Exception):
    """Base exception for workflow core errors."""

    pass


class QueueCorruptedError(WorkflowError):
    """Raised when the queue document cannot be read or violates its schema."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Task queue is corrupted ({path}): {message}")


class TaskNotFoundError(WorkflowError):
    """Raised when a task id does not exist in the queue."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class NoActiveTaskError(WorkflowError):
    """Raised when an operation needs an active task and the queue has none."""

    def __init__(self, message: str = "No active task"):
        super().__init__(message)


class TaskStateError(WorkflowError):
    """Raised when the active task is in the wrong workflow state or status."""

    def __init__(self, task_id: str, current_state: str, message: str):
        self.task_id = task_id
        self.current_state = current_state
        super().__init__(message)


class InvalidStateTransitionError(WorkflowError):
    """Raised when a requested transition is not the immediate successor."""

    def __init__(self, from_state: str, to_state: str, next_state: Optional[str]):
        self.from_state = from_state
        self.to_state = to_state
        self.next_state = next_state
        super().__init__(
            f"Invalid state transition: {from_state} -> {to_state}\n\n"
            "Workflow states must progress sequentially:\n"
            "  UNDERSTANDING -> DESIGNING -> IMPLEMENTING ->\n"
            "  TESTING -> REVIEWING -> READY_TO_COMMIT\n\n"
            f"Current state: {from_state}\n"
            f"Requested state: {to_state}\n"
            f"Next valid state: {next_state or 'already at final state'}"
        )


class StateHistoryCorruptionError(WorkflowError):
    """Raised when recorded state history is forged or corrupted."""

    def __init__(self, task_id: str, reason: str, detail: str, remediation: str):
        self.task_id = task_id
        self.reason = reason
        self.detail = detail
        self.remediation = remediation
        super().__init__(
            "STATE HISTORY CORRUPTION DETECTED!\n\n"
            f"{reason}:\n{detail}\n\n"
            "This usually means the task data was edited by hand or is damaged.\n"
            "Workflow state may only change through the sync command.\n\n"
            f"ACTION: {remediation}"
        )


class StateChecklistIncompleteError(WorkflowError):
    """Raised when required checklist items block leaving a state."""

    def __init__(self, state: str, incomplete_items: List[Dict[str, str]], hint: str):
        self.state = state
        self.incomplete_items = incomplete_items
        lines = [
            f"  - {item['id']}: {item['title']} ({item['description']})"
            for item in incomplete_items
        ]
        super().__init__(
            "State checklist incomplete!\n\n"
            f"Cannot progress from {state}. "
            "The following required checklist items are incomplete:\n\n"
            + "\n".join(lines)
            + f"\n\nComplete them with: {hint}"
        )

    def incomplete_item_ids(self) -> List[str]:
        """Return ids of the items that block the transition."""
        return [item["id"] for item in self.incomplete_items]


class EvidenceError(WorkflowError):
    """Raised when supplied checklist evidence is malformed."""

    pass


class PatternVerificationError(EvidenceError):
    """Raised when a pattern item with error severity fails verification."""

    def __init__(self, item_id: str, message: str):
        self.item_id = item_id
        super().__init__(f"Pattern verification failed for '{item_id}': {message}")


class ChecklistConfigurationError(WorkflowError):
    """Raised when checklist templates and patterns define conflicting items."""

    pass


class CacheCorruptedError(WorkflowError):
    """Raised when the task file cache cannot be parsed."""

    pass


class SyncError(WorkflowError):
    """Raised when syncing the task file cache from the queue fails."""

    pass


class ConfigError(WorkflowError):
    """Raised when the workflow configuration file is invalid."""

    pass
