"""
Task manager: the entry point CLI commands use to operate on the workflow.

Coordinates the queue store, the task file cache, the checklist gate, the
rate-limit advisor and the context renderer. Queue mutations happen inside
store transactions; cache sync and rendering follow once the transaction
has been written.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from taskgate.adapters.context import StatusFileRenderer
from taskgate.checklist.patterns import YamlPatternProvider
from taskgate.checklist.service import ChecklistService
from taskgate.core.exceptions import NoActiveTaskError, SyncError
from taskgate.core.history import ensure_history_intact
from taskgate.core.models import STATE_SEQUENCE, STATUS_ACTIVE, ChecklistItem, Evidence, StateChecklist, Task
from taskgate.core.naming import utc_now
from taskgate.core.priority import ORDERINGS
from taskgate.core.rate_limit import RateLimitAdvisor
from taskgate.core.states import is_known_state
from taskgate.pipeline.completion import CompletionResult, TaskCompletionService
from taskgate.pipeline.stages import (
    TransitionContext,
    apply_stage,
    checklist_gate_stage,
    history_stage,
    load_stage,
    rate_limit_stage,
    transition_stage,
)
from taskgate.store import QueueStore, TaskFileSync
from taskgate.support.config import WorkflowConfig, load_config
from taskgate.support.paths import (
    ensure_context_dirs,
    get_config_file,
    get_patterns_file,
    get_queue_file,
)

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """Outcome of a successful state update."""

    task: Task
    warnings: List[str] = field(default_factory=list)


class TaskManager:
    """
    Operates on the single current task.

    Attributes:
        store: QueueStore holding the canonical queue.
        file_sync: TaskFileSync owning the current-task.json cache.
        checklists: ChecklistService building and gating state checklists.
        advisor: RateLimitAdvisor producing advisory warnings.
        renderer: ContextRenderer receiving the active task after each change.
        role_activator: Optional RoleActivator passed to the renderer.
        config: WorkflowConfig in effect.
    """

    def __init__(
        self,
        store: QueueStore,
        file_sync: TaskFileSync,
        checklists: ChecklistService,
        advisor: RateLimitAdvisor,
        renderer,
        role_activator=None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.store = store
        self.file_sync = file_sync
        self.checklists = checklists
        self.advisor = advisor
        self.renderer = renderer
        self.role_activator = role_activator
        self.config = config or WorkflowConfig()
        self.completion = TaskCompletionService(
            store, file_sync, renderer, auto_activate_next=self.config.auto_activate_next
        )

    @classmethod
    def from_context(cls, context_root: Path, config: Optional[WorkflowConfig] = None) -> "TaskManager":
        """
        Wire a manager with the default adapters for a context directory.

        Args:
            context_root: Context directory holding tasks.json and friends.
            config: Configuration; loaded from <context>/config.yaml when omitted.
        """
        ensure_context_dirs(context_root)
        config = config or load_config(get_config_file(context_root))
        store = QueueStore(get_queue_file(context_root), order_key=ORDERINGS[config.queue_order])
        checklists = ChecklistService(
            pattern_provider=YamlPatternProvider(get_patterns_file(context_root)),
            initialize_on_entry=config.initialize_on_entry,
            project_root=context_root.parent,
        )
        return cls(
            store=store,
            file_sync=TaskFileSync(context_root),
            checklists=checklists,
            advisor=RateLimitAdvisor(enabled=config.rate_limit_enabled),
            renderer=StatusFileRenderer(context_root),
            config=config,
        )

    # ------------------------------------------------------------------
    # Cache and context projection
    # ------------------------------------------------------------------

    def _project(self, task: Task, warnings: Optional[List[str]] = None) -> List[str]:
        """Sync the cache and render context for a task; returns the warnings shown."""
        warnings = list(warnings or [])
        try:
            self.file_sync.sync_from_queue(task)
        except SyncError as e:
            logger.warning(f"Cache sync failed for task {task.id}: {e}")
            warnings.append(f"Cache sync failed ({e}); it will be rebuilt from the queue on next read.")
        roles = self.role_activator.activate(task.goal) if self.role_activator else None
        self.renderer.render(task, warnings, roles)
        return warnings

    def _require_active(self, queue) -> Task:
        task = queue.active_task()
        if task is None:
            raise NoActiveTaskError()
        return task

    def _resolve_state(self, task: Task, state: Optional[str]) -> str:
        resolved = (state or task.workflow.current_state).strip().upper()
        if not is_known_state(resolved):
            raise ValueError(
                f"Unknown workflow state: {resolved} (must be one of: {', '.join(STATE_SEQUENCE)})"
            )
        return resolved

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_task(
        self,
        goal: str,
        requirements: Optional[Sequence[str]] = None,
        priority: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> Task:
        """Create a task; it becomes current when nothing else is active."""
        task = self.store.create_task(goal, requirements=requirements, priority=priority, tags=tags)
        if task.status == STATUS_ACTIVE:
            self._project(task)
        return task

    def get_current_task(self) -> Optional[Task]:
        """Return the active task from the queue, repairing the cache when it drifted."""
        task = self.store.get_active_task()
        if task is None:
            return None
        try:
            if self.file_sync.ensure_consistent(task):
                self.renderer.render(task, [])
        except SyncError as e:
            logger.warning(f"Could not repair cache for task {task.id}: {e}")
        return task

    def update_task_state(self, state: str, now: Optional[datetime] = None) -> TransitionResult:
        """
        Advance the active task to the next workflow state.

        Args:
            state: Requested state (must be the immediate successor).
            now: Transition time (defaults to the current UTC time).

        Returns:
            TransitionResult with the updated task and advisory warnings.

        Raises:
            NoActiveTaskError: If nothing is active.
            StateHistoryCorruptionError: If recorded history is corrupted.
            InvalidStateTransitionError: If the state is not the immediate successor.
            StateChecklistIncompleteError: If the current state's checklist blocks leaving it.
        """
        target = (state or "").strip().upper()
        with self.store.transaction() as queue:
            ctx = TransitionContext(queue=queue, target_state=target, now=now or utc_now())
            load_stage(ctx)
            history_stage(ctx)
            rate_limit_stage(ctx, self.advisor)
            transition_stage(ctx)
            checklist_gate_stage(ctx, self.checklists)
            apply_stage(ctx, self.checklists)

        warnings = self._project(ctx.active, ctx.warnings)
        return TransitionResult(task=ctx.active, warnings=warnings)

    def update_task(
        self,
        goal: Optional[str] = None,
        add_requirement: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> Task:
        """Update the goal or requirements of a task (the active one by default)."""
        if task_id is None:
            active = self.store.get_active_task()
            if active is None:
                raise NoActiveTaskError()
            task_id = active.id
        task = self.store.update_task(task_id, goal=goal, add_requirement=add_requirement)
        if task.status == STATUS_ACTIVE:
            self._project(task)
        return task

    def activate_task(self, task_id: str) -> Task:
        task = self.store.activate_task(task_id)
        self._project(task)
        return task

    def complete_task(self, task_id: Optional[str] = None) -> CompletionResult:
        return self.completion.complete(task_id)

    def remove_task(self, task_id: str, force: bool = False) -> Task:
        """Remove a task; removing the active one also clears the cache and rendered context."""
        task = self.store.remove_task(task_id, force=force)
        if task.status == STATUS_ACTIVE:
            self.file_sync.clear()
            self.renderer.clear()
        return task

    def archive_old_tasks(self, days: Optional[int] = None) -> int:
        return self.store.archive_old_tasks(
            self.config.archive_after_days if days is None else days
        )

    def list_tasks(
        self,
        statuses: Optional[Sequence[str]] = None,
        include_archived: bool = False,
        limit: Optional[int] = None,
    ) -> List[Task]:
        return self.store.list_tasks(statuses=statuses, include_archived=include_archived, limit=limit)

    def get_state_checklist(self, state: Optional[str] = None) -> Tuple[Task, str, StateChecklist]:
        """
        Return the active task's checklist for a state, creating it if absent.

        Args:
            state: Workflow state; defaults to the current state.

        Returns:
            Tuple of (task, state, checklist).
        """
        created = False
        with self.store.transaction() as queue:
            task = self._require_active(queue)
            ensure_history_intact(task.id, task.workflow)
            state = self._resolve_state(task, state)
            created = state not in task.state_checklists
            checklist = self.checklists.initialize_state_checklist(task, state)
        if created:
            self._project(task)
        return task, state, checklist

    def check_item(
        self,
        item_id: str,
        state: Optional[str] = None,
        evidence: Optional[Evidence] = None,
        notes: Optional[str] = None,
    ) -> Tuple[Task, ChecklistItem]:
        """
        Mark an item of the active task's checklist complete.

        Raises:
            NoActiveTaskError: If nothing is active.
            StateHistoryCorruptionError: If recorded history is corrupted.
            EvidenceError: If the evidence is malformed or a pattern check fails.
            ValueError: If the state is unknown or the item does not exist.
        """
        with self.store.transaction() as queue:
            task = self._require_active(queue)
            ensure_history_intact(task.id, task.workflow)
            state = self._resolve_state(task, state)
            item = self.checklists.mark_item_complete(
                task, state, item_id, evidence=evidence, notes=notes
            )
        self._project(task)
        return task, item
