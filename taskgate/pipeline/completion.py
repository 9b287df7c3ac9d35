"""
Task completion.

Completion is a status change guarded by the workflow: the active task must
have intact history and be at READY_TO_COMMIT. Completing a task twice is
not an error.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from taskgate.core.exceptions import (
    CacheCorruptedError,
    NoActiveTaskError,
    SyncError,
    TaskNotFoundError,
    TaskStateError,
)
from taskgate.core.history import ensure_history_intact
from taskgate.core.models import (
    FINAL_STATE,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    STATUS_DONE,
    Task,
)
from taskgate.core.states import get_next_state
from taskgate.store import QueueStore, TaskFileSync

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Outcome of a completion request."""

    task: Task
    next_task: Optional[Task] = None
    already_completed: bool = False


class TaskCompletionService:
    """Completes the active task and hands over to the next queued one."""

    def __init__(
        self,
        store: QueueStore,
        file_sync: TaskFileSync,
        renderer,
        auto_activate_next: bool = True,
    ):
        self.store = store
        self.file_sync = file_sync
        self.renderer = renderer
        self.auto_activate_next = auto_activate_next

    def _cached_task_id(self) -> Optional[str]:
        try:
            cached = self.file_sync.load()
        except CacheCorruptedError as e:
            logger.warning(f"Ignoring unreadable cache: {e}")
            return None
        return cached.get("taskId") if cached else None

    def _resolve(self, task_id: Optional[str]) -> Task:
        if task_id:
            task = self.store.get_task(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            return task

        task = self.store.get_active_task()
        if task is not None:
            return task

        cached_id = self._cached_task_id()
        if cached_id:
            cached_task = self.store.get_task(cached_id)
            if cached_task is not None and cached_task.status in (STATUS_DONE, STATUS_ARCHIVED):
                return cached_task
        raise NoActiveTaskError("No active task to complete")

    def complete(self, task_id: Optional[str] = None, now: Optional[datetime] = None) -> CompletionResult:
        """
        Complete a task.

        Args:
            task_id: Task to complete; defaults to the active task, falling back to
                the task the cache points at when nothing is active.
            now: Completion time (defaults to the current UTC time).

        Returns:
            CompletionResult; already_completed is set when the task was done before.

        Raises:
            NoActiveTaskError: If there is nothing to complete.
            StateHistoryCorruptionError: If the task's history is corrupted.
            TaskStateError: If the task is not active or not at READY_TO_COMMIT.
        """
        task = self._resolve(task_id)

        if task.status in (STATUS_DONE, STATUS_ARCHIVED):
            logger.info(f"Task {task.id} is already completed")
            return CompletionResult(task=task, already_completed=True)

        if task.status != STATUS_ACTIVE:
            raise TaskStateError(
                task.id,
                task.workflow.current_state,
                f"Task {task.id} is not active (status: {task.status}). "
                f"Activate it with 'taskctl task activate --id {task.id}' first.",
            )

        ensure_history_intact(task.id, task.workflow)

        state = task.workflow.current_state
        if state != FINAL_STATE:
            raise TaskStateError(
                task.id,
                state,
                f"Cannot complete task at {state} state. "
                f"Task must be at {FINAL_STATE} before completion "
                f"(next state: {get_next_state(state) or FINAL_STATE}).",
            )

        completed, next_task = self.store.complete_task(
            task.id, activate_next=self.auto_activate_next, now=now
        )
        self.renderer.clear()

        target = next_task or completed
        try:
            self.file_sync.sync_from_queue(target)
        except SyncError as e:
            logger.warning(f"Cache sync after completion failed: {e}")
        if next_task is not None:
            self.renderer.render(next_task, [])

        return CompletionResult(task=completed, next_task=next_task)
