"""
Queue store for tasks with JSON document persistence, file locking, and atomic updates.

The queue document is the canonical record of every task. Each mutation is a
whole-document read-modify-write performed under an exclusive lock.
"""

import fcntl
import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from taskgate.constants import DEFAULT_ARCHIVE_AFTER_DAYS, MAX_GOAL_LENGTH, MIN_GOAL_LENGTH
from taskgate.core.exceptions import QueueCorruptedError, TaskNotFoundError, TaskStateError
from taskgate.core.models import (
    PRIORITIES,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    STATUS_DONE,
    STATUS_QUEUED,
    Task,
    TaskQueue,
    WorkflowProgress,
)
from taskgate.core.naming import derive_task_id, parse_timestamp, to_timestamp, utc_now
from taskgate.core.priority import OrderKey, detect_priority, priority_order

logger = logging.getLogger(__name__)

_STATUS_RANK = {STATUS_ACTIVE: 0, STATUS_QUEUED: 1, STATUS_DONE: 2, STATUS_ARCHIVED: 3}


def normalize_goal(goal: str) -> str:
    """
    Trim a goal and check its length.

    Raises:
        ValueError: If the trimmed goal is outside the allowed length.
    """
    text = (goal or "").strip()
    if not MIN_GOAL_LENGTH <= len(text) <= MAX_GOAL_LENGTH:
        raise ValueError(
            f"Goal must be between {MIN_GOAL_LENGTH} and {MAX_GOAL_LENGTH} characters "
            f"(got {len(text)})"
        )
    return text


def _dedupe(values: Sequence[str]) -> List[str]:
    result: List[str] = []
    for value in values:
        value = value.strip()
        if value and value not in result:
            result.append(value)
    return result


def _elapsed_hours(start: Optional[str], end: datetime) -> Optional[float]:
    started = parse_timestamp(start)
    if started is None or started > end:
        return None
    return round((end - started).total_seconds() / 3600, 2)


class QueueStore:
    """Thread-safe JSON queue store with file locking and atomic writes."""

    def __init__(self, queue_file: Path, order_key: OrderKey = priority_order):
        """
        Initialize queue store.

        Args:
            queue_file: Path to the queue JSON document (created on first write).
            order_key: Sort key choosing which queued task is promoted next.
        """
        self.queue_file = Path(queue_file)
        self.lock_file = self.queue_file.with_name(self.queue_file.name + ".lock")
        self.order_key = order_key
        self._lock = threading.RLock()
        self._file_lock_handle = None
        self._lock_depth = 0

        self.queue_file.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Locking and raw document I/O
    # ------------------------------------------------------------------

    def _acquire_file_lock(self) -> None:
        """Acquire exclusive lock on the sidecar lock file."""
        if self._file_lock_handle is not None:
            return  # Already locked

        self._file_lock_handle = open(self.lock_file, "a+")
        fcntl.flock(self._file_lock_handle.fileno(), fcntl.LOCK_EX)

    def _release_file_lock(self) -> None:
        """Release file lock."""
        if self._file_lock_handle is not None:
            fcntl.flock(self._file_lock_handle.fileno(), fcntl.LOCK_UN)
            self._file_lock_handle.close()
            self._file_lock_handle = None

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            if self._lock_depth == 0:
                self._acquire_file_lock()
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
                if self._lock_depth == 0:
                    self._release_file_lock()

    def _read_queue(self) -> TaskQueue:
        """Read the queue document (must be called within lock context)."""
        if not self.queue_file.exists() or self.queue_file.stat().st_size == 0:
            return TaskQueue()

        try:
            with open(self.queue_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise QueueCorruptedError(str(self.queue_file), f"invalid JSON: {e}")

        try:
            return TaskQueue.from_dict(data)
        except ValueError as e:
            raise QueueCorruptedError(str(self.queue_file), str(e))

    def _write_queue(self, queue: TaskQueue) -> None:
        """Write the queue document atomically (must be called within lock context)."""
        # Validate before writing; never persist a document that would fail to load
        queue.validate()
        queue.refresh_metadata(to_timestamp(utc_now()))

        temp_file = self.queue_file.with_suffix(".json.tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(queue.to_dict(), f, indent=2, default=str)
                f.write("\n")
            os.chmod(temp_file, 0o600)
            # Atomic rename
            temp_file.replace(self.queue_file)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def load_queue(self) -> TaskQueue:
        """
        Read the whole queue document.

        Returns:
            TaskQueue (empty when the file does not exist yet).

        Raises:
            QueueCorruptedError: If the document is unparseable or violates its schema.
        """
        with self._locked():
            return self._read_queue()

    def save_queue(self, queue: TaskQueue) -> None:
        """
        Replace the whole queue document.

        Raises:
            ValueError: If the document violates its invariants.
        """
        with self._locked():
            self._write_queue(queue)

    @contextmanager
    def transaction(self) -> Iterator[TaskQueue]:
        """
        Lock, load, let the caller mutate, then save.

        Nothing is written when the body raises.

        Yields:
            The loaded TaskQueue, to be mutated in place.
        """
        with self._locked():
            queue = self._read_queue()
            yield queue
            self._write_queue(queue)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active_task(self) -> Optional[Task]:
        """Return the active task, or None when nothing is active."""
        return self.load_queue().active_task()

    def get_task(self, task_id: str) -> Optional[Task]:
        """
        Get a task by ID.

        Args:
            task_id: ID of task to retrieve

        Returns:
            Task if found, None otherwise
        """
        return self.load_queue().find(task_id)

    def list_tasks(
        self,
        statuses: Optional[Sequence[str]] = None,
        include_archived: bool = False,
        limit: Optional[int] = None,
    ) -> List[Task]:
        """
        List tasks, active first, then queued in promotion order, then finished.

        Args:
            statuses: Only include these statuses.
            include_archived: Include archived tasks when statuses is not given.
            limit: Maximum number of tasks returned.

        Returns:
            Ordered list of tasks.
        """
        tasks = self.load_queue().tasks
        if statuses:
            wanted = {s.lower() for s in statuses}
            tasks = [t for t in tasks if t.status in wanted]
        elif not include_archived:
            tasks = [t for t in tasks if t.status != STATUS_ARCHIVED]

        ordered = sorted(tasks, key=lambda t: (_STATUS_RANK.get(t.status, 9), self.order_key(t)))
        if limit is not None:
            ordered = ordered[:limit]
        return ordered

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _require(self, queue: TaskQueue, task_id: str) -> Task:
        task = queue.find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _promote(self, queue: TaskQueue, task: Task, now: datetime) -> None:
        task.status = STATUS_ACTIVE
        if task.activated_at is None:
            task.activated_at = to_timestamp(now)
        queue.active_task_id = task.id

    def create_task(
        self,
        goal: str,
        requirements: Optional[Sequence[str]] = None,
        priority: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Add a new task to the queue.

        The task becomes active when nothing else is; otherwise it is queued.

        Args:
            goal: Task goal (10-500 characters after trimming).
            requirements: External requirement ids.
            priority: critical|high|medium|low; detected from the goal when omitted.
            tags: Free-form labels.
            now: Creation time (defaults to the current UTC time).

        Returns:
            The created Task.

        Raises:
            ValueError: If goal or priority is invalid.
        """
        text = normalize_goal(goal)
        if priority:
            priority = priority.strip().lower()
            if priority not in PRIORITIES:
                raise ValueError(
                    f"Invalid priority '{priority}'. Must be one of: {', '.join(PRIORITIES)}"
                )
        else:
            priority = detect_priority(text)

        now = now or utc_now()
        stamp = to_timestamp(now)

        with self.transaction() as queue:
            task = Task(
                id=derive_task_id(now, (t.id for t in queue.tasks)),
                goal=text,
                status=STATUS_QUEUED,
                created_at=stamp,
                priority=priority,
                tags=_dedupe(tags or []),
                workflow=WorkflowProgress(state_entered_at=stamp),
                requirements=_dedupe(requirements or []),
            )
            queue.tasks.append(task)
            if queue.active_task_id is None:
                self._promote(queue, task, now)

        logger.info(f"Task created: {task.id} ({task.status}, priority {task.priority})")
        return task

    def update_task(
        self,
        task_id: str,
        goal: Optional[str] = None,
        add_requirement: Optional[str] = None,
    ) -> Task:
        """
        Update a task's goal and/or append a requirement id.

        Raises:
            TaskNotFoundError: If the task does not exist.
            ValueError: If the new goal is invalid.
        """
        new_goal = normalize_goal(goal) if goal is not None else None
        with self.transaction() as queue:
            task = self._require(queue, task_id)
            if new_goal is not None:
                task.goal = new_goal
            if add_requirement:
                task.requirements = _dedupe(task.requirements + [add_requirement])
        return task

    def activate_task(self, task_id: str, now: Optional[datetime] = None) -> Task:
        """
        Make a task the active one.

        The previously active task goes back to the queue with its workflow intact.

        Raises:
            TaskNotFoundError: If the task does not exist.
            TaskStateError: If the task is done or archived.
        """
        with self.transaction() as queue:
            task = self._require(queue, task_id)
            if task.status in (STATUS_DONE, STATUS_ARCHIVED):
                raise TaskStateError(
                    task.id,
                    task.workflow.current_state,
                    f"Cannot activate task {task.id}: status is '{task.status}'",
                )
            if task.status != STATUS_ACTIVE:
                previous = queue.active_task()
                if previous is not None:
                    previous.status = STATUS_QUEUED
                    logger.info(f"Task {previous.id} returned to queue")
                self._promote(queue, task, now or utc_now())
        logger.info(f"Task activated: {task.id}")
        return task

    def next_queued_task(self, queue: TaskQueue) -> Optional[Task]:
        queued = [t for t in queue.tasks if t.status == STATUS_QUEUED]
        if not queued:
            return None
        return min(queued, key=self.order_key)

    def complete_task(
        self,
        task_id: str,
        activate_next: bool = True,
        now: Optional[datetime] = None,
    ) -> Tuple[Task, Optional[Task]]:
        """
        Mark a task done and optionally promote the next queued task.

        Args:
            task_id: ID of the task to complete.
            activate_next: Promote the next queued task when the completed one was active.
            now: Completion time (defaults to the current UTC time).

        Returns:
            Tuple of (completed task, newly active task or None).

        Raises:
            TaskNotFoundError: If the task does not exist.
            TaskStateError: If the task is already done or archived.
        """
        now = now or utc_now()
        next_task = None
        with self.transaction() as queue:
            task = self._require(queue, task_id)
            if task.status in (STATUS_DONE, STATUS_ARCHIVED):
                raise TaskStateError(
                    task.id,
                    task.workflow.current_state,
                    f"Task {task.id} is already {task.status}",
                )
            was_active = task.status == STATUS_ACTIVE
            task.status = STATUS_DONE
            task.completed_at = to_timestamp(now)
            task.actual_hours = _elapsed_hours(task.activated_at, now)
            if was_active:
                queue.active_task_id = None
                if activate_next:
                    next_task = self.next_queued_task(queue)
                    if next_task is not None:
                        self._promote(queue, next_task, now)

        logger.info(f"Task completed: {task.id}")
        if next_task is not None:
            logger.info(f"Next task activated: {next_task.id}")
        return task, next_task

    def archive_old_tasks(
        self, days: int = DEFAULT_ARCHIVE_AFTER_DAYS, now: Optional[datetime] = None
    ) -> int:
        """
        Archive done tasks completed more than `days` days ago.

        Returns:
            Number of tasks archived.
        """
        now = now or utc_now()
        cutoff = now - timedelta(days=days)
        archived = 0
        with self.transaction() as queue:
            for task in queue.tasks:
                if task.status != STATUS_DONE:
                    continue
                completed = parse_timestamp(task.completed_at)
                if completed is not None and completed < cutoff:
                    task.status = STATUS_ARCHIVED
                    task.archived_at = to_timestamp(now)
                    archived += 1
        if archived:
            logger.info(f"Archived {archived} task(s) older than {days} days")
        return archived

    def remove_task(self, task_id: str, force: bool = False) -> Task:
        """
        Remove a task from the queue.

        Args:
            task_id: ID of task to remove
            force: Required to remove the active task.

        Returns:
            The removed task.

        Raises:
            TaskNotFoundError: If task not found
            TaskStateError: If the task is active and force is not set
        """
        with self.transaction() as queue:
            task = self._require(queue, task_id)
            if task.status == STATUS_ACTIVE:
                if not force:
                    raise TaskStateError(
                        task.id,
                        task.workflow.current_state,
                        f"Task {task.id} is active; pass --force to remove it",
                    )
                queue.active_task_id = None
            queue.tasks = [t for t in queue.tasks if t.id != task_id]
        logger.info(f"Task removed: {task_id}")
        return task
