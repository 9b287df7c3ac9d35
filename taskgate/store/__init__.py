"""
Store layer for queue persistence and the task file cache.

Canonical exports:
- QueueStore: Task queue persistence with file locking and atomic writes
- TaskFileSync: One-way queue -> current-task.json projection with backup and rollback
"""

from taskgate.store.repository import QueueStore
from taskgate.store.task_file import TaskFileSync

__all__ = [
    "QueueStore",
    "TaskFileSync",
]
