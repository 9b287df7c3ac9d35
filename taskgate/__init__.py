"""taskgate package: workflow integrity core for a single current task."""

from taskgate.store import QueueStore, TaskFileSync
from taskgate.core.models import Task
from taskgate.pipeline import TaskManager
from taskgate import adapters

__all__ = [
    "QueueStore",
    "TaskFileSync",
    "Task",
    "TaskManager",
    "adapters",
]
