"""
Workflow pipeline for state updates and task completion.

Runs state updates through history, rate-limit, transition and checklist
stages inside one queue transaction, then projects the result onto the
task file cache and the rendered context.

Main exports:
- TaskManager: Entry point for all workflow operations
- TaskCompletionService: Completion with idempotence and next-task handover
"""

from taskgate.pipeline.completion import CompletionResult, TaskCompletionService
from taskgate.pipeline.manager import TaskManager, TransitionResult

__all__ = [
    "CompletionResult",
    "TaskCompletionService",
    "TaskManager",
    "TransitionResult",
]
