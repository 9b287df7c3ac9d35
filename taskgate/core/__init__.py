"""Core package: domain model, exceptions, state machine, history validation and rate limiting."""

from taskgate.core.models import (
    STATE_SEQUENCE,
    Task,
    TaskQueue,
    WorkflowProgress,
)
from taskgate.core.exceptions import WorkflowError
from taskgate.core.states import apply_transition, get_next_state, is_valid_transition
from taskgate.core.history import (
    HistoryCorrupted,
    HistoryIntact,
    ensure_history_intact,
    validate_state_history,
)
from taskgate.core.rate_limit import RateLimitAdvisor

__all__ = [
    "STATE_SEQUENCE",
    "Task",
    "TaskQueue",
    "WorkflowProgress",
    "WorkflowError",
    "apply_transition",
    "get_next_state",
    "is_valid_transition",
    "HistoryCorrupted",
    "HistoryIntact",
    "ensure_history_intact",
    "validate_state_history",
    "RateLimitAdvisor",
]
