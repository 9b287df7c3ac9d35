"""
Workflow state machine.

States advance strictly forward, one step at a time:

    UNDERSTANDING -> DESIGNING -> IMPLEMENTING -> TESTING -> REVIEWING -> READY_TO_COMMIT

Self-transitions, skips and reversals are all illegal.
"""

import logging
from datetime import datetime
from typing import Optional

from taskgate.core.exceptions import InvalidStateTransitionError
from taskgate.core.models import STATE_SEQUENCE, WorkflowProgress, HistoryEntry
from taskgate.core.naming import to_timestamp, utc_now

logger = logging.getLogger(__name__)


def is_known_state(state: str) -> bool:
    return state in STATE_SEQUENCE


def get_next_state(state: str) -> Optional[str]:
    """
    Return the immediate successor of a state.

    Args:
        state: Workflow state name.

    Returns:
        Next state, or None for READY_TO_COMMIT and unknown names.
    """
    if state not in STATE_SEQUENCE:
        return None
    index = STATE_SEQUENCE.index(state)
    if index + 1 >= len(STATE_SEQUENCE):
        return None
    return STATE_SEQUENCE[index + 1]


def is_valid_transition(from_state: str, to_state: str) -> bool:
    """A transition is valid iff to_state is the immediate successor of from_state."""
    next_state = get_next_state(from_state)
    return next_state is not None and next_state == to_state


def get_progress(state: str) -> int:
    """Percent of the workflow covered by reaching a state (0 to 100)."""
    if state not in STATE_SEQUENCE:
        return 0
    return round(STATE_SEQUENCE.index(state) * 100 / (len(STATE_SEQUENCE) - 1))


def apply_transition(
    workflow: WorkflowProgress, to_state: str, now: Optional[datetime] = None
) -> WorkflowProgress:
    """
    Move a workflow into the next state in place.

    The state being left is appended to history with the time it was
    entered; the new state gets a fresh stateEnteredAt.

    Args:
        workflow: Workflow progress to mutate.
        to_state: Requested state.
        now: Transition time (defaults to the current UTC time).

    Returns:
        The same workflow object.

    Raises:
        InvalidStateTransitionError: If to_state is not the immediate successor.
    """
    from_state = workflow.current_state
    if not is_valid_transition(from_state, to_state):
        raise InvalidStateTransitionError(from_state, to_state, get_next_state(from_state))

    stamp = to_timestamp(now or utc_now())
    workflow.state_history.append(
        HistoryEntry(state=from_state, entered_at=workflow.state_entered_at or stamp)
    )
    workflow.current_state = to_state
    workflow.state_entered_at = stamp
    logger.debug(f"Workflow transition applied: {from_state} -> {to_state}")
    return workflow
