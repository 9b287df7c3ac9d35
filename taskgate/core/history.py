"""
State history validation.

A task's recorded history must be one forward walk that starts at
UNDERSTANDING and ends at the immediate predecessor of its current state.
Anything else means the stored data was forged or damaged. Validation
reports the problem as a tagged result; it never repairs it.
"""

from dataclasses import dataclass
from typing import Union

from taskgate.constants import CLI_NAME
from taskgate.core.exceptions import StateHistoryCorruptionError
from taskgate.core.models import INITIAL_STATE, STATE_SEQUENCE, WorkflowProgress
from taskgate.core.states import get_next_state, is_valid_transition


@dataclass(frozen=True)
class HistoryIntact:
    """History passed every check."""

    ok: bool = True


@dataclass(frozen=True)
class HistoryCorrupted:
    """History failed a check; reason is the headline, detail names the offending data."""

    reason: str
    detail: str
    ok: bool = False


HistoryResult = Union[HistoryIntact, HistoryCorrupted]


def validate_state_history(workflow: WorkflowProgress) -> HistoryResult:
    """
    Check that a workflow's history is a single forward walk into its current state.

    Args:
        workflow: Workflow progress as read from the queue.

    Returns:
        HistoryIntact, or HistoryCorrupted naming the first violation found.
    """
    current = workflow.current_state
    states = workflow.history_states()

    unknown = [s for s in [current] + states if s not in STATE_SEQUENCE]
    if unknown:
        return HistoryCorrupted(
            reason="Unknown workflow state",
            detail=f"Unrecognized state name(s): {', '.join(unknown)}",
        )

    if current in states:
        return HistoryCorrupted(
            reason="Current state found in history",
            detail=f"{current} is the current state but also appears in stateHistory: "
            f"[{', '.join(states)}]",
        )

    if not states:
        if current == INITIAL_STATE:
            return HistoryIntact()
        return HistoryCorrupted(
            reason="Empty history with non-initial state",
            detail=f"Current state is {current} but stateHistory is empty "
            f"(expected history to start at {INITIAL_STATE})",
        )

    if states[0] != INITIAL_STATE:
        return HistoryCorrupted(
            reason="History does not start at the initial state",
            detail=f"First history entry is {states[0]}, expected {INITIAL_STATE}",
        )

    for previous, following in zip(states, states[1:]):
        if not is_valid_transition(previous, following):
            return HistoryCorrupted(
                reason="Invalid transition in history",
                detail=f"{previous} -> {following} "
                f"(expected {previous} -> {get_next_state(previous) or 'end of workflow'})",
            )

    last = states[-1]
    if not is_valid_transition(last, current):
        return HistoryCorrupted(
            reason="History does not lead into the current state",
            detail=f"Last history entry {last} cannot transition to current state {current} "
            f"(expected {get_next_state(last) or 'end of workflow'})",
        )

    return HistoryIntact()


def remediation_for(task_id: str) -> str:
    return (
        f"remove the corrupted task with '{CLI_NAME} task remove --id {task_id} --force' "
        f"and recreate it with '{CLI_NAME} task create \"<goal>\"'"
    )


def ensure_history_intact(task_id: str, workflow: WorkflowProgress) -> None:
    """
    Raise when a workflow's history is corrupted.

    Raises:
        StateHistoryCorruptionError: With the violation and remediation steps.
    """
    result = validate_state_history(workflow)
    if isinstance(result, HistoryCorrupted):
        raise StateHistoryCorruptionError(
            task_id, result.reason, result.detail, remediation_for(task_id)
        )
