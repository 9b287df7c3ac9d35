"""
State update pipeline stages.

A state update runs these stages in order, inside one queue transaction:
1. load: find the active task
2. history: reject forged or corrupted state history
3. rate limit: record advisory warnings for very quick changes
4. transition: reject anything but the immediate successor state
5. checklist gate: reject leaving a state with unsatisfied required items
6. apply: move the workflow forward and initialize the entered state's checklist

Every stage except rate limiting raises on failure, which aborts the
transaction without writing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from taskgate.checklist.service import ChecklistService
from taskgate.core.exceptions import InvalidStateTransitionError, NoActiveTaskError
from taskgate.core.history import ensure_history_intact
from taskgate.core.models import Task, TaskQueue
from taskgate.core.rate_limit import RateLimitAdvisor
from taskgate.core.states import apply_transition, get_next_state, is_valid_transition

logger = logging.getLogger(__name__)


@dataclass
class TransitionContext:
    """State carried between stages of one state update."""

    queue: TaskQueue
    target_state: str
    now: datetime
    task: Optional[Task] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def active(self) -> Task:
        if self.task is None:
            raise NoActiveTaskError()
        return self.task


def load_stage(ctx: TransitionContext) -> None:
    """
    Find the active task.

    Raises:
        NoActiveTaskError: If nothing is active.
    """
    task = ctx.queue.active_task()
    if task is None:
        raise NoActiveTaskError(
            "No active task. Create one with 'taskctl task create \"<goal>\"'"
        )
    ctx.task = task


def history_stage(ctx: TransitionContext) -> None:
    """
    Validate recorded state history.

    Raises:
        StateHistoryCorruptionError: If history is corrupted.
    """
    task = ctx.active
    ensure_history_intact(task.id, task.workflow)


def rate_limit_stage(ctx: TransitionContext, advisor: RateLimitAdvisor) -> None:
    """Collect rate-limit advice; never raises."""
    warning = advisor.check(ctx.active.workflow.state_entered_at, now=ctx.now)
    if warning:
        ctx.warnings.append(warning)


def transition_stage(ctx: TransitionContext) -> None:
    """
    Validate the requested transition.

    Raises:
        InvalidStateTransitionError: If the target is not the immediate successor.
    """
    current = ctx.active.workflow.current_state
    if not is_valid_transition(current, ctx.target_state):
        raise InvalidStateTransitionError(current, ctx.target_state, get_next_state(current))


def checklist_gate_stage(ctx: TransitionContext, checklists: ChecklistService) -> None:
    """
    Check the checklist of the state being left.

    Raises:
        StateChecklistIncompleteError: If required items are unsatisfied.
    """
    task = ctx.active
    checklists.validate_state_checklist_complete(task, task.workflow.current_state)


def apply_stage(ctx: TransitionContext, checklists: ChecklistService) -> None:
    """Move the workflow forward and initialize the new state's checklist."""
    task = ctx.active
    previous = task.workflow.current_state
    apply_transition(task.workflow, ctx.target_state, now=ctx.now)
    checklists.on_state_entered(task, ctx.target_state)
    logger.info(f"Task {task.id}: {previous} -> {ctx.target_state}")
