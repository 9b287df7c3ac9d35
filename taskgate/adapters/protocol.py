"""Collaborator protocols for the workflow core.

Defines the contracts the core depends on but does not implement in full:
pattern sources for checklist generation, context rendering for the AI
context documents, and role activation heuristics.
"""

from typing import List, Optional, Protocol, Set

from taskgate.checklist.patterns import Pattern, PatternSet
from taskgate.core.models import Task


# ============================================================================
# Collaborator Protocols
# ============================================================================


class PatternProvider(Protocol):
    """Source of project patterns, split per state into mandatory and recommended."""

    def get_patterns_for_state(self, state: str) -> PatternSet:
        """Return the patterns relevant to a workflow state.

        Args:
            state: Workflow state name.

        Returns:
            PatternSet with mandatory and recommended patterns.
        """
        ...

    def find_pattern(self, pattern_id: str) -> Optional[Pattern]:
        """Return the pattern with this id, or None."""
        ...


class ContextRenderer(Protocol):
    """Writes human/agent-facing context documents derived from the active task."""

    def render(self, task: Task, warnings: List[str], roles: Optional[Set[str]] = None) -> None:
        """Render context documents for a task.

        Args:
            task: Task as read from the queue.
            warnings: Advisory warnings produced by the last operation.
            roles: Active roles, when a RoleActivator is configured.
        """
        ...

    def clear(self) -> None:
        """Remove every rendered context document."""
        ...


class RoleActivator(Protocol):
    """Chooses roles to activate for a task goal."""

    def activate(self, goal: str) -> Set[str]:
        """Return the role names relevant to a goal."""
        ...
