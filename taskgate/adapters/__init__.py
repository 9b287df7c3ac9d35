"""Collaborator adapters for the workflow core.

Provides the protocols the core depends on and the default implementations:

- taskgate.adapters.protocol: PatternProvider, ContextRenderer, RoleActivator
- taskgate.adapters.context: StatusFileRenderer, NullContextRenderer
"""

from taskgate.adapters import protocol
from taskgate.adapters.context import NullContextRenderer, StatusFileRenderer

__all__ = [
    "protocol",
    "NullContextRenderer",
    "StatusFileRenderer",
]
