"""
taskctl CLI command implementations.

This package contains individual command handlers for the taskctl CLI.
Commands are organized into separate modules for maintainability.

Public API:
- WorkflowCLI: Facade class dispatching to the command modules
"""

import argparse
from typing import Optional

# Import command modules (not functions) to avoid namespace conflicts
from taskgate.cli import cmd_task as _cmd_task_module
from taskgate.cli import cmd_status as _cmd_status_module
from taskgate.cli import cmd_checklist as _cmd_checklist_module

from taskgate.pipeline import TaskManager
from taskgate.support.paths import get_context_root


class WorkflowCLI:
    """Workflow CLI interface.

    Holds the TaskManager for one context directory and delegates to the
    individual command modules.
    """

    def __init__(self, context_dir: Optional[str] = None, manager: Optional[TaskManager] = None):
        """Initialize CLI with a task manager for the context directory."""
        self.context_root = get_context_root(context_dir)
        self.manager = manager or TaskManager.from_context(self.context_root)

    def cmd_create(self, args: argparse.Namespace) -> int:
        """Create a task (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_create(self, args)

    def cmd_sync(self, args: argparse.Namespace) -> int:
        """Advance workflow state (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_sync(self, args)

    def cmd_complete(self, args: argparse.Namespace) -> int:
        """Complete the active task (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_complete(self, args)

    def cmd_status(self, args: argparse.Namespace) -> int:
        """Display the active task (delegates to cmd_status module)."""
        return _cmd_status_module.cmd_status(self, args)

    def cmd_list(self, args: argparse.Namespace) -> int:
        """List tasks (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_list(self, args)

    def cmd_activate(self, args: argparse.Namespace) -> int:
        """Activate a queued task (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_activate(self, args)

    def cmd_update(self, args: argparse.Namespace) -> int:
        """Update a task (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_update(self, args)

    def cmd_remove(self, args: argparse.Namespace) -> int:
        """Remove a task (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_remove(self, args)

    def cmd_archive(self, args: argparse.Namespace) -> int:
        """Archive old done tasks (delegates to cmd_task module)."""
        return _cmd_task_module.cmd_archive(self, args)

    def cmd_checklist_show(self, args: argparse.Namespace) -> int:
        """Show a state checklist (delegates to cmd_checklist module)."""
        return _cmd_checklist_module.cmd_checklist_show(self, args)

    def cmd_checklist_check(self, args: argparse.Namespace) -> int:
        """Check a checklist item (delegates to cmd_checklist module)."""
        return _cmd_checklist_module.cmd_checklist_check(self, args)


__all__ = [
    "WorkflowCLI",
]
