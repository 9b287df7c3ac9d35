"""
taskctl task status command implementation.

Displays the active task, optionally as JSON.
"""

import sys
import json
import argparse

from taskgate.checklist.service import get_completion_percentage
from taskgate.core.exceptions import WorkflowError
from taskgate.core.states import get_next_state, get_progress


def cmd_status(cli_instance, args: argparse.Namespace) -> int:
    """Display the active task.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: json (optional)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        task = cli_instance.manager.get_current_task()

        if args.json:
            payload = None
            if task is not None:
                payload = task.to_dict()
                payload["progress"] = get_progress(task.workflow.current_state)
            print(json.dumps({"activeTask": payload}, indent=2, default=str))
            return 0

        if task is None:
            print("No active task")
            return 0

        state = task.workflow.current_state
        print(f"Task: {task.id}")
        print(f"Goal: {task.goal}")
        print(f"Status: {task.status} | Priority: {task.priority}")
        print(f"State: {state} ({get_progress(state)}%)")
        print(f"Next: {get_next_state(state) or 'complete the task'}")
        if task.requirements:
            print(f"Requirements: {', '.join(task.requirements)}")

        checklist = task.state_checklists.get(state)
        if checklist is not None:
            done = sum(1 for item in checklist.items if item.completed)
            print(
                f"Checklist ({state}): {done}/{len(checklist.items)} complete "
                f"({get_completion_percentage(checklist)}%)"
            )
        return 0

    except (WorkflowError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
