#!/usr/bin/env python3
"""
taskctl - Workflow CLI for a single current task

Commands:
  task create <goal>     Create a task (active if nothing else is)
  task sync --state S    Advance the active task to the next workflow state
  task complete          Complete the active task at READY_TO_COMMIT
  task status            Show the active task
  task list              List tasks grouped by status
  task activate --id ID  Switch the active task
  task update            Change goal or add a requirement
  task remove --id ID    Remove a task (--force for the active one)
  task archive           Archive old done tasks
  checklist show         Show the current state's checklist
  checklist check ITEM   Mark a checklist item complete, with evidence
"""

import sys
import argparse
import logging

from taskgate.cli import WorkflowCLI
from taskgate.core.exceptions import WorkflowError
from taskgate.core.models import EVIDENCE_TYPES, PRIORITIES, STATE_SEQUENCE, VALID_STATUSES

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskctl", description="Workflow integrity CLI for a single current task"
    )
    parser.add_argument(
        "--context-dir",
        default=None,
        help="Context directory (default: $TASKGATE_CONTEXT_DIR or ./.ai-context)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # 'task' commands
    task_parser = subparsers.add_parser("task", help="Task lifecycle commands")
    task_sub = task_parser.add_subparsers(dest="task_command", help="Task command")

    create_parser = task_sub.add_parser("create", help="Create a new task")
    create_parser.add_argument("goal", help="Task goal (10-500 characters)")
    create_parser.add_argument(
        "--req", action="append", help="Requirement id (repeatable)"
    )
    create_parser.add_argument(
        "--priority", choices=PRIORITIES, help="Priority (default: detected from goal)"
    )
    create_parser.add_argument("--tag", action="append", help="Tag (repeatable)")

    sync_parser = task_sub.add_parser("sync", help="Advance the active task's workflow state")
    sync_parser.add_argument(
        "--state",
        required=True,
        type=str.upper,
        help=f"Target state ({' -> '.join(STATE_SEQUENCE)})",
    )

    complete_parser = task_sub.add_parser("complete", help="Complete the active task")
    complete_parser.add_argument("--id", help="Task ID (default: active task)")

    status_parser = task_sub.add_parser("status", help="Show the active task")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")

    list_parser = task_sub.add_parser("list", help="List tasks")
    list_parser.add_argument(
        "--status",
        action="append",
        choices=sorted(VALID_STATUSES),
        help="Filter by status (repeatable)",
    )
    list_parser.add_argument("--all", action="store_true", help="Include archived tasks")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    activate_parser = task_sub.add_parser("activate", help="Make a task the active one")
    activate_parser.add_argument("--id", required=True, help="Task ID to activate")

    update_parser = task_sub.add_parser("update", help="Update a task")
    update_parser.add_argument("--id", help="Task ID (default: active task)")
    update_parser.add_argument("--goal", help="New goal")
    update_parser.add_argument("--add-req", help="Requirement id to append")

    remove_parser = task_sub.add_parser("remove", help="Remove a task from the queue")
    remove_parser.add_argument("--id", required=True, help="Task ID to remove")
    remove_parser.add_argument(
        "--force", action="store_true", help="Allow removing the active task"
    )

    archive_parser = task_sub.add_parser("archive", help="Archive old done tasks")
    archive_parser.add_argument(
        "--days", type=int, default=None, help="Age in days (default: from config, 30)"
    )

    # 'checklist' commands
    checklist_parser = subparsers.add_parser("checklist", help="State checklist commands")
    checklist_sub = checklist_parser.add_subparsers(
        dest="checklist_command", help="Checklist command"
    )

    show_parser = checklist_sub.add_parser("show", help="Show a state checklist")
    show_parser.add_argument(
        "--state",
        type=str.upper,
        choices=STATE_SEQUENCE,
        help="Workflow state (default: current state)",
    )

    check_parser = checklist_sub.add_parser("check", help="Mark a checklist item complete")
    check_parser.add_argument("item", help="Checklist item id")
    check_parser.add_argument(
        "--state",
        type=str.upper,
        choices=STATE_SEQUENCE,
        help="Workflow state (default: current state)",
    )
    check_parser.add_argument(
        "--evidence", choices=sorted(EVIDENCE_TYPES), help="Evidence type"
    )
    check_parser.add_argument("--description", help="Evidence description")
    check_parser.add_argument("--files", nargs="+", help="Files created or modified")
    check_parser.add_argument(
        "--command", dest="evidence_command", help="Command that was run"
    )
    check_parser.add_argument("--output", help="Command output")
    check_parser.add_argument("--passed", type=int, help="Tests passed")
    check_parser.add_argument("--failed", type=int, help="Tests failed")
    check_parser.add_argument("--total", type=int, help="Tests total")
    check_parser.add_argument("--notes", help="Notes (manual evidence notes)")

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    task_commands = {
        "create": "cmd_create",
        "sync": "cmd_sync",
        "complete": "cmd_complete",
        "status": "cmd_status",
        "list": "cmd_list",
        "activate": "cmd_activate",
        "update": "cmd_update",
        "remove": "cmd_remove",
        "archive": "cmd_archive",
    }
    checklist_commands = {
        "show": "cmd_checklist_show",
        "check": "cmd_checklist_check",
    }

    if args.command == "task":
        handler_name = task_commands.get(args.task_command)
    else:
        handler_name = checklist_commands.get(args.checklist_command)
    if handler_name is None:
        parser.print_help()
        return 1

    try:
        # Create CLI instance and execute command
        cli = WorkflowCLI(context_dir=args.context_dir)
        return getattr(cli, handler_name)(args)
    except WorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.debug("Unhandled exception", exc_info=True)
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
