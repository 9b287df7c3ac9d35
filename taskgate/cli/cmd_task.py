"""
taskctl task command implementations.

Handles create, sync, complete, list, activate, update, remove and archive.
"""

import sys
import json
import argparse

from taskgate.core.exceptions import WorkflowError


def _print_warnings(warnings) -> None:
    for warning in warnings:
        print(f"\nWarning: {warning}")


def cmd_create(cli_instance, args: argparse.Namespace) -> int:
    """Create a new task.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: goal, req, priority, tag

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        try:
            task = cli_instance.manager.create_task(
                args.goal,
                requirements=args.req or [],
                priority=args.priority,
                tags=args.tag or [],
            )
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Task created: {task.id} ({task.status}, priority {task.priority})")
        if task.status == "queued":
            active = cli_instance.manager.store.get_active_task()
            if active is not None:
                print(f"Queued behind active task {active.id}")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_sync(cli_instance, args: argparse.Namespace) -> int:
    """Advance the active task to the next workflow state.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: state

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        try:
            before = cli_instance.manager.store.get_active_task()
            result = cli_instance.manager.update_task_state(args.state)
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        previous = before.workflow.current_state if before else "?"
        print(
            f"State updated: {previous} -> {result.task.workflow.current_state} "
            f"({result.task.id})"
        )
        _print_warnings(result.warnings)
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_complete(cli_instance, args: argparse.Namespace) -> int:
    """Complete the active task (or the one given with --id).

    Returns:
        Exit code (0 on success or when already completed, 1 on error)
    """
    try:
        try:
            result = cli_instance.manager.complete_task(getattr(args, "id", None))
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if result.already_completed:
            print(f"Task {result.task.id} is already completed")
            return 0

        hours = result.task.actual_hours
        suffix = f" ({hours}h)" if hours is not None else ""
        print(f"Task completed: {result.task.id}{suffix}")
        if result.next_task is not None:
            print(f"Next task activated: {result.next_task.id} - {result.next_task.goal}")
        else:
            print("No queued tasks remaining")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_list(cli_instance, args: argparse.Namespace) -> int:
    """List tasks grouped by status.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: status (optional), all, json

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        tasks = cli_instance.manager.list_tasks(
            statuses=args.status or None,
            include_archived=args.all,
        )

        if args.json:
            print(json.dumps([t.to_dict() for t in tasks], indent=2, default=str))
            return 0

        if not tasks:
            print("No tasks")
            return 0

        # Group by status, keeping list order within each group
        by_status = {}
        for task in tasks:
            by_status.setdefault(task.status, []).append(task)

        for status in ("active", "queued", "done", "archived"):
            if status in by_status:
                print(f"\n{status.upper()}:")
                for task in by_status[status]:
                    print(
                        f"  {task.id} [{task.priority}] "
                        f"{task.workflow.current_state}  {task.goal}"
                    )
        return 0

    except (WorkflowError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_activate(cli_instance, args: argparse.Namespace) -> int:
    """Make a queued task the active one."""
    try:
        try:
            task = cli_instance.manager.activate_task(args.id)
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Task activated: {task.id} ({task.workflow.current_state})")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_update(cli_instance, args: argparse.Namespace) -> int:
    """Update the goal or requirements of the active task (or --id)."""
    try:
        if args.goal is None and not args.add_req:
            print("Error: Nothing to update (use --goal or --add-req)", file=sys.stderr)
            return 1

        try:
            task = cli_instance.manager.update_task(
                goal=args.goal,
                add_requirement=args.add_req,
                task_id=getattr(args, "id", None),
            )
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Task updated: {task.id}")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_remove(cli_instance, args: argparse.Namespace) -> int:
    """Remove a task from the queue.

    Removing the active task requires --force.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: id, force

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        try:
            cli_instance.manager.remove_task(args.id, force=args.force)
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Task removed: {args.id}")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_archive(cli_instance, args: argparse.Namespace) -> int:
    """Archive done tasks older than --days days."""
    try:
        try:
            count = cli_instance.manager.archive_old_tasks(args.days)
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Archived {count} task(s)")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1
