"""
taskctl checklist command implementations.

Shows the checklist of a workflow state and marks items complete with evidence.
"""

import sys
import argparse
from typing import Optional

from taskgate.checklist.service import get_completion_percentage, item_satisfies_gate
from taskgate.core.exceptions import WorkflowError
from taskgate.core.models import Evidence


def build_evidence(args: argparse.Namespace) -> Optional[Evidence]:
    """Build Evidence from --evidence and related flags; None when --evidence is absent."""
    evidence_type = getattr(args, "evidence", None)
    if not evidence_type:
        return None

    test_results = None
    passed = getattr(args, "passed", None)
    failed = getattr(args, "failed", None)
    total = getattr(args, "total", None)
    if passed is not None or failed is not None or total is not None:
        passed = passed or 0
        failed = failed or 0
        test_results = {
            "passed": passed,
            "failed": failed,
            "total": total if total is not None else passed + failed,
        }

    return Evidence(
        type=evidence_type,
        description=getattr(args, "description", None) or "",
        files=list(getattr(args, "files", None) or []),
        command=getattr(args, "evidence_command", None) or "",
        output=getattr(args, "output", None) or "",
        test_results=test_results,
        manual_notes=getattr(args, "notes", None) or "",
    )


def _marker(item) -> str:
    if item_satisfies_gate(item):
        return "[x]"
    if item.completed:
        return "[!]"  # completed, evidence still missing
    return "[ ]"


def cmd_checklist_show(cli_instance, args: argparse.Namespace) -> int:
    """Show the checklist for a state of the active task.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: state (optional)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        try:
            task, state, checklist = cli_instance.manager.get_state_checklist(args.state)
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(
            f"{state} checklist for {task.id}: "
            f"{get_completion_percentage(checklist)}% complete"
        )
        for item in checklist.items:
            flags = []
            if item.required:
                flags.append("required")
            if item.evidence_required:
                flags.append("evidence required")
            suffix = f" ({', '.join(flags)})" if flags else ""
            print(f"  {_marker(item)} {item.id}: {item.title}{suffix}")
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cmd_checklist_check(cli_instance, args: argparse.Namespace) -> int:
    """Mark a checklist item of the active task complete.

    Args:
        cli_instance: WorkflowCLI instance with manager
        args: Parsed command-line arguments with: item, state, evidence flags

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        try:
            _, item = cli_instance.manager.check_item(
                args.item,
                state=args.state,
                evidence=build_evidence(args),
                notes=args.notes,
            )
        except (WorkflowError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Checked: {item.id} - {item.title}")
        if item.evidence is not None and item.evidence.verified:
            print("Pattern verified")
        if item.evidence_required and item.evidence is None:
            print(
                "\nWarning: this item requires evidence and will not count toward the gate "
                "until it is checked again with --evidence"
            )
        return 0

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1
