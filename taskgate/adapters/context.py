"""Default context renderers.

StatusFileRenderer writes short status documents into the context directory
for agents to read; NullContextRenderer does nothing.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

import yaml

from taskgate.checklist.service import get_completion_percentage, incomplete_required_items
from taskgate.constants import (
    CONTEXT_ARTIFACTS,
    NEXT_STEPS_FILE_NAME,
    STATUS_FILE_NAME,
    WARNINGS_FILE_NAME,
)
from taskgate.core.models import Task
from taskgate.core.states import get_next_state, get_progress

logger = logging.getLogger(__name__)


class StatusFileRenderer:
    """Renders STATUS.txt, NEXT_STEPS.md and WARNINGS.md for the active task."""

    def __init__(self, context_root: Path):
        self.context_root = Path(context_root)

    def render(self, task: Task, warnings: List[str], roles: Optional[Set[str]] = None) -> None:
        self.context_root.mkdir(parents=True, exist_ok=True)
        state = task.workflow.current_state

        status = {
            "task": task.id,
            "goal": task.goal,
            "status": task.status,
            "priority": task.priority,
            "state": state,
            "progress": f"{get_progress(state)}%",
            "next_state": get_next_state(state) or "complete the task",
            "requirements": list(task.requirements),
        }
        checklist = task.state_checklists.get(state)
        if checklist is not None:
            status["checklist"] = f"{get_completion_percentage(checklist)}%"
        if roles:
            status["roles"] = sorted(roles)

        (self.context_root / STATUS_FILE_NAME).write_text(
            yaml.dump(status, default_flow_style=False, sort_keys=False), encoding="utf-8"
        )

        steps = [f"# Next steps for {task.id}", ""]
        if checklist is not None:
            steps.extend(
                f"- [ ] {item.id}: {item.title}" for item in incomplete_required_items(checklist)
            )
        next_state = get_next_state(state)
        steps.append(
            f"- Advance to {next_state}" if next_state else "- Complete the task"
        )
        (self.context_root / NEXT_STEPS_FILE_NAME).write_text(
            "\n".join(steps) + "\n", encoding="utf-8"
        )

        warnings_file = self.context_root / WARNINGS_FILE_NAME
        if warnings:
            body = "# Warnings\n\n" + "\n\n".join(warnings) + "\n"
            warnings_file.write_text(body, encoding="utf-8")
        elif warnings_file.exists():
            warnings_file.unlink()

        logger.debug(f"Context rendered for task {task.id}")

    def clear(self) -> None:
        for name in CONTEXT_ARTIFACTS:
            path = self.context_root / name
            if path.exists():
                path.unlink()
                logger.debug(f"Removed {path}")


class NullContextRenderer:
    """Renderer that writes nothing."""

    def render(self, task: Task, warnings: List[str], roles: Optional[Set[str]] = None) -> None:
        return None

    def clear(self) -> None:
        return None
