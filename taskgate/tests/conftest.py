"""
Shared fixtures for the taskgate test suite.

Provides a throwaway context directory and a fully wired TaskManager
available to all test categories (core, store, checklist, pipeline, cli).
"""

import tempfile
from pathlib import Path

import pytest

from taskgate.core.models import Evidence
from taskgate.pipeline import TaskManager
from taskgate.support.config import WorkflowConfig


@pytest.fixture
def context_root():
    """Create a temporary context directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / ".ai-context"


@pytest.fixture
def manager(context_root):
    """Create a TaskManager with default configuration."""
    return TaskManager.from_context(context_root, config=WorkflowConfig())


@pytest.fixture
def complete_review_checklist():
    """Return a helper that satisfies every required REVIEWING item of the active task."""

    def _complete(mgr: TaskManager) -> None:
        mgr.check_item(
            "run-validation",
            state="REVIEWING",
            evidence=Evidence(
                type="command_run",
                description="Validation suite",
                command="make validate",
                output="all checks passed",
            ),
        )
        mgr.check_item("code-quality-review", state="REVIEWING")
        mgr.check_item("requirements-verification", state="REVIEWING")

    return _complete


@pytest.fixture
def advance_to(complete_review_checklist):
    """Return a helper that walks the active task forward to a target state."""

    def _advance(mgr: TaskManager, target: str) -> None:
        order = [
            "DESIGNING",
            "IMPLEMENTING",
            "TESTING",
            "REVIEWING",
            "READY_TO_COMMIT",
        ]
        for state in order:
            current = mgr.store.get_active_task().workflow.current_state
            if current == target:
                return
            if state == "READY_TO_COMMIT":
                complete_review_checklist(mgr)
            mgr.update_task_state(state)

    return _advance
