"""
Tests for taskctl command handlers, driven through main().
"""

import json

import pytest

from taskgate.taskctl import main


@pytest.fixture
def run(context_root):
    """Return a helper that runs taskctl against the temp context directory."""

    def _run(*argv):
        return main(["--context-dir", str(context_root), *argv])

    return _run


def walk_to_ready(run):
    """Helper to move the active task to READY_TO_COMMIT via the CLI."""
    for state in ("DESIGNING", "IMPLEMENTING", "TESTING", "REVIEWING"):
        assert run("task", "sync", "--state", state) == 0
    assert run(
        "checklist", "check", "run-validation",
        "--evidence", "command_run",
        "--description", "Validation suite",
        "--command", "make validate",
        "--output", "ok",
    ) == 0
    assert run("checklist", "check", "code-quality-review") == 0
    assert run("checklist", "check", "requirements-verification") == 0
    assert run("task", "sync", "--state", "READY_TO_COMMIT") == 0


def active_task_id(run, capsys):
    """Helper to read the active task id from JSON status output."""
    capsys.readouterr()
    run("task", "status", "--json")
    return json.loads(capsys.readouterr().out)["activeTask"]["id"]


class TestTaskCommands:
    """Test task create/sync/status/list."""

    def test_create_and_status(self, run, capsys):
        """Test creating a task and showing it."""
        assert run("task", "create", "Implement login throttling", "--req", "REQ-1") == 0
        out = capsys.readouterr().out
        assert "Task created: task-" in out
        assert "active" in out

        assert run("task", "status") == 0
        out = capsys.readouterr().out
        assert "Goal: Implement login throttling" in out
        assert "State: UNDERSTANDING (0%)" in out
        assert "Next: DESIGNING" in out
        assert "Requirements: REQ-1" in out

    def test_status_json(self, run, capsys):
        """Test JSON status output."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()

        assert run("task", "status", "--json") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["activeTask"]["workflow"]["currentState"] == "UNDERSTANDING"
        assert payload["activeTask"]["progress"] == 0

    def test_status_without_task(self, run, capsys):
        """Test that status with nothing active succeeds."""
        assert run("task", "status") == 0
        assert "No active task" in capsys.readouterr().out
        assert run("task", "status", "--json") == 0
        assert json.loads(capsys.readouterr().out) == {"activeTask": None}

    def test_create_short_goal_fails(self, run, capsys):
        """Test that validation errors exit 1 with an Error line."""
        assert run("task", "create", "short") == 1
        assert "Error: Goal must be between 10 and 500 characters" in capsys.readouterr().err

    def test_sync_valid_and_invalid(self, run, capsys):
        """Test sync output and the skip error."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()

        assert run("task", "sync", "--state", "designing") == 0
        out = capsys.readouterr().out
        assert "State updated: UNDERSTANDING -> DESIGNING" in out
        assert "Warning: RAPID STATE CHANGE DETECTED" in out

        assert run("task", "sync", "--state", "TESTING") == 1
        err = capsys.readouterr().err
        assert "Invalid state transition: DESIGNING -> TESTING" in err
        assert "Next valid state: IMPLEMENTING" in err

    def test_sync_blocked_by_checklist(self, run, capsys):
        """Test that an unsatisfied REVIEWING checklist exits 1."""
        run("task", "create", "Implement login throttling")
        for state in ("DESIGNING", "IMPLEMENTING", "TESTING", "REVIEWING"):
            run("task", "sync", "--state", state)
        capsys.readouterr()

        assert run("task", "sync", "--state", "READY_TO_COMMIT") == 1
        err = capsys.readouterr().err
        assert "State checklist incomplete!" in err
        assert "run-validation" in err

    def test_list_grouped(self, run, capsys):
        """Test grouped list output."""
        run("task", "create", "Implement login throttling")
        run("task", "create", "Write onboarding guide")
        capsys.readouterr()

        assert run("task", "list") == 0
        out = capsys.readouterr().out
        assert out.index("ACTIVE:") < out.index("QUEUED:")
        assert "Write onboarding guide" in out

        assert run("task", "list", "--json", "--status", "queued") == 0
        tasks = json.loads(capsys.readouterr().out)
        assert [t["goal"] for t in tasks] == ["Write onboarding guide"]

    def test_remove_active_needs_force(self, run, context_root, capsys):
        """Test remove protection for the active task."""
        run("task", "create", "Implement login throttling")
        task_id = active_task_id(run, capsys)

        assert run("task", "remove", "--id", task_id) == 1
        assert "--force" in capsys.readouterr().err
        assert run("task", "remove", "--id", task_id, "--force") == 0
        assert f"Task removed: {task_id}" in capsys.readouterr().out
        assert not (context_root / "current-task.json").exists()


class TestCompleteCommand:
    """Test task complete."""

    def test_complete_flow_and_idempotence(self, run, capsys):
        """Test completing, then completing again."""
        run("task", "create", "Implement login throttling")
        walk_to_ready(run)
        capsys.readouterr()

        assert run("task", "complete") == 0
        out = capsys.readouterr().out
        assert "Task completed: task-" in out
        assert "No queued tasks remaining" in out

        assert run("task", "complete") == 0
        assert "is already completed" in capsys.readouterr().out

    def test_complete_too_early(self, run, capsys):
        """Test that completing before READY_TO_COMMIT exits 1."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()
        assert run("task", "complete") == 1
        assert "Cannot complete task at UNDERSTANDING state" in capsys.readouterr().err

    def test_complete_activates_next(self, run, capsys):
        """Test that the next task is reported."""
        run("task", "create", "Implement login throttling")
        run("task", "create", "Write onboarding guide")
        walk_to_ready(run)
        capsys.readouterr()

        assert run("task", "complete") == 0
        assert "Next task activated: task-" in capsys.readouterr().out


class TestChecklistCommands:
    """Test checklist show/check."""

    def test_show_current_state(self, run, capsys):
        """Test showing the current state's checklist."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()

        assert run("checklist", "show") == 0
        out = capsys.readouterr().out
        assert "UNDERSTANDING checklist for task-" in out
        assert "0% complete" in out
        assert "[ ] understand-requirements" in out

    def test_check_without_evidence_warns(self, run, capsys):
        """Test that checking an evidence item without evidence prints a warning."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()

        assert run("checklist", "check", "run-validation", "--state", "reviewing") == 0
        out = capsys.readouterr().out
        assert "Checked: run-validation - Run Validation" in out
        assert "requires evidence" in out

        assert run("checklist", "show", "--state", "REVIEWING") == 0
        assert "[!] run-validation" in capsys.readouterr().out

    def test_check_with_test_evidence(self, run, capsys):
        """Test test_passed evidence built from --passed/--failed."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()

        assert run(
            "checklist", "check", "run-tests", "--state", "TESTING",
            "--evidence", "test_passed", "--description", "Unit tests",
            "--passed", "12", "--failed", "0",
        ) == 0
        run("checklist", "show", "--state", "TESTING")
        assert "[x] run-tests" in capsys.readouterr().out

    def test_malformed_evidence_fails(self, run, capsys):
        """Test that incomplete evidence exits 1."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()
        assert run(
            "checklist", "check", "run-validation", "--state", "REVIEWING",
            "--evidence", "command_run", "--description", "No command given",
        ) == 1
        assert "requires a command" in capsys.readouterr().err

    def test_unknown_item_fails(self, run, capsys):
        """Test that an unknown item id exits 1."""
        run("task", "create", "Implement login throttling")
        capsys.readouterr()
        assert run("checklist", "check", "does-not-exist") == 1
        assert "not found" in capsys.readouterr().err

    def test_unknown_state_rejected_by_parser(self, run, context_root, capsys):
        """Test that --state only accepts workflow states."""
        run("task", "create", "Implement login throttling")
        before = (context_root / "tasks.json").read_text()

        with pytest.raises(SystemExit) as exc_info:
            run("checklist", "show", "--state", "bogus")

        assert exc_info.value.code == 2
        assert "invalid choice" in capsys.readouterr().err
        assert (context_root / "tasks.json").read_text() == before


class TestMain:
    """Test top-level argument handling."""

    def test_no_command_prints_help(self, run):
        """Test that a bare invocation exits 1."""
        assert run() == 1

    def test_no_subcommand_prints_help(self, run):
        """Test that a group without a subcommand exits 1."""
        assert run("task") == 1
        assert run("checklist") == 1

    def test_corrupted_queue_reported(self, run, context_root, capsys):
        """Test that a corrupted queue surfaces as an Error line."""
        context_root.mkdir(parents=True, exist_ok=True)
        (context_root / "tasks.json").write_text("{broken")
        assert run("task", "status") == 1
        assert "Task queue is corrupted" in capsys.readouterr().err
