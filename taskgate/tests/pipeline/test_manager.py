"""
Tests for TaskManager state updates: ordering, gates, rate-limit advice and projection.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from taskgate.core.exceptions import (
    EvidenceError,
    InvalidStateTransitionError,
    NoActiveTaskError,
    StateChecklistIncompleteError,
    StateHistoryCorruptionError,
)
from taskgate.pipeline import TaskManager
from taskgate.store.task_file import build_cache_document
from taskgate.support.config import WorkflowConfig


def queue_document(manager):
    return json.loads(manager.store.queue_file.read_text())


def rewrite_active(manager, mutate):
    """Helper to hand-edit the active task in the queue document."""
    data = queue_document(manager)
    for task in data["tasks"]:
        if task["id"] == data["activeTaskId"]:
            mutate(task)
    manager.store.queue_file.write_text(json.dumps(data))


class TestStateUpdates:
    """Test forward-only, no-skip state updates."""

    def test_advance_one_step(self, manager):
        """Test a single valid transition records history."""
        task = manager.create_task("Implement login throttling")

        result = manager.update_task_state("DESIGNING")

        assert result.task.id == task.id
        assert result.task.workflow.current_state == "DESIGNING"
        assert result.task.workflow.history_states() == ["UNDERSTANDING"]

    def test_state_is_case_insensitive(self, manager):
        """Test that requested states are upper-cased."""
        manager.create_task("Implement login throttling")
        assert manager.update_task_state("designing").task.workflow.current_state == "DESIGNING"

    def test_skip_rejected_without_mutation(self, manager):
        """Test that skipping a state raises and leaves the queue untouched."""
        manager.create_task("Implement login throttling")
        before = manager.store.queue_file.read_text()

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            manager.update_task_state("TESTING")

        assert exc_info.value.next_state == "DESIGNING"
        assert manager.store.queue_file.read_text() == before

    def test_backwards_and_self_rejected(self, manager):
        """Test that reversals and self-transitions raise."""
        manager.create_task("Implement login throttling")
        manager.update_task_state("DESIGNING")
        with pytest.raises(InvalidStateTransitionError):
            manager.update_task_state("UNDERSTANDING")
        with pytest.raises(InvalidStateTransitionError):
            manager.update_task_state("DESIGNING")

    def test_no_active_task(self, manager):
        """Test that a state update needs an active task."""
        with pytest.raises(NoActiveTaskError):
            manager.update_task_state("DESIGNING")

    def test_full_walk(self, manager, advance_to):
        """Test walking the whole workflow with the REVIEWING gate satisfied."""
        manager.create_task("Implement login throttling")
        advance_to(manager, "READY_TO_COMMIT")

        task = manager.store.get_active_task()
        assert task.workflow.current_state == "READY_TO_COMMIT"
        assert task.workflow.history_states() == [
            "UNDERSTANDING",
            "DESIGNING",
            "IMPLEMENTING",
            "TESTING",
            "REVIEWING",
        ]


class TestReviewGate:
    """Test the REVIEWING checklist gate."""

    def test_entering_reviewing_initializes_checklist(self, manager, advance_to):
        """Test that REVIEWING gets its checklist on entry."""
        manager.create_task("Implement login throttling")
        advance_to(manager, "REVIEWING")

        task = manager.store.get_active_task()
        assert "REVIEWING" in task.state_checklists
        assert "TESTING" not in task.state_checklists
        assert queue_document(manager)["tasks"][0]["reviewChecklist"]["items"]

    def test_incomplete_checklist_blocks(self, manager, advance_to):
        """Test that leaving REVIEWING with open required items raises."""
        manager.create_task("Implement login throttling")
        advance_to(manager, "REVIEWING")
        manager.check_item("code-quality-review")

        with pytest.raises(StateChecklistIncompleteError) as exc_info:
            manager.update_task_state("READY_TO_COMMIT")

        assert exc_info.value.incomplete_item_ids() == [
            "run-validation",
            "requirements-verification",
        ]
        assert manager.store.get_active_task().workflow.current_state == "REVIEWING"

    def test_check_without_evidence_still_blocks(self, manager, advance_to):
        """Test that run-validation needs evidence to satisfy the gate."""
        manager.create_task("Implement login throttling")
        advance_to(manager, "REVIEWING")
        for item_id in ("run-validation", "code-quality-review", "requirements-verification"):
            manager.check_item(item_id)

        with pytest.raises(StateChecklistIncompleteError) as exc_info:
            manager.update_task_state("READY_TO_COMMIT")
        assert exc_info.value.incomplete_item_ids() == ["run-validation"]

    def test_get_state_checklist_creates_and_persists(self, manager):
        """Test that viewing a checklist for a state creates it."""
        manager.create_task("Implement login throttling")

        task, state, checklist = manager.get_state_checklist()

        assert state == "UNDERSTANDING"
        assert checklist.find("understand-requirements") is not None
        assert "UNDERSTANDING" in manager.store.get_active_task().state_checklists
        assert task.id == manager.store.get_active_task().id


class TestHistoryCorruption:
    """Test that forged history blocks every state change."""

    def test_current_state_in_history_blocks_sync(self, manager):
        """Test that a task whose history contains its current state is rejected."""
        manager.create_task("Implement login throttling")
        manager.update_task_state("DESIGNING")

        def forge(task):
            task["workflow"]["stateHistory"].append(
                {"state": "DESIGNING", "enteredAt": "2026-01-01T10:00:00+00:00"}
            )

        rewrite_active(manager, forge)
        before = manager.store.queue_file.read_text()

        with pytest.raises(StateHistoryCorruptionError, match="Current state found in history"):
            manager.update_task_state("IMPLEMENTING")
        assert manager.store.queue_file.read_text() == before

    def test_forged_ready_to_commit_blocks_sync(self, manager):
        """Test that a task forged straight into READY_TO_COMMIT is reported as corrupted."""
        manager.create_task("Implement login throttling")

        def forge(task):
            task["workflow"]["currentState"] = "READY_TO_COMMIT"
            task["workflow"]["stateHistory"] = [
                {"state": "UNDERSTANDING", "enteredAt": "2026-01-01T10:00:00+00:00"},
                {"state": "READY_TO_COMMIT", "enteredAt": "2026-01-01T10:01:00+00:00"},
            ]

        rewrite_active(manager, forge)
        with pytest.raises(StateHistoryCorruptionError) as exc_info:
            manager.update_task_state("READY_TO_COMMIT")

        message = str(exc_info.value)
        assert "STATE HISTORY CORRUPTION" in message
        assert "Current state found in history" in message

    def test_skipped_history_blocks_sync(self, manager):
        """Test that a jumped-ahead task cannot move further."""
        manager.create_task("Implement login throttling")

        def jump(task):
            task["workflow"]["currentState"] = "TESTING"

        rewrite_active(manager, jump)
        with pytest.raises(StateHistoryCorruptionError):
            manager.update_task_state("REVIEWING")


class TestRateLimitAdvice:
    """Test that rate-limit advice never blocks."""

    def test_rapid_change_warns_but_proceeds(self, manager):
        """Test that a quick transition succeeds with a warning."""
        manager.create_task("Implement login throttling")
        result = manager.update_task_state("DESIGNING")
        assert result.task.workflow.current_state == "DESIGNING"
        assert any("RAPID STATE CHANGE DETECTED" in w for w in result.warnings)

    def test_rapid_invalid_change_warns_and_raises(self, manager, caplog):
        """Test that an invalid quick transition logs advice and still raises."""
        manager.create_task("Implement login throttling")
        with pytest.raises(InvalidStateTransitionError):
            manager.update_task_state("TESTING")
        assert "RAPID STATE CHANGE DETECTED" in caplog.text

    def test_repeated_transition_warns_then_raises(self, manager, caplog):
        """Test that syncing to DESIGNING twice in a row warns and then raises."""
        manager.create_task("Implement login throttling")
        manager.update_task_state("DESIGNING")
        caplog.clear()

        with pytest.raises(InvalidStateTransitionError, match="Invalid state transition"):
            manager.update_task_state("DESIGNING")

        assert "RAPID STATE CHANGE" in caplog.text
        assert "seconds" in caplog.text

    def test_old_state_is_silent(self, manager):
        """Test that a transition long after entering the state has no warnings."""
        manager.create_task("Implement login throttling")
        later = datetime.now(timezone.utc) + timedelta(hours=1)
        assert manager.update_task_state("DESIGNING", now=later).warnings == []

    def test_disabled_by_config(self, context_root):
        """Test that the advisor can be switched off."""
        manager = TaskManager.from_context(
            context_root, config=WorkflowConfig(rate_limit_enabled=False)
        )
        manager.create_task("Implement login throttling")
        assert manager.update_task_state("DESIGNING").warnings == []


class TestProjection:
    """Test that the cache and context files follow the queue."""

    def test_cache_follows_every_change(self, manager, context_root):
        """Test that the cache equals the projection of the active queue entry."""
        manager.create_task("Implement login throttling", requirements=["REQ-7"])
        manager.update_task_state("DESIGNING")

        active = manager.store.get_active_task()
        cached = manager.file_sync.load()
        assert cached == build_cache_document(active)
        assert (context_root / "STATUS.txt").exists()
        assert "DESIGNING" in (context_root / "STATUS.txt").read_text()

    def test_warnings_file_written_and_cleared(self, manager, context_root):
        """Test that WARNINGS.md reflects the latest change only."""
        manager.create_task("Implement login throttling")
        manager.update_task_state("DESIGNING")
        assert (context_root / "WARNINGS.md").exists()

        later = datetime.now(timezone.utc) + timedelta(hours=1)
        manager.update_task_state("IMPLEMENTING", now=later)
        assert not (context_root / "WARNINGS.md").exists()

    def test_hand_edited_cache_repaired_on_read(self, manager):
        """Test that get_current_task restores a hand-edited cache."""
        manager.create_task("Implement login throttling")
        cached = manager.file_sync.load()
        cached["workflow"]["currentState"] = "READY_TO_COMMIT"
        manager.file_sync.cache_file.write_text(json.dumps(cached))

        task = manager.get_current_task()

        assert task.workflow.current_state == "UNDERSTANDING"
        assert manager.file_sync.load()["workflow"]["currentState"] == "UNDERSTANDING"

    def test_deleted_cache_rebuilt(self, manager):
        """Test that a deleted cache is rebuilt from the queue."""
        task = manager.create_task("Implement login throttling")
        manager.file_sync.cache_file.unlink()

        manager.get_current_task()

        assert manager.file_sync.load()["taskId"] == task.id


class TestOtherOperations:
    """Test update, activate, remove and archive through the manager."""

    def test_update_active_task(self, manager):
        """Test changing the goal and appending a requirement."""
        manager.create_task("Implement login throttling")
        task = manager.update_task(goal="Implement login throttling v2", add_requirement="REQ-9")
        assert task.goal == "Implement login throttling v2"
        assert task.requirements == ["REQ-9"]
        assert manager.file_sync.load()["originalGoal"] == "Implement login throttling v2"

    def test_activate_switches_cache(self, manager):
        """Test that activating another task points the cache at it."""
        manager.create_task("Implement login throttling")
        other = manager.create_task("Write onboarding guide")
        manager.activate_task(other.id)
        assert manager.file_sync.load()["taskId"] == other.id

    def test_remove_active_clears_context(self, manager, context_root):
        """Test that force-removing the active task clears rendered context."""
        task = manager.create_task("Implement login throttling")
        assert (context_root / "STATUS.txt").exists()

        manager.remove_task(task.id, force=True)

        assert manager.get_current_task() is None
        assert not (context_root / "STATUS.txt").exists()

    def test_archive_uses_configured_days(self, context_root):
        """Test that archive defaults to the configured age."""
        manager = TaskManager.from_context(
            context_root, config=WorkflowConfig(archive_after_days=0)
        )
        task = manager.create_task("Implement login throttling")
        manager.store.complete_task(task.id, now=datetime.now(timezone.utc) - timedelta(days=1))

        assert manager.archive_old_tasks() == 1
        assert manager.store.get_task(task.id).status == "archived"

    def test_remove_active_backs_up_and_drops_cache(self, manager):
        """Test that the cache no longer names a task that left the queue."""
        task = manager.create_task("Implement login throttling")
        assert manager.file_sync.load()["taskId"] == task.id

        manager.remove_task(task.id, force=True)

        assert manager.store.get_task(task.id) is None
        assert manager.file_sync.load() is None
        assert manager.file_sync.has_backup()

    def test_remove_queued_keeps_cache(self, manager):
        """Test that removing a queued task leaves the active task's cache alone."""
        active = manager.create_task("Implement login throttling")
        queued = manager.create_task("Write onboarding guide")

        manager.remove_task(queued.id)

        assert manager.file_sync.load()["taskId"] == active.id


class TestChecklistOperations:
    """Test checklist reads and checks through the manager."""

    def test_unknown_state_rejected_without_mutation(self, manager):
        """Test that a state outside the workflow is refused and nothing is stored."""
        manager.create_task("Implement login throttling")
        before = manager.store.queue_file.read_text()

        with pytest.raises(ValueError, match="Unknown workflow state: BOGUS"):
            manager.get_state_checklist("bogus")
        with pytest.raises(ValueError, match="Unknown workflow state: BOGUS"):
            manager.check_item("run-validation", state="BOGUS")

        assert manager.store.queue_file.read_text() == before
        assert "BOGUS" not in queue_document(manager)["tasks"][0].get("stateChecklists", {})

    def test_check_item_refused_on_corrupted_history(self, manager):
        """Test that a task forged into REVIEWING cannot have its items checked."""
        manager.create_task("Implement login throttling")

        def forge(task):
            task["workflow"]["currentState"] = "REVIEWING"
            task["workflow"]["stateHistory"] = []

        rewrite_active(manager, forge)
        before = manager.store.queue_file.read_text()

        with pytest.raises(StateHistoryCorruptionError, match="Empty history with non-initial state"):
            manager.check_item("code-quality-review", state="REVIEWING")
        assert manager.store.queue_file.read_text() == before

    def test_show_refused_on_corrupted_history(self, manager):
        """Test that viewing a checklist also validates history first."""
        manager.create_task("Implement login throttling")

        def forge(task):
            task["workflow"]["currentState"] = "TESTING"

        rewrite_active(manager, forge)
        before = manager.store.queue_file.read_text()

        with pytest.raises(StateHistoryCorruptionError):
            manager.get_state_checklist()
        assert manager.store.queue_file.read_text() == before

    def test_pattern_file_check_against_project_root(self, context_root):
        """Test that a file_exists pattern is checked next to the context directory."""
        context_root.mkdir(parents=True)
        (context_root / "patterns.yaml").write_text(
            "patterns:\n"
            "  - id: changelog\n"
            "    title: Update the changelog\n"
            "    requiredStates: [UNDERSTANDING]\n"
            "    validation:\n"
            "      type: file_exists\n"
            "      rule: CHANGELOG.md\n"
            "      severity: error\n"
        )
        manager = TaskManager.from_context(context_root, config=WorkflowConfig())
        manager.create_task("Implement login throttling")

        with pytest.raises(EvidenceError, match="File not found: CHANGELOG.md"):
            manager.check_item("pattern-changelog")

        (context_root.parent / "CHANGELOG.md").write_text("## Unreleased\n")
        _, item = manager.check_item("pattern-changelog")
        assert item.completed
