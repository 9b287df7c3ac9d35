"""
Tests for the task data model, priority detection and naming helpers.
"""

from datetime import datetime, timezone

import pytest

from taskgate.core.models import Task, TaskQueue
from taskgate.core.naming import backup_stamp, derive_task_id
from taskgate.core.priority import detect_priority, fifo_order, priority_order


def task_dict(task_id="task-1", status="queued", **overrides):
    """Helper to build a stored task dictionary."""
    data = {
        "id": task_id,
        "goal": "Implement the export feature",
        "status": status,
        "priority": "medium",
        "createdAt": "2026-01-01T10:00:00+00:00",
        "workflow": {
            "currentState": "UNDERSTANDING",
            "stateEnteredAt": "2026-01-01T10:00:00+00:00",
            "stateHistory": [],
        },
        "requirements": [],
    }
    data.update(overrides)
    return data


class TestTaskSerialization:
    """Test Task from_dict/to_dict behavior."""

    def test_camel_case_keys(self):
        """Test that stored keys use camelCase."""
        task = Task.from_dict(task_dict(activatedAt="2026-01-01T10:00:00+00:00"))
        data = task.to_dict()
        assert data["createdAt"] == "2026-01-01T10:00:00+00:00"
        assert data["activatedAt"] == "2026-01-01T10:00:00+00:00"
        assert data["workflow"]["currentState"] == "UNDERSTANDING"
        assert "completedAt" not in data

    def test_unknown_keys_are_preserved(self):
        """Test that fields written by other tools survive a load/save cycle."""
        task = Task.from_dict(task_dict(estimatedHours=3))
        assert task.to_dict()["estimatedHours"] == 3

    def test_legacy_review_checklist_is_migrated(self):
        """Test that a reviewChecklist-only document lands in stateChecklists."""
        legacy = task_dict(
            reviewChecklist={
                "items": [
                    {"id": "run-validation", "description": "Run validation", "completed": True}
                ]
            }
        )
        task = Task.from_dict(legacy)
        assert "REVIEWING" in task.state_checklists
        assert task.review_checklist.items[0].completed
        data = task.to_dict()
        assert data["reviewChecklist"] == data["stateChecklists"]["REVIEWING"]

    def test_missing_workflow_defaults_to_understanding(self):
        """Test that a task without workflow starts at UNDERSTANDING."""
        raw = task_dict()
        del raw["workflow"]
        task = Task.from_dict(raw)
        assert task.workflow.current_state == "UNDERSTANDING"
        assert task.workflow.state_entered_at == raw["createdAt"]

    def test_invalid_status_rejected(self):
        """Test that validate rejects unknown statuses."""
        task = Task.from_dict(task_dict(status="paused"))
        with pytest.raises(ValueError, match="Invalid status"):
            task.validate()


class TestQueueValidation:
    """Test queue-level invariants."""

    def test_two_active_tasks_rejected(self):
        """Test that more than one active task is a violation."""
        data = {
            "tasks": [task_dict("task-1", "active"), task_dict("task-2", "active")],
            "activeTaskId": "task-1",
        }
        with pytest.raises(ValueError, match="More than one active task"):
            TaskQueue.from_dict(data)

    def test_pointer_must_match_active_task(self):
        """Test that activeTaskId must point at the active task."""
        data = {"tasks": [task_dict("task-1", "queued")], "activeTaskId": "task-1"}
        with pytest.raises(ValueError, match="does not match"):
            TaskQueue.from_dict(data)

    def test_duplicate_ids_rejected(self):
        """Test that task ids must be unique."""
        data = {"tasks": [task_dict("task-1"), task_dict("task-1")], "activeTaskId": None}
        with pytest.raises(ValueError, match="Duplicate task id"):
            TaskQueue.from_dict(data)

    def test_metadata_counts(self):
        """Test that refresh_metadata counts each status."""
        queue = TaskQueue.from_dict(
            {
                "tasks": [
                    task_dict("task-1", "active"),
                    task_dict("task-2", "queued"),
                    task_dict("task-3", "done"),
                ],
                "activeTaskId": "task-1",
            }
        )
        queue.refresh_metadata("2026-01-02T00:00:00+00:00")
        assert queue.metadata["totalTasks"] == 3
        assert queue.metadata["activeCount"] == 1
        assert queue.metadata["queuedCount"] == 1
        assert queue.metadata["completedCount"] == 1
        assert queue.metadata["archivedCount"] == 0


class TestPriority:
    """Test keyword priority detection and ordering keys."""

    @pytest.mark.parametrize(
        "goal,expected",
        [
            ("Fix crash on login page", "critical"),
            ("Add payment endpoint for invoices", "high"),
            ("Refactor the settings module", "low"),
            ("Write a new onboarding wizard", "medium"),
        ],
    )
    def test_detect_priority(self, goal, expected):
        """Test that the most urgent keyword bucket wins."""
        assert detect_priority(goal) == expected

    def test_priority_order_then_fifo(self):
        """Test that priority ordering breaks ties by creation time."""
        older_low = Task.from_dict(task_dict("a", priority="low", createdAt="2026-01-01T00:00:00+00:00"))
        newer_high = Task.from_dict(task_dict("b", priority="high", createdAt="2026-01-02T00:00:00+00:00"))
        older_high = Task.from_dict(task_dict("c", priority="high", createdAt="2026-01-01T12:00:00+00:00"))

        ordered = sorted([older_low, newer_high, older_high], key=priority_order)
        assert [t.id for t in ordered] == ["c", "b", "a"]
        ordered = sorted([older_low, newer_high, older_high], key=fifo_order)
        assert [t.id for t in ordered] == ["a", "c", "b"]


class TestNaming:
    """Test id and backup stamp derivation."""

    def test_task_id_from_epoch_millis(self):
        """Test that ids encode creation time in milliseconds."""
        now = datetime(2026, 1, 15, 10, 30, 45, 123000, tzinfo=timezone.utc)
        assert derive_task_id(now) == f"task-{int(now.timestamp() * 1000)}"

    def test_task_id_collision_is_bumped(self):
        """Test that a taken id is bumped by one millisecond."""
        now = datetime(2026, 1, 15, 10, 30, 45, 123000, tzinfo=timezone.utc)
        first = derive_task_id(now)
        second = derive_task_id(now, [first])
        assert second != first
        assert int(second.split("-")[1]) == int(first.split("-")[1]) + 1

    def test_backup_stamps_sort_chronologically(self):
        """Test that backup stamps are lexically ordered by time."""
        earlier = backup_stamp(datetime(2026, 1, 1, 9, 59, 59, tzinfo=timezone.utc))
        later = backup_stamp(datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc))
        assert earlier < later
