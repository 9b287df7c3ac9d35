"""
Checklist and evidence gate.

Builds per-state checklists from static templates and project patterns,
records completed items with their evidence, and blocks leaving a state
while any required item is not satisfied.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from taskgate.checklist.patterns import pattern_to_item
from taskgate.checklist.templates import template_items
from taskgate.checklist.verification import VerificationResult, verify_pattern_item
from taskgate.constants import CLI_NAME
from taskgate.core.exceptions import (
    ChecklistConfigurationError,
    EvidenceError,
    PatternVerificationError,
    StateChecklistIncompleteError,
)
from taskgate.core.models import (
    EVIDENCE_TYPES,
    ChecklistItem,
    Evidence,
    StateChecklist,
    Task,
)
from taskgate.core.naming import to_timestamp, utc_now

logger = logging.getLogger(__name__)

CHECK_HINT = f"{CLI_NAME} checklist check <item-id>"


def validate_evidence(evidence: Evidence) -> None:
    """
    Check that evidence carries the fields its type needs.

    Raises:
        EvidenceError: If the evidence is malformed.
    """
    if not evidence.type:
        raise EvidenceError("Evidence type is required")
    if evidence.type not in EVIDENCE_TYPES:
        raise EvidenceError(
            f"Invalid evidence type '{evidence.type}'. "
            f"Must be one of: {', '.join(sorted(EVIDENCE_TYPES))}"
        )
    if not evidence.description or not evidence.description.strip():
        raise EvidenceError("Evidence description is required")

    if evidence.type in ("file_created", "file_modified") and not evidence.files:
        raise EvidenceError(f"Evidence of type '{evidence.type}' requires at least one file")
    if evidence.type == "command_run" and not evidence.command:
        raise EvidenceError("Evidence of type 'command_run' requires a command")
    if evidence.type == "test_passed":
        results = evidence.test_results
        if not results or not all(
            isinstance(results.get(key), int) for key in ("passed", "failed", "total")
        ):
            raise EvidenceError(
                "Evidence of type 'test_passed' requires test results (passed, failed, total)"
            )
    if evidence.type == "manual" and not evidence.manual_notes:
        raise EvidenceError("Evidence of type 'manual' requires manual notes")


def item_satisfies_gate(item: ChecklistItem) -> bool:
    """An item counts once completed and, when evidence is required, evidenced."""
    if not item.completed:
        return False
    return not item.evidence_required or item.evidence is not None


def incomplete_required_items(checklist: StateChecklist) -> List[ChecklistItem]:
    return [item for item in checklist.items if item.required and not item_satisfies_gate(item)]


def is_checklist_complete(checklist: StateChecklist) -> bool:
    return not incomplete_required_items(checklist)


def get_completion_percentage(checklist: StateChecklist) -> int:
    """Share of completed items, rounded; 0 for an empty checklist."""
    if not checklist.items:
        return 0
    done = sum(1 for item in checklist.items if item.completed)
    return round(done * 100 / len(checklist.items))


class ChecklistService:
    """
    Builds and evaluates state checklists.

    Attributes:
        pattern_provider: Optional PatternProvider contributing pattern items.
        initialize_on_entry: States whose checklist is created when the state is entered.
        project_root: Directory pattern file checks resolve against (default: cwd).
    """

    def __init__(
        self,
        pattern_provider=None,
        initialize_on_entry: Sequence[str] = ("REVIEWING",),
        project_root: Optional[Path] = None,
    ):
        self.pattern_provider = pattern_provider
        self.initialize_on_entry = list(initialize_on_entry)
        self.project_root = Path(project_root) if project_root is not None else Path.cwd()

    def build_checklist(self, state: str) -> StateChecklist:
        """
        Merge static template items with pattern items for a state.

        Raises:
            ChecklistConfigurationError: If a pattern item collides with a static
                item or with a differently defined pattern item.
        """
        items = template_items(state)
        static_ids = {item.id for item in items}

        if self.pattern_provider is not None:
            pattern_set = self.pattern_provider.get_patterns_for_state(state)
            pattern_items = {}
            candidates = [(p, True) for p in pattern_set.mandatory] + [
                (p, False) for p in pattern_set.recommended
            ]
            for pattern, mandatory in candidates:
                item = pattern_to_item(pattern, mandatory)
                if item.id in static_ids:
                    raise ChecklistConfigurationError(
                        f"Pattern item '{item.id}' collides with a built-in {state} checklist item"
                    )
                existing = pattern_items.get(item.id)
                if existing is not None:
                    if existing != item:
                        raise ChecklistConfigurationError(
                            f"Pattern '{pattern.id}' is defined more than once with "
                            "different content"
                        )
                    continue
                pattern_items[item.id] = item
                items.append(item)

        return StateChecklist(items=items)

    def initialize_state_checklist(self, task: Task, state: str) -> StateChecklist:
        """Create the checklist for a state unless the task already has one."""
        checklist = task.state_checklists.get(state)
        if checklist is None:
            checklist = self.build_checklist(state)
            task.state_checklists[state] = checklist
            logger.debug(f"Initialized {state} checklist for task {task.id}")
        return checklist

    def on_state_entered(self, task: Task, state: str) -> Optional[StateChecklist]:
        if state in self.initialize_on_entry:
            return self.initialize_state_checklist(task, state)
        return None

    def verify_item(
        self, item: ChecklistItem, evidence: Optional[Evidence] = None
    ) -> Optional[VerificationResult]:
        """
        Verify a pattern item against its pattern's validation rule.

        Returns:
            VerificationResult, or None for non-pattern items and unknown patterns.
        """
        if item.source != "pattern" or not item.pattern_id or self.pattern_provider is None:
            return None
        pattern = self.pattern_provider.find_pattern(item.pattern_id)
        if pattern is None:
            logger.warning(f"Pattern '{item.pattern_id}' for item '{item.id}' no longer exists")
            return None
        return verify_pattern_item(pattern, self.project_root, evidence)

    def mark_item_complete(
        self,
        task: Task,
        state: str,
        item_id: str,
        evidence: Optional[Evidence] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ChecklistItem:
        """
        Mark a checklist item complete, optionally with evidence.

        Missing evidence on an item that requires it is accepted with a
        warning; such an item does not satisfy the gate until evidence is
        attached by checking it again.

        Args:
            task: Task to mutate.
            state: Workflow state the checklist belongs to.
            item_id: Checklist item id.
            evidence: Proof of completion.
            notes: Free-form notes.
            now: Completion time (defaults to the current UTC time).

        Returns:
            The updated item.

        Raises:
            EvidenceError: If the evidence is malformed.
            PatternVerificationError: If an error-severity pattern check fails.
            ValueError: If the item does not exist in the checklist.
        """
        stamp = to_timestamp(now or utc_now())
        if evidence is not None:
            if not evidence.timestamp:
                evidence.timestamp = stamp
            validate_evidence(evidence)

        checklist = self.initialize_state_checklist(task, state)
        item = checklist.find(item_id)
        if item is None:
            available = ", ".join(i.id for i in checklist.items) or "none"
            raise ValueError(
                f"Checklist item '{item_id}' not found in {state} checklist "
                f"(available: {available})"
            )

        verification = self.verify_item(item, evidence if evidence is not None else item.evidence)
        if verification is not None:
            if verification.blocking:
                raise PatternVerificationError(item_id, verification.message)
            if verification.passed is False:
                logger.warning(f"Pattern item '{item_id}': {verification.message}")

        item.completed = True
        item.completed_at = item.completed_at or stamp
        if evidence is not None:
            item.evidence = evidence
        if verification is not None and verification.passed and item.evidence is not None:
            item.evidence.verified = True
        if notes:
            item.notes = notes

        if item.evidence_required and item.evidence is None:
            logger.warning(
                f"Checklist item '{item_id}' requires evidence; it will not satisfy "
                f"the {state} gate until evidence is attached"
            )

        if checklist.completed_at is None and is_checklist_complete(checklist):
            checklist.completed_at = stamp
        return item

    def validate_state_checklist_complete(self, task: Task, state: str) -> None:
        """
        Gate for leaving a state.

        Raises:
            StateChecklistIncompleteError: If a required item is not satisfied.
        """
        checklist = task.state_checklists.get(state)
        if checklist is None:
            if state not in self.initialize_on_entry:
                return
            checklist = self.build_checklist(state)

        missing = incomplete_required_items(checklist)
        if missing:
            raise StateChecklistIncompleteError(
                state,
                [
                    {"id": item.id, "title": item.title, "description": item.description}
                    for item in missing
                ],
                CHECK_HINT,
            )
