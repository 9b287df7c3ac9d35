"""Static checklist templates for each workflow state."""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from taskgate.core.models import ChecklistItem


@dataclass(frozen=True)
class ChecklistTemplate:
    id: str
    title: str
    description: str
    required: bool = True
    priority: str = "high"
    evidence_required: bool = False

    def to_item(self) -> ChecklistItem:
        return ChecklistItem(
            id=self.id,
            title=self.title,
            description=self.description,
            required=self.required,
            priority=self.priority,
            evidence_required=self.evidence_required,
            source="template",
        )


STATE_TEMPLATES: Dict[str, Tuple[ChecklistTemplate, ...]] = {
    "UNDERSTANDING": (
        ChecklistTemplate(
            "understand-requirements",
            "Understand Requirements",
            "Read and understand all requirements. Ask clarifying questions if needed.",
        ),
        ChecklistTemplate(
            "identify-ambiguities",
            "Identify Ambiguities",
            "Identify any ambiguities or unclear requirements. Document them for clarification.",
        ),
        ChecklistTemplate(
            "confirm-understanding",
            "Confirm Understanding",
            "Confirm understanding with user. Summarize requirements and approach before proceeding.",
        ),
    ),
    "DESIGNING": (
        ChecklistTemplate(
            "create-design-doc",
            "Create Design Document",
            "Create or update design document with architecture, approach, and alternatives considered.",
        ),
        ChecklistTemplate(
            "design-approval",
            "Get Design Approval",
            "Get user approval on design before starting implementation.",
        ),
        ChecklistTemplate(
            "plan-implementation",
            "Plan Implementation",
            "Break down implementation into steps. Identify files to create/modify.",
            required=False,
            priority="medium",
        ),
    ),
    "IMPLEMENTING": (
        ChecklistTemplate(
            "write-code",
            "Write Production Code",
            "Implement the feature according to design. Follow coding standards and conventions.",
        ),
        ChecklistTemplate(
            "add-requirement-tags",
            "Add Requirement Tags",
            "Add @requirement tags to link code to requirements. Ensure 100% traceability.",
        ),
        ChecklistTemplate(
            "follow-patterns",
            "Follow Project Patterns",
            "Follow existing patterns and conventions. Check for duplicate functionality "
            "before writing new code.",
            required=False,
            priority="medium",
        ),
    ),
    "TESTING": (
        ChecklistTemplate(
            "create-test-plan",
            "Create Test Plan",
            "Create test plan document before writing tests. Define test cases and expected results.",
        ),
        ChecklistTemplate(
            "write-tests",
            "Write Tests",
            "Write comprehensive unit and integration tests. Ensure coverage >= 80%.",
        ),
        ChecklistTemplate(
            "run-tests",
            "Run Tests",
            "Run all tests and verify they pass. Fix any failing tests before proceeding.",
            evidence_required=True,
        ),
    ),
    "REVIEWING": (
        ChecklistTemplate(
            "run-validation",
            "Run Validation",
            "Run automated validation and ensure all checks pass.",
            evidence_required=True,
        ),
        ChecklistTemplate(
            "code-quality-review",
            "Code Quality Review",
            "Review code for quality, style, and adherence to project conventions.",
        ),
        ChecklistTemplate(
            "requirements-verification",
            "Verify Requirements",
            "Verify all requirements are satisfied and properly linked to code.",
        ),
    ),
    "READY_TO_COMMIT": (
        ChecklistTemplate(
            "all-tests-passing",
            "All Tests Passing",
            "Verify all tests are passing. No failing tests or skipped tests.",
        ),
        ChecklistTemplate(
            "validation-passed",
            "Validation Passed",
            "Ensure validation passed. All quality gates met.",
        ),
        ChecklistTemplate(
            "no-warnings",
            "No Active Warnings",
            "Check that there are no active warnings in WARNINGS.md.",
            required=False,
            priority="medium",
        ),
    ),
}


def template_items(state: str) -> List[ChecklistItem]:
    """Fresh checklist items for a state; empty for unknown states."""
    return [template.to_item() for template in STATE_TEMPLATES.get(state, ())]
