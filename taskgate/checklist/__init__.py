"""
Checklist layer: static templates, project patterns and the evidence gate.

Canonical exports:
- ChecklistService: Builds, updates and evaluates per-state checklists
- YamlPatternProvider: Loads project patterns from patterns.yaml
- verify_pattern_item: Checks a pattern item against its validation rule
"""

from taskgate.checklist.patterns import (
    Pattern,
    PatternSet,
    StaticPatternProvider,
    YamlPatternProvider,
)
from taskgate.checklist.service import (
    ChecklistService,
    get_completion_percentage,
    is_checklist_complete,
    item_satisfies_gate,
    validate_evidence,
)
from taskgate.checklist.verification import VerificationResult, verify_pattern_item

__all__ = [
    "Pattern",
    "PatternSet",
    "StaticPatternProvider",
    "YamlPatternProvider",
    "ChecklistService",
    "get_completion_percentage",
    "is_checklist_complete",
    "item_satisfies_gate",
    "validate_evidence",
    "VerificationResult",
    "verify_pattern_item",
]
