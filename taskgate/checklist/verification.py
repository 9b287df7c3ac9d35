"""
Pattern verification.

Checks a pattern checklist item against its pattern's validation rule:

- file_exists: the rule names a path, resolved against the project root
- command_run: the item's command_run evidence must mention the rule's command
- code_check / custom: cannot be checked mechanically; left to the reviewer

A result's `passed` is None when the rule needs manual verification.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from taskgate.checklist.patterns import Pattern
from taskgate.core.models import Evidence

logger = logging.getLogger(__name__)

SEVERITY_ERROR = "error"


@dataclass
class VerificationResult:
    """Outcome of verifying one pattern item."""

    pattern_id: str
    passed: Optional[bool]
    message: str
    severity: str = "warning"

    @property
    def blocking(self) -> bool:
        """A failed check blocks only when its pattern is error severity."""
        return self.passed is False and self.severity == SEVERITY_ERROR


def _verify_file(pattern: Pattern, project_root: Path) -> VerificationResult:
    rule = pattern.validation.rule
    if not rule:
        return VerificationResult(
            pattern.id, False, "File check requires a verification rule (file path)"
        )
    path = Path(project_root) / rule
    if path.exists():
        return VerificationResult(pattern.id, True, f"File exists: {rule}")
    return VerificationResult(pattern.id, False, f"File not found: {rule}")


def _verify_command(pattern: Pattern, evidence: Optional[Evidence]) -> VerificationResult:
    rule = pattern.validation.rule
    if evidence is None or evidence.type != "command_run":
        return VerificationResult(
            pattern.id, False, f"Command check requires command_run evidence for: {rule}"
        )
    if rule and rule not in evidence.command:
        return VerificationResult(
            pattern.id,
            False,
            f"Command mismatch: expected '{rule}', evidence ran '{evidence.command}'",
        )
    return VerificationResult(pattern.id, True, f"Command run: {evidence.command}")


def verify_pattern_item(
    pattern: Pattern, project_root: Path, evidence: Optional[Evidence] = None
) -> VerificationResult:
    """
    Verify a pattern item against its pattern's validation rule.

    Args:
        pattern: Pattern the item was generated from.
        project_root: Directory file_exists rules are resolved against.
        evidence: Evidence supplied with the item, if any.

    Returns:
        VerificationResult; passed is None when manual verification is needed.
    """
    validation = pattern.validation
    if validation is None:
        return VerificationResult(pattern.id, None, "No validation rule; verify manually")
    if validation.type == "file_exists":
        result = _verify_file(pattern, project_root)
    elif validation.type == "command_run":
        result = _verify_command(pattern, evidence)
    else:
        result = VerificationResult(
            pattern.id,
            None,
            f"{validation.message or pattern.title}: {validation.type} requires manual verification",
        )
    result.severity = validation.severity
    logger.debug(f"Pattern {pattern.id} verification: {result.passed} ({result.message})")
    return result
