"""
Project patterns and the checklist items they generate.

Patterns live in <context>/patterns.yaml:

    patterns:
      - id: api-docs
        title: Document public API
        description: Every new endpoint gets an entry in docs/api.md
        applicableStates: [IMPLEMENTING, REVIEWING]
        requiredStates: [REVIEWING]
        validation:
          type: file_exists
          rule: docs/api.md
          message: API docs must exist
          severity: error

A pattern is mandatory in the states listed under requiredStates and
recommended in the other states it applies to.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from taskgate.core.exceptions import ChecklistConfigurationError
from taskgate.core.models import STATE_SEQUENCE, ChecklistItem

logger = logging.getLogger(__name__)

VALIDATION_TYPES = {"file_exists", "command_run", "code_check", "custom"}
EVIDENCE_VALIDATION_TYPES = {"file_exists", "command_run"}


@dataclass
class PatternValidation:
    type: str
    rule: str = ""
    message: str = ""
    severity: str = "warning"


@dataclass
class Pattern:
    """A project convention that applies to one or more workflow states."""

    id: str
    title: str
    description: str = ""
    action: str = ""
    applicable_states: List[str] = field(default_factory=lambda: list(STATE_SEQUENCE))
    required_states: List[str] = field(default_factory=list)
    validation: Optional[PatternValidation] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pattern":
        """
        Parse one pattern entry.

        Raises:
            ValueError: If the entry is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"pattern must be a mapping, got {type(data).__name__}")
        if not data.get("id") or not data.get("title"):
            raise ValueError("pattern requires 'id' and 'title'")

        applicable = data.get("applicableStates") or list(STATE_SEQUENCE)
        required = data.get("requiredStates") or []
        for key, states in (("applicableStates", applicable), ("requiredStates", required)):
            if not isinstance(states, list):
                raise ValueError(f"pattern '{data['id']}': {key} must be a list")
            unknown = [s for s in states if s not in STATE_SEQUENCE]
            if unknown:
                raise ValueError(
                    f"pattern '{data['id']}': unknown state(s) in {key}: {', '.join(map(str, unknown))}"
                )

        validation = None
        raw_validation = data.get("validation")
        if raw_validation:
            if not isinstance(raw_validation, dict):
                raise ValueError(f"pattern '{data['id']}': validation must be a mapping")
            validation_type = str(raw_validation.get("type", ""))
            if validation_type not in VALIDATION_TYPES:
                raise ValueError(
                    f"pattern '{data['id']}': validation type must be one of: "
                    f"{', '.join(sorted(VALIDATION_TYPES))}"
                )
            validation = PatternValidation(
                type=validation_type,
                rule=str(raw_validation.get("rule", "") or ""),
                message=str(raw_validation.get("message", "") or ""),
                severity=str(raw_validation.get("severity", "warning") or "warning"),
            )

        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description", "") or ""),
            action=str(data.get("action", "") or ""),
            applicable_states=[str(s) for s in applicable],
            required_states=[str(s) for s in required],
            validation=validation,
        )


@dataclass
class PatternSet:
    """Patterns relevant to one state, split by whether they gate it."""

    mandatory: List[Pattern] = field(default_factory=list)
    recommended: List[Pattern] = field(default_factory=list)


def select_for_state(patterns: Sequence[Pattern], state: str) -> PatternSet:
    relevant = [
        p for p in patterns if state in p.applicable_states or state in p.required_states
    ]
    return PatternSet(
        mandatory=[p for p in relevant if state in p.required_states],
        recommended=[p for p in relevant if state not in p.required_states],
    )


def find_pattern(patterns: Sequence[Pattern], pattern_id: str) -> Optional[Pattern]:
    for pattern in patterns:
        if pattern.id == pattern_id:
            return pattern
    return None


def verification_step(pattern: Pattern) -> str:
    """Describe how compliance with a pattern is demonstrated."""
    validation = pattern.validation
    if validation is None:
        return f"Implement pattern: {pattern.action or pattern.title}"
    if validation.type == "file_exists":
        return f"Ensure file exists: {validation.rule}"
    if validation.type == "command_run":
        return f"Run command: {validation.rule}"
    if validation.type == "code_check":
        return f"Implement code compliance: {validation.message or validation.rule}"
    return f"Follow pattern: {validation.message or pattern.action}"


def pattern_to_item(pattern: Pattern, mandatory: bool) -> ChecklistItem:
    """
    Turn a pattern into a checklist item.

    Args:
        pattern: Pattern to convert.
        mandatory: Whether the pattern is mandatory for the state being built.

    Returns:
        ChecklistItem with id "pattern-<pattern id>".
    """
    base = pattern.description or pattern.action or "Follow pattern guidelines"
    evidence_required = bool(
        mandatory
        and pattern.validation is not None
        and pattern.validation.type in EVIDENCE_VALIDATION_TYPES
    )
    return ChecklistItem(
        id=f"pattern-{pattern.id}",
        title=pattern.title,
        description=f"{base} (Verification: {verification_step(pattern)})",
        required=mandatory,
        priority="high" if mandatory else "medium",
        evidence_required=evidence_required,
        source="pattern",
        pattern_id=pattern.id,
    )


class StaticPatternProvider:
    """Serves patterns from an in-memory list."""

    def __init__(self, patterns: Optional[Sequence[Pattern]] = None):
        self.patterns = list(patterns or [])

    def get_patterns_for_state(self, state: str) -> PatternSet:
        return select_for_state(self.patterns, state)

    def find_pattern(self, pattern_id: str) -> Optional[Pattern]:
        return find_pattern(self.patterns, pattern_id)


class YamlPatternProvider:
    """Serves patterns loaded from a YAML file; a missing file means no patterns."""

    def __init__(self, patterns_file: Path):
        self.patterns_file = Path(patterns_file)
        self._patterns: Optional[List[Pattern]] = None

    def load(self) -> List[Pattern]:
        """
        Load and parse the patterns file once.

        Raises:
            ChecklistConfigurationError: If the file is not valid YAML or a pattern is malformed.
        """
        if self._patterns is not None:
            return self._patterns

        if not self.patterns_file.exists():
            self._patterns = []
            return self._patterns

        try:
            data = yaml.safe_load(self.patterns_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ChecklistConfigurationError(f"Invalid YAML in {self.patterns_file}: {e}")

        entries = data.get("patterns", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ChecklistConfigurationError(
                f"{self.patterns_file}: 'patterns' must be a list"
            )

        try:
            self._patterns = [Pattern.from_dict(entry) for entry in entries]
        except ValueError as e:
            raise ChecklistConfigurationError(f"{self.patterns_file}: {e}")

        logger.debug(f"Loaded {len(self._patterns)} pattern(s) from {self.patterns_file}")
        return self._patterns

    def get_patterns_for_state(self, state: str) -> PatternSet:
        return select_for_state(self.load(), state)

    def find_pattern(self, pattern_id: str) -> Optional[Pattern]:
        return find_pattern(self.load(), pattern_id)
