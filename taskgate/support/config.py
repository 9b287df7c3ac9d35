"""
Workflow configuration loaded from <context>/config.yaml.

Example file:

    rate_limit:
      enabled: true
    checklist:
      initialize_on_entry: [REVIEWING]
    queue:
      order: priority
      auto_activate_next: true
    archive:
      after_days: 30

Environment overrides (applied after the file):
- TASKGATE_RATE_LIMIT: "off"/"false"/"0" disables advice, "on"/"true"/"1" enables it
- TASKGATE_QUEUE_ORDER: "priority" or "fifo"
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from taskgate.constants import DEFAULT_ARCHIVE_AFTER_DAYS
from taskgate.core.exceptions import ConfigError
from taskgate.core.models import STATE_SEQUENCE
from taskgate.core.priority import ORDERINGS

logger = logging.getLogger(__name__)

RATE_LIMIT_ENV = "TASKGATE_RATE_LIMIT"
QUEUE_ORDER_ENV = "TASKGATE_QUEUE_ORDER"

_TRUE_WORDS = {"1", "true", "on", "yes"}
_FALSE_WORDS = {"0", "false", "off", "no"}


@dataclass
class WorkflowConfig:
    """Tunable workflow policy."""

    rate_limit_enabled: bool = True
    initialize_on_entry: List[str] = field(default_factory=lambda: ["REVIEWING"])
    queue_order: str = "priority"
    auto_activate_next: bool = True
    archive_after_days: int = DEFAULT_ARCHIVE_AFTER_DAYS

    def validate(self) -> None:
        """Validate values after loading.

        Raises:
            ConfigError: If any value is out of range.
        """
        unknown = [s for s in self.initialize_on_entry if s not in STATE_SEQUENCE]
        if unknown:
            raise ConfigError(
                f"checklist.initialize_on_entry has unknown state(s): {', '.join(unknown)}"
            )
        if self.queue_order not in ORDERINGS:
            raise ConfigError(
                f"queue.order must be one of: {', '.join(sorted(ORDERINGS))} "
                f"(got '{self.queue_order}')"
            )
        if self.archive_after_days < 0:
            raise ConfigError("archive.after_days must not be negative")


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE_WORDS | _FALSE_WORDS:
        return value.strip().lower() in _TRUE_WORDS
    raise ConfigError(f"{key} must be a boolean (got {value!r})")


def config_from_dict(data: Dict[str, Any]) -> WorkflowConfig:
    """Build a config from parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a YAML mapping")

    config = WorkflowConfig()

    rate_limit = _section(data, "rate_limit")
    if "enabled" in rate_limit:
        config.rate_limit_enabled = _as_bool(rate_limit["enabled"], "rate_limit.enabled")

    checklist = _section(data, "checklist")
    if "initialize_on_entry" in checklist:
        states = checklist["initialize_on_entry"] or []
        if not isinstance(states, list):
            raise ConfigError("checklist.initialize_on_entry must be a list of states")
        config.initialize_on_entry = [str(s).upper() for s in states]

    queue = _section(data, "queue")
    if "order" in queue:
        config.queue_order = str(queue["order"]).lower()
    if "auto_activate_next" in queue:
        config.auto_activate_next = _as_bool(
            queue["auto_activate_next"], "queue.auto_activate_next"
        )

    archive = _section(data, "archive")
    if "after_days" in archive:
        try:
            config.archive_after_days = int(archive["after_days"])
        except (TypeError, ValueError):
            raise ConfigError(
                f"archive.after_days must be an integer (got {archive['after_days']!r})"
            )

    return config


def apply_env_overrides(config: WorkflowConfig, env: Mapping[str, str]) -> WorkflowConfig:
    rate_limit = env.get(RATE_LIMIT_ENV)
    if rate_limit:
        config.rate_limit_enabled = _as_bool(rate_limit, RATE_LIMIT_ENV)
    queue_order = env.get(QUEUE_ORDER_ENV)
    if queue_order:
        config.queue_order = queue_order.strip().lower()
    return config


def load_config(
    config_file: Path, env: Optional[Mapping[str, str]] = None
) -> WorkflowConfig:
    """
    Load workflow configuration.

    A missing file yields the defaults.

    Args:
        config_file: Path to config.yaml.
        env: Environment mapping (defaults to os.environ).

    Returns:
        Validated WorkflowConfig.

    Raises:
        ConfigError: If the file is not valid YAML or holds invalid values.
    """
    config = WorkflowConfig()
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_file}: {e}")
        config = config_from_dict(data)
        logger.debug(f"Loaded workflow config from {config_file}")

    config = apply_env_overrides(config, os.environ if env is None else env)
    config.validate()
    return config
