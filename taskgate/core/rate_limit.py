"""
Rate-limit advisor for workflow state changes.

Advice only: a state change that follows too quickly after the previous one
produces a warning string and a WARNING log record, never an exception.
"""

import logging
from datetime import datetime
from typing import Optional

from taskgate.constants import (
    RAPID_CHANGE_SECONDS,
    RECENT_CHANGE_SECONDS,
    TYPICAL_STATE_DURATIONS,
)
from taskgate.core.naming import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


def rapid_change_message(seconds: int) -> str:
    lines = [
        f"RAPID STATE CHANGE DETECTED ({seconds} seconds since last change)",
        "",
        "Real work typically takes:",
    ]
    lines.extend(f"  - {label}: {duration}" for label, duration in TYPICAL_STATE_DURATIONS)
    lines.extend(["", "Are you sure the work is complete?"])
    return "\n".join(lines)


def recent_change_message(minutes: int) -> str:
    return f"State changed recently ({minutes} minutes ago)"


class RateLimitAdvisor:
    """Produces advisory warnings for suspiciously quick state changes."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def check(self, state_entered_at: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
        """
        Advise on the time elapsed since the current state was entered.

        Args:
            state_entered_at: Stored stateEnteredAt value (may be missing or garbage).
            now: Reference time (defaults to the current UTC time).

        Returns:
            Warning text, or None when no advice applies.
        """
        if not self.enabled:
            return None

        entered = parse_timestamp(state_entered_at)
        if entered is None:
            return None

        elapsed = ((now or utc_now()) - entered).total_seconds()
        if elapsed < 0:
            # Clock skew; treat as no information
            return None

        if elapsed < RAPID_CHANGE_SECONDS:
            message = rapid_change_message(int(elapsed))
        elif elapsed < RECENT_CHANGE_SECONDS:
            message = recent_change_message(int(elapsed // 60))
        else:
            return None

        logger.warning(message)
        return message
