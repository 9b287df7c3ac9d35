"""Naming helpers: task ids, backup stamps, and timestamp parsing."""

from datetime import datetime, timezone
from typing import Iterable, Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> str:
    """Format a datetime as the ISO-8601 string stored in task documents."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: object) -> Optional[datetime]:
    """
    Parse a stored ISO-8601 timestamp.

    Accepts the trailing "Z" form written by other tools. Naive values are
    taken as UTC.

    Args:
        value: Raw value read from a task document.

    Returns:
        Aware datetime, or None when the value is missing or unparseable.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def derive_task_id(now: datetime, taken: Iterable[str] = ()) -> str:
    """
    Derive a unique task id from the creation time.

    Example: 2026-01-15T10:30:45.123Z -> "task-1768473045123"

    Args:
        now: Creation time.
        taken: Ids already present in the queue.

    Returns:
        Task id in format task-<epoch-ms>, bumped by one millisecond
        until it does not collide with an existing id.
    """
    used = set(taken)
    millis = int(now.timestamp() * 1000)
    candidate = f"task-{millis}"
    while candidate in used:
        millis += 1
        candidate = f"task-{millis}"
    return candidate


def backup_stamp(now: datetime) -> str:
    """
    Compact, lexically sortable stamp for backup file names.

    Args:
        now: Backup time.

    Returns:
        Stamp in format YYYYMMDDTHHMMSSffffff (UTC).
    """
    return now.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
