"""
Priority detection and queue ordering.

Priority is inferred from goal keywords when the caller does not give one.
Queue ordering is a key function so the next-task policy can be swapped.
"""

import re
from typing import Callable, Dict, Tuple

from taskgate.core.models import Task

CRITICAL_KEYWORDS = (
    "fix", "bug", "broken", "security", "down", "blocking", "critical", "urgent",
    "hotfix", "crash", "error", "exception", "fatal", "outage", "breach",
    "vulnerability", "exploit",
)
HIGH_KEYWORDS = (
    "auth", "login", "payment", "deadline", "important", "feature", "customer",
    "production", "release", "deploy", "api", "endpoint", "database", "migration",
    "upgrade",
)
LOW_KEYWORDS = (
    "refactor", "cleanup", "improve", "nice-to-have", "optimization", "tech-debt",
    "documentation", "comment", "style", "formatting", "lint", "polish", "enhancement",
)

PRIORITY_RANK: Dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}

OrderKey = Callable[[Task], Tuple]


def _mentions(goal: str, keywords: Tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(word)}\b", goal) for word in keywords)


def detect_priority(goal: str) -> str:
    """
    Infer a priority from goal keywords.

    Checked from most to least urgent; the first bucket with a whole-word
    match wins, otherwise "medium".
    """
    text = goal.lower()
    if _mentions(text, CRITICAL_KEYWORDS):
        return "critical"
    if _mentions(text, HIGH_KEYWORDS):
        return "high"
    if _mentions(text, LOW_KEYWORDS):
        return "low"
    return "medium"


def priority_order(task: Task) -> Tuple:
    """Most urgent first, then oldest first."""
    return (PRIORITY_RANK.get(task.priority, PRIORITY_RANK["medium"]), task.created_at)


def fifo_order(task: Task) -> Tuple:
    """Oldest first."""
    return (task.created_at,)


ORDERINGS: Dict[str, OrderKey] = {
    "priority": priority_order,
    "fifo": fifo_order,
}
