"""
Path helpers for the context directory.

Provides utilities for resolving the context root and the documents and
backup directory that live under it.
"""

import os
from pathlib import Path
from typing import Optional

from taskgate.constants import (
    BACKUP_DIR_NAME,
    CACHE_FILE_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_CONTEXT_DIR,
    PATTERNS_FILE_NAME,
    QUEUE_FILE_NAME,
)

CONTEXT_DIR_ENV = "TASKGATE_CONTEXT_DIR"


def get_context_root(context_dir: Optional[str] = None) -> Path:
    """Get the absolute path to the context directory.

    Resolution order: explicit argument, TASKGATE_CONTEXT_DIR, then
    .ai-context under the current working directory.

    Args:
        context_dir: Optional explicit directory.

    Returns:
        Absolute Path to the context directory.
    """
    raw = context_dir or os.environ.get(CONTEXT_DIR_ENV) or DEFAULT_CONTEXT_DIR
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    return path


def get_queue_file(context_root: Path) -> Path:
    return context_root / QUEUE_FILE_NAME


def get_cache_file(context_root: Path) -> Path:
    return context_root / CACHE_FILE_NAME


def get_backup_dir(context_root: Path) -> Path:
    return context_root / BACKUP_DIR_NAME


def get_config_file(context_root: Path) -> Path:
    return context_root / CONFIG_FILE_NAME


def get_patterns_file(context_root: Path) -> Path:
    return context_root / PATTERNS_FILE_NAME


def ensure_context_dirs(context_root: Path) -> None:
    """Ensure the context directory and its backup directory exist."""
    context_root.mkdir(parents=True, exist_ok=True)
    get_backup_dir(context_root).mkdir(parents=True, exist_ok=True)
