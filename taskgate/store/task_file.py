"""
Task file cache: the current-task.json projection of the active queue entry.

The queue is canonical. This module is the only writer of the cache, and
sync is one-way (queue -> file). Every write is preceded by a backup and
followed by verification; a failed write is rolled back from the most
recent backup.
"""

import hashlib
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from taskgate.constants import CACHE_FILE_NAME
from taskgate.core.exceptions import CacheCorruptedError, SyncError
from taskgate.core.models import STATUS_ARCHIVED, STATUS_DONE, Task
from taskgate.core.naming import backup_stamp, utc_now
from taskgate.support.paths import get_backup_dir, get_cache_file

logger = logging.getLogger(__name__)

BACKUP_PREFIX = f"{CACHE_FILE_NAME}.backup."

CACHE_IN_PROGRESS = "in_progress"
CACHE_COMPLETED = "completed"


def build_cache_document(task: Task) -> Dict[str, Any]:
    """Project a queue task onto the cache document shape."""
    stored = task.to_dict()
    document: Dict[str, Any] = {
        "taskId": task.id,
        "originalGoal": task.goal,
        "status": CACHE_COMPLETED
        if task.status in (STATUS_DONE, STATUS_ARCHIVED)
        else CACHE_IN_PROGRESS,
        "startedAt": task.activated_at or task.created_at,
    }
    if task.completed_at:
        document["completedAt"] = task.completed_at
    document["workflow"] = stored["workflow"]
    document["requirements"] = stored["requirements"]
    if "reviewChecklist" in stored:
        document["reviewChecklist"] = stored["reviewChecklist"]
    if "stateChecklists" in stored:
        document["stateChecklists"] = stored["stateChecklists"]
    return document


def content_hash(document: Dict[str, Any]) -> str:
    """
    Stable sha256 over the fields a cache must share with its queue entry.

    Accepts either a cache document or a stored task dictionary.
    Timestamps outside the workflow are ignored.
    """
    stable = {
        "taskId": document.get("taskId") or document.get("id"),
        "goal": document.get("originalGoal") or document.get("goal"),
        "workflow": document.get("workflow"),
        "requirements": document.get("requirements") or [],
        "stateChecklists": document.get("stateChecklists") or {},
    }
    encoded = json.dumps(stable, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class TaskFileSync:
    """Writes, verifies, backs up and restores current-task.json."""

    def __init__(self, context_root: Path):
        self.context_root = Path(context_root)
        self.cache_file = get_cache_file(self.context_root)
        self.backup_dir = get_backup_dir(self.context_root)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Read the cache document.

        Legacy documents carrying `goal` instead of `originalGoal` are migrated
        in memory.

        Returns:
            Cache dict, or None when the file does not exist.

        Raises:
            CacheCorruptedError: If the file is not a JSON object.
        """
        if not self.cache_file.exists():
            return None
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheCorruptedError(f"Invalid JSON in {self.cache_file}: {e}")
        if not isinstance(data, dict):
            raise CacheCorruptedError(f"{self.cache_file} must contain a JSON object")

        if data.get("goal") and not data.get("originalGoal"):
            data["originalGoal"] = data.pop("goal")
        return data

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def _backups(self):
        if not self.backup_dir.exists():
            return []
        return sorted(p for p in self.backup_dir.iterdir() if p.name.startswith(BACKUP_PREFIX))

    def backup_file(self) -> Optional[Path]:
        """
        Copy the current cache into the backup directory.

        Returns:
            Path of the backup, or None when there is no cache to back up.
        """
        if not self.cache_file.exists():
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = self.backup_dir / f"{BACKUP_PREFIX}{backup_stamp(utc_now())}"
        suffix = 1
        while target.exists():
            target = self.backup_dir / f"{BACKUP_PREFIX}{backup_stamp(utc_now())}-{suffix}"
            suffix += 1
        try:
            shutil.copy2(self.cache_file, target)
        except OSError as e:
            logger.warning(f"Failed to create cache backup: {e}")
            return None
        logger.debug(f"Cache backed up to {target}")
        return target

    def has_backup(self) -> bool:
        return bool(self._backups())

    def rollback_from_backup(self) -> Path:
        """
        Restore the cache from the most recent backup.

        Returns:
            Path of the backup that was restored.

        Raises:
            SyncError: If no backup exists.
        """
        backups = self._backups()
        if not backups:
            raise SyncError(f"No cache backup found in {self.backup_dir}")
        latest = backups[-1]
        self.context_root.mkdir(parents=True, exist_ok=True)
        shutil.copy2(latest, self.cache_file)
        logger.warning(f"Cache restored from backup {latest.name}")
        return latest

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _atomic_write(self, document: Dict[str, Any]) -> None:
        self.context_root.mkdir(parents=True, exist_ok=True)
        temp_file = self.cache_file.with_suffix(".json.tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, default=str)
                f.write("\n")
            os.chmod(temp_file, 0o600)
            temp_file.replace(self.cache_file)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def _verify(self, task: Task, expected: Dict[str, Any]) -> None:
        loaded = self.load()
        if loaded is None:
            raise SyncError("Sync verification failed: cache file missing after write")
        if loaded.get("taskId") != task.id:
            raise SyncError(
                f"Sync verification failed: taskId mismatch. "
                f"Expected: {task.id}, Got: {loaded.get('taskId')}"
            )
        workflow = loaded.get("workflow") or {}
        if workflow.get("currentState") != task.workflow.current_state:
            raise SyncError("Sync verification failed: state mismatch")
        if loaded.get("requirements") != expected.get("requirements"):
            raise SyncError("Sync verification failed: requirements mismatch")
        if loaded.get("reviewChecklist") != expected.get("reviewChecklist"):
            raise SyncError("Sync verification failed: reviewChecklist mismatch")

    def sync_from_queue(
        self,
        task: Task,
        preserve_fields: Sequence[str] = (),
        backup: bool = True,
    ) -> Dict[str, Any]:
        """
        Project a queue task onto the cache.

        Args:
            task: Task as read from the queue.
            preserve_fields: Cache fields to keep from the existing file when present.
            backup: Back up the existing cache before writing.

        Returns:
            The document written.

        Raises:
            SyncError: If writing or verification fails (after rollback when possible).
        """
        try:
            if backup:
                self.backup_file()

            document = build_cache_document(task)
            if preserve_fields:
                try:
                    existing = self.load() or {}
                except CacheCorruptedError:
                    existing = {}
                for name in preserve_fields:
                    if name in existing:
                        document[name] = existing[name]

            self._atomic_write(document)
            self._verify(task, document)
        except (OSError, ValueError, CacheCorruptedError, SyncError) as e:
            if self.has_backup():
                logger.warning("Cache sync failed, rolling back from backup")
                self.rollback_from_backup()
            raise SyncError(f"Sync failed: {e}") from e

        logger.debug(f"Cache synced for task {task.id} ({task.workflow.current_state})")
        return document

    def clear(self) -> Optional[Path]:
        """
        Back up and remove the cache, leaving no task projected.

        Returns:
            Path of the backup, or None when there was no cache.
        """
        backup = self.backup_file()
        if self.cache_file.exists():
            self.cache_file.unlink()
            logger.info(f"Cache removed (backup: {backup.name if backup else 'none'})")
        return backup

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    def detect_manual_edit(self, task: Task) -> bool:
        """
        Whether the cache for this task differs in content from the queue entry.

        Returns False when the cache is missing, unreadable or for another task.
        """
        try:
            cached = self.load()
        except CacheCorruptedError as e:
            logger.warning(f"Failed to detect manual edit: {e}")
            return False
        if cached is None or cached.get("taskId") != task.id:
            return False
        return content_hash(cached) != content_hash(task.to_dict())

    def ensure_consistent(self, task: Task) -> bool:
        """
        Make sure the cache reflects the given queue task, resyncing if not.

        Returns:
            True when a resync happened.
        """
        try:
            cached = self.load()
        except CacheCorruptedError as e:
            logger.warning(f"Cache corrupted, rebuilding from queue: {e}")
            self.sync_from_queue(task)
            return True

        if cached is None:
            logger.info(f"Cache missing, writing it for task {task.id}")
            self.sync_from_queue(task, backup=False)
            return True

        if cached.get("taskId") != task.id:
            logger.warning(
                f"Cache points at task {cached.get('taskId')}, active task is {task.id}; resyncing"
            )
            self.sync_from_queue(task)
            return True

        if content_hash(cached) != content_hash(task.to_dict()):
            logger.warning(f"Manual edit detected in {self.cache_file.name}; restoring from queue")
            self.sync_from_queue(task)
            return True

        return False
