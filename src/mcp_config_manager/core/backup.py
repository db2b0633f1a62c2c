"""
Backups taken before every overwrite of a managed file.

Each backup is a copy named ``backup-<basename>-<timestamp>.json`` in a
``mcp-backups`` directory next to the original. Timestamps are UTC ISO 8601
with ``:`` and ``.`` replaced by ``-``, so lexicographic order is time order
and pruning can keep the newest entries by sorting names.
"""

import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from mcp_config_manager.core.files import run_sync
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)

BACKUP_DIR_NAME = "mcp-backups"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 (microsecond precision, UTC) with filesystem-illegal chars replaced."""
    moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S.%f") + "Z"
    return iso.replace(":", "-").replace(".", "-")


def backup_prefix(file_path: Path) -> str:
    return f"backup-{file_path.name}-"


def backup_name_pattern(file_path: Path) -> "re.Pattern[str]":
    """Matches this file's backups only, not those of a sibling sharing its prefix."""
    return re.compile(
        re.escape(backup_prefix(file_path))
        + r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z\.json"
    )


class BackupManager:
    """Creates and prunes timestamped backups of config files."""

    def __init__(
        self,
        max_backups: Union[int, Callable[[], int]] = 10,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize backup manager.

        Args:
            max_backups: Retention count, or a callable returning the current
                one (settings can change it at runtime)
            clock: Source of backup timestamps
        """
        self._max_backups = max_backups
        self.clock = clock

    @property
    def max_backups(self) -> int:
        if callable(self._max_backups):
            return self._max_backups()
        return self._max_backups

    @staticmethod
    def backup_dir_for(file_path: Union[str, Path]) -> Path:
        return Path(file_path).parent / BACKUP_DIR_NAME

    def list_backups(self, file_path: Union[str, Path]) -> List[Path]:
        """Backups of ``file_path``, newest first."""
        file_path = Path(file_path)
        backup_dir = self.backup_dir_for(file_path)
        if not backup_dir.is_dir():
            return []
        pattern = backup_name_pattern(file_path)
        names = [
            entry.name for entry in backup_dir.iterdir() if pattern.fullmatch(entry.name)
        ]
        return [backup_dir / name for name in sorted(names, reverse=True)]

    def _backup_sync(self, file_path: Path) -> Optional[Path]:
        if not file_path.exists():
            logger.debug(f"Skipping backup for non-existent file: {file_path}")
            return None

        backup_dir = self.backup_dir_for(file_path)
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            stamp = format_timestamp(self.clock())
            backup_path = backup_dir / f"{backup_prefix(file_path)}{stamp}.json"
            shutil.copy2(file_path, backup_path)
            logger.debug(f"Created backup for {file_path} at {backup_path}")

            stale = self.list_backups(file_path)[self.max_backups:]
            if stale:
                logger.debug(
                    f"Cleaning up {len(stale)} old backups for {file_path.name}"
                )
            for old in stale:
                old.unlink(missing_ok=True)
            return backup_path
        except OSError as e:
            # A failed backup must never block the write that follows it.
            logger.error(f"Failed to create or clean up backups for {file_path}: {e}")
            return None

    async def backup(self, file_path: Union[str, Path]) -> Optional[Path]:
        """
        Back up ``file_path`` and prune old copies.

        Returns:
            Path of the new backup, or None when the file did not exist or
            the backup failed (failures are logged, not raised)
        """
        return await run_sync(self._backup_sync, Path(file_path))
