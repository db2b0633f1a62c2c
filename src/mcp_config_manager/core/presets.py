"""
Preset store.

``presets.json`` is a flat ``{name: {"mcpServers": {...}}}`` table of named
snapshots kept for the UI. It is read and overwritten as a whole and takes
no part in reconciliation.
"""

from pathlib import Path
from typing import Any, Dict

from mcp_config_manager.core import files
from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.exceptions import ValidationError
from mcp_config_manager.core.locks import PathLocks
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


class PresetStore:
    """Reads and overwrites ``presets.json``."""

    def __init__(self, path: Path, backups: BackupManager, locks: PathLocks):
        self.path = Path(path)
        self.backups = backups
        self.locks = locks

    async def read(self) -> Dict[str, Any]:
        """All presets; a missing file is empty, a malformed one raises."""
        async with self.locks.for_path(self.path):
            return await files.read_json(self.path) or {}

    async def write(self, presets: Any) -> Dict[str, Any]:
        """
        Replace every preset (backup first).

        Raises:
            ValidationError: ``presets`` is not an object of objects
        """
        if not isinstance(presets, dict):
            raise ValidationError("Invalid presets data format: expected an object")
        for name, preset in presets.items():
            if not isinstance(preset, dict):
                raise ValidationError(
                    f"Invalid presets data format: preset '{name}' must be an object",
                    details={"preset": name},
                )

        async with self.locks.for_path(self.path):
            await self.backups.backup(self.path)
            await files.write_json(self.path, presets)
        logger.info(f"Saved {len(presets)} presets to {self.path}")
        return presets
