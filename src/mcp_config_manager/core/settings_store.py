"""
Settings store.

Owns the in-memory copy of ``settings.json``. Readers get deep-copied
snapshots; writers go through ``transaction()``, which serializes mutations,
persists the new state and only then makes it visible.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from pydantic import ValidationError as PydanticValidationError

from mcp_config_manager.core import files
from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.exceptions import (
    ConfigManagerError, MalformedConfigError, ValidationError
)
from mcp_config_manager.core.models import ClientSettings, Settings
from mcp_config_manager.core.paths import BUILT_IN_NAMES, default_config_paths
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


def default_settings(max_backups: int = 10) -> Settings:
    paths = default_config_paths()
    return Settings(
        max_backups=max_backups,
        sync_clients=False,
        clients={
            client_id: ClientSettings(
                name=name, config_path=paths[client_id], enabled=True, built_in=True
            )
            for client_id, name in BUILT_IN_NAMES.items()
        },
    )


def _ensure_built_ins(settings: Settings) -> bool:
    """Add missing built-in clients and fill in their default paths."""
    changed = False
    paths = default_config_paths()
    for client_id, name in BUILT_IN_NAMES.items():
        client = settings.clients.get(client_id)
        if client is None:
            settings.clients[client_id] = ClientSettings(
                name=name, config_path=paths[client_id], enabled=True, built_in=True
            )
            changed = True
            continue
        if not client.config_path:
            client.config_path = paths[client_id]
            changed = True
        if not client.built_in:
            client.built_in = True
            changed = True
    return changed


def _drop_dangling_groups(settings: Settings) -> bool:
    """Clear group references that point nowhere and members that no longer exist."""
    changed = False
    for client_id, client in settings.clients.items():
        if client.sync_group and settings.group_of(client_id) is None:
            logger.warning(
                f"Client '{client_id}' referenced missing sync group '{client.sync_group}'"
            )
            client.sync_group = None
            changed = True
    for group_id, group in settings.sync_groups.items():
        members = [m for m in group.members if m in settings.clients]
        if members != group.members:
            group.members = members
            changed = True
    return changed


class SettingsStore:
    """Persistent settings with serialized, commit-then-swap updates."""

    def __init__(
        self,
        path: Path,
        backups: Optional[BackupManager] = None,
        default_max_backups: int = 10,
    ):
        self.path = Path(path)
        self.backups = backups
        self.default_max_backups = default_max_backups
        self._settings = default_settings(default_max_backups)
        self._lock = asyncio.Lock()
        self._loaded = False

    @property
    def max_backups(self) -> int:
        return self._settings.max_backups

    async def load(self) -> Settings:
        """
        Load ``settings.json``, creating it with defaults if missing.

        Raises:
            MalformedConfigError: the file is not valid JSON or not valid
                settings. It is left untouched and nothing is loaded, so a
                later transaction cannot overwrite it with defaults.
        """
        async with self._lock:
            try:
                data = await files.read_json(self.path)
            except MalformedConfigError as e:
                logger.error(f"Failed to parse settings: {e.message}")
                raise

            if data is None:
                settings = default_settings(self.default_max_backups)
                await files.write_json(self.path, settings.to_json_dict())
                logger.info(f"Created default settings at {self.path}")
                self._settings = settings
                self._loaded = True
                return self.current()

            try:
                settings = Settings.model_validate(data)
            except PydanticValidationError as e:
                logger.error(f"Invalid settings in {self.path}: {e}")
                raise MalformedConfigError(
                    self.path, f"invalid settings: {e.error_count()} validation errors"
                ) from e

            repaired = _ensure_built_ins(settings)
            repaired = _drop_dangling_groups(settings) or repaired
            if repaired:
                await self._flush(settings)
                logger.info("Updated settings with built-in client defaults")

            self._settings = settings
            self._loaded = True
            logger.debug(
                "Loaded settings",
                extra={
                    "clients": sorted(settings.clients),
                    "sync_groups": sorted(settings.sync_groups),
                },
            )
            return self.current()

    def current(self) -> Settings:
        """Deep-copied snapshot of the committed settings."""
        return self._settings.model_copy(deep=True)

    async def _flush(self, settings: Settings) -> None:
        if self.backups is not None:
            await self.backups.backup(self.path)
        await files.write_json(self.path, settings.to_json_dict())

    async def save(self, settings: Settings) -> Settings:
        """Replace the settings wholesale."""
        async with self.transaction() as draft:
            for field_name in Settings.model_fields:
                setattr(draft, field_name, getattr(settings, field_name))
        return self.current()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Settings]:
        """
        Mutate settings atomically.

        Yields a draft copy. When the block exits normally the draft is
        re-validated, written to disk and then swapped in. If the block
        raises, or the write fails, the committed settings are untouched.
        """
        async with self._lock:
            if not self._loaded:
                raise ConfigManagerError(
                    f"Settings were not loaded from {self.path}; refusing to write",
                    error_code="SETTINGS_NOT_LOADED",
                    details={"path": str(self.path)},
                )
            draft = self.current()
            yield draft
            try:
                committed = Settings.model_validate(draft.to_json_dict())
            except PydanticValidationError as e:
                errors = e.errors(include_url=False, include_context=False)
                raise ValidationError("Invalid settings", details={"errors": errors}) from e
            await self._flush(committed)
            self._settings = committed

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[Settings]:
        """
        Hold the settings lock without changing anything.

        The yielded snapshot stays current for the whole block, so file
        targets chosen from it cannot go stale under a concurrent membership
        change.
        """
        async with self._lock:
            yield self.current()
