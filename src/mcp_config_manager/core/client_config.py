"""
Client config store.

Resolves which file holds a client's active set and reads/writes it. The
original external file of a client is only ever read here (and adopted
once); edits land in the sync-group file or the managed copy under
``configs/``.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from mcp_config_manager.core import files
from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.exceptions import MalformedConfigError, NotFoundError
from mcp_config_manager.core.locks import PathLocks
from mcp_config_manager.core.models import (
    MCP_SERVERS_KEY, ActiveSet, ClientSettings, Settings
)
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)

SYNC_GROUPS_DIR = "sync-groups"


class TargetKind(str, Enum):
    GROUP = "group"
    MANAGED = "managed"


@dataclass(frozen=True)
class ResolvedTarget:
    """The file that holds a client's (or group's) active set."""

    kind: TargetKind
    path: Path
    client_id: Optional[str] = None
    group_id: Optional[str] = None


def extract_servers(data: Optional[Dict[str, Any]], path: Path) -> ActiveSet:
    """The ``mcpServers`` object of a parsed config file; missing means empty."""
    if not data:
        return {}
    servers = data.get(MCP_SERVERS_KEY)
    if servers is None:
        return {}
    if not isinstance(servers, dict):
        raise MalformedConfigError(path, f"'{MCP_SERVERS_KEY}' is not an object")
    return servers


class ClientConfigStore:
    """Reads and writes per-client and per-group active sets."""

    def __init__(self, configs_dir: Path, backups: BackupManager, locks: PathLocks):
        self.configs_dir = Path(configs_dir)
        self.backups = backups
        self.locks = locks

    def managed_path(self, client_id: str) -> Path:
        return self.configs_dir / f"{client_id}.json"

    def group_path(self, group_id: str) -> Path:
        return self.configs_dir / SYNC_GROUPS_DIR / f"{group_id}.json"

    @staticmethod
    def original_path(client: ClientSettings) -> Optional[Path]:
        if not client.config_path:
            return None
        return Path(client.config_path).expanduser()

    async def _ensure_file(self, path: Path) -> None:
        if not (await files.file_metadata(path))["exists"]:
            await files.write_json(path, {MCP_SERVERS_KEY: {}})
            logger.debug(f"Created empty config file {path}")

    async def resolve_group(self, settings: Settings, group_id: str) -> ResolvedTarget:
        """Shared file of a group; ``settings`` should be held under ``SettingsStore.locked()``."""
        group = settings.sync_groups.get(group_id)
        if group is None:
            raise NotFoundError("sync group", group_id)
        path = Path(group.config_path)
        async with self.locks.for_path(path):
            await self._ensure_file(path)
        return ResolvedTarget(TargetKind.GROUP, path, group_id=group_id)

    async def resolve(self, settings: Settings, client_id: str) -> ResolvedTarget:
        """
        Decide which file holds ``client_id``'s active set.

        Precedence, evaluated once in order:

        1. live sync group: the group's shared file (created empty if missing)
        2. existing managed file ``configs/<client_id>.json``
        3. original file exists: parsed, then its text copied verbatim to the
           managed file (one-time adoption). A malformed original raises
           MalformedConfigError and nothing is written.
        4. otherwise an empty ``{"mcpServers": {}}`` managed file

        Raises:
            NotFoundError: unknown client id
            MalformedConfigError: the original file cannot be adopted
        """
        client = settings.clients.get(client_id)
        if client is None:
            raise NotFoundError("client", client_id)

        group = settings.group_of(client_id)
        if group is not None:
            return await self.resolve_group(settings, client.sync_group)

        managed = self.managed_path(client_id)
        target = ResolvedTarget(TargetKind.MANAGED, managed, client_id=client_id)

        async with self.locks.for_path(managed):
            if (await files.file_metadata(managed))["exists"]:
                return target

            original = self.original_path(client)
            text = await files.read_text(original) if original else None
            if text is not None:
                files.parse_json_object(text, original)
                await files.write_text(managed, text)
                logger.info(
                    f"Adopted original config for client '{client_id}'",
                    extra={"client_id": client_id, "original": str(original)},
                )
                return target

            await files.write_json(managed, {MCP_SERVERS_KEY: {}})
            logger.info(f"Created empty managed config for client '{client_id}'")
            return target

    async def read_path(self, path: Path) -> ActiveSet:
        """Active set stored in ``path``; a missing file is empty."""
        data = await files.read_json(path)
        return extract_servers(data, path)

    async def read(self, settings: Settings, client_id: str) -> ActiveSet:
        target = await self.resolve(settings, client_id)
        return await self.read_path(target.path)

    async def read_group(self, settings: Settings, group_id: str) -> ActiveSet:
        target = await self.resolve_group(settings, group_id)
        return await self.read_path(target.path)

    async def read_original(self, client: ClientSettings) -> ActiveSet:
        """Servers in the client's original file, without adopting it."""
        path = self.original_path(client)
        if path is None:
            return {}
        return await self.read_path(path)

    async def write_path(self, path: Path, active_set: ActiveSet) -> None:
        """
        Replace the ``mcpServers`` of ``path`` (backup first).

        Other top-level keys of the file are kept. A file that no longer
        parses is left untouched.

        Raises:
            MalformedConfigError: ``path`` exists but is not a JSON object
        """
        path = Path(path)
        async with self.locks.for_path(path):
            data = await files.read_json(path) or {}
            data[MCP_SERVERS_KEY] = copy.deepcopy(dict(active_set))
            await self.backups.backup(path)
            await files.write_json(path, data)
        logger.debug(f"Wrote {len(active_set)} servers to {path}")

    async def write(
        self, settings: Settings, client_id: str, active_set: ActiveSet
    ) -> ResolvedTarget:
        """Write a client's active set to its group or managed file, never the original."""
        target = await self.resolve(settings, client_id)
        await self.write_path(target.path, active_set)
        return target

    async def write_group(
        self, settings: Settings, group_id: str, active_set: ActiveSet
    ) -> ResolvedTarget:
        target = await self.resolve_group(settings, group_id)
        await self.write_path(target.path, active_set)
        return target

    async def reset(self, settings: Settings, client_id: str) -> ActiveSet:
        """
        Discard managed edits: copy the original file's servers into the
        client's resolved target.
        """
        client = settings.clients.get(client_id)
        if client is None:
            raise NotFoundError("client", client_id)
        original = await self.read_original(client)
        await self.write(settings, client_id, original)
        logger.info(f"Reset config for client '{client_id}' from its original file")
        return original

    async def remove(self, path: Path) -> bool:
        """Back up and delete a managed or group file; absent files are fine."""
        path = Path(path)
        async with self.locks.for_path(path):
            await self.backups.backup(path)
            return await files.delete_file(path)

    async def file_metadata(self, client_id: str, client: ClientSettings) -> Dict[str, Any]:
        """``{exists, mtime}`` of the client's original and managed files."""
        return {
            "originalConfigMeta": await files.file_metadata(self.original_path(client)),
            "managedConfigMeta": await files.file_metadata(self.managed_path(client_id)),
        }
