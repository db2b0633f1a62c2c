"""
Registry store: the canonical set of every known server definition.

The registry only grows. Saves upsert into it, nothing in the engine ever
drops a name, so it is always a superset of every active set written
through this process.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Mapping

from mcp_config_manager.core import files
from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.exceptions import MalformedConfigError
from mcp_config_manager.core.locks import PathLocks
from mcp_config_manager.core.models import MCP_SERVERS_KEY, ActiveSet, strip_transient
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


class RegistryStore:
    """Reads and writes ``mcp_server_registry.json``."""

    def __init__(self, path: Path, backups: BackupManager, locks: PathLocks):
        self.path = Path(path)
        self.backups = backups
        self.locks = locks

    async def _read_unlocked(self) -> ActiveSet:
        try:
            data = await files.read_json(self.path)
        except MalformedConfigError as e:
            logger.error(f"Registry file is malformed, treating as empty: {e.message}")
            return {}

        if data is None:
            logger.info(f"Registry file not found, creating {self.path}")
            await files.write_json(self.path, {MCP_SERVERS_KEY: {}})
            return {}

        servers = data.get(MCP_SERVERS_KEY) or {}
        if not isinstance(servers, dict):
            logger.error(f"Registry '{MCP_SERVERS_KEY}' is not an object, treating as empty")
            return {}
        return servers

    async def read(self) -> ActiveSet:
        """
        Return ``{name: definition}`` from the registry file.

        A missing file is created lazily and read as empty. A malformed one
        is logged and read as empty, the read path never fails on it.
        """
        async with self.locks.for_path(self.path):
            return await self._read_unlocked()

    @staticmethod
    def annotate(registry: Mapping[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Copy every entry with ``enabled=False`` attached."""
        return {
            name: {**copy.deepcopy(definition), "enabled": False}
            for name, definition in registry.items()
        }

    async def _write_unlocked(self, registry: Mapping[str, Dict[str, Any]]) -> None:
        await self.backups.backup(self.path)
        await files.write_json(self.path, {MCP_SERVERS_KEY: dict(registry)})

    async def write(self, registry: Mapping[str, Dict[str, Any]]) -> None:
        """Overwrite the registry file (backup first)."""
        async with self.locks.for_path(self.path):
            await self._write_unlocked(registry)
        logger.debug(f"Wrote registry with {len(registry)} servers")

    async def merge(
        self, definitions: Mapping[str, Dict[str, Any]], overwrite: bool = True
    ) -> ActiveSet:
        """
        Upsert definitions into the registry.

        Transient response keys are stripped first. With ``overwrite=False``
        only names the registry does not know yet are added.

        Returns:
            The registry as written
        """
        async with self.locks.for_path(self.path):
            registry = await self._read_unlocked()
            changed = False
            for name, definition in definitions.items():
                if not overwrite and name in registry:
                    continue
                cleaned = strip_transient(definition)
                if registry.get(name) != cleaned:
                    registry[name] = cleaned
                    changed = True
            if changed:
                await self._write_unlocked(registry)
                logger.debug(
                    "Merged servers into registry",
                    extra={"servers": sorted(definitions), "overwrite": overwrite},
                )
            return registry
