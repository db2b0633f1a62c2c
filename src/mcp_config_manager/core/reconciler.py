"""
Reconciliation engine.

Combines the registry with client and sync-group active sets into the
views the HTTP layer serves, and turns a saved view back into a registry
update plus one active-set write.
"""

import copy
import shutil
from typing import Any, Dict, List, Optional

from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.client_config import ClientConfigStore
from mcp_config_manager.core.comparison import servers_equal, structural_equal
from mcp_config_manager.core.exceptions import (
    ConfigManagerError, NotFoundError, ProtectedClientError, ValidationError
)
from mcp_config_manager.core.locks import PathLocks
from mcp_config_manager.core.models import (
    CLIENT_ID_PATTERN, MCP_SERVERS_KEY, TRANSIENT_KEYS, ActiveSet, ClientSettings,
    ClientUpdate, Settings, SettingsUpdate, strip_transient, validate_definitions
)
from mcp_config_manager.core.presets import PresetStore
from mcp_config_manager.core.registry import RegistryStore
from mcp_config_manager.core.settings_store import SettingsStore
from mcp_config_manager.core.sync_groups import SyncGroupManager
from mcp_config_manager.utils.config import Config
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)

RESOLVABLE_COMMANDS = {"npm", "npx", "node", "yarn", "pnpm"}


def overlay(registry: ActiveSet, active_set: ActiveSet) -> Dict[str, Dict[str, Any]]:
    """
    Registry entries annotated with ``enabled = name in active_set``.

    Enabled entries carry the active file's values. Names only present in
    the active set are added as enabled.
    """
    view = RegistryStore.annotate(registry)
    for name, definition in active_set.items():
        view[name] = {**copy.deepcopy(strip_transient(definition)), "enabled": True}
    return view


class ReconciliationEngine:
    """Views, saves and client management over the config stores."""

    def __init__(
        self,
        settings_store: SettingsStore,
        registry: RegistryStore,
        client_store: ClientConfigStore,
        sync_groups: SyncGroupManager,
        presets: PresetStore,
    ):
        self.settings_store = settings_store
        self.registry = registry
        self.client_store = client_store
        self.sync_groups = sync_groups
        self.presets = presets

    @classmethod
    def from_config(cls, config: Config) -> "ReconciliationEngine":
        """Wire the stores for the data directory named by ``config``."""
        locks = PathLocks()
        settings_store = SettingsStore(
            config.get_settings_path(),
            default_max_backups=config.storage.default_max_backups,
        )
        backups = BackupManager(lambda: settings_store.max_backups)
        settings_store.backups = backups

        registry = RegistryStore(config.get_registry_path(), backups, locks)
        client_store = ClientConfigStore(config.get_configs_dir(), backups, locks)
        sync_groups = SyncGroupManager(settings_store, client_store)
        presets = PresetStore(config.get_presets_path(), backups, locks)
        return cls(settings_store, registry, client_store, sync_groups, presets)

    async def start(self) -> Settings:
        """Load settings and make sure the registry file exists."""
        settings = await self.settings_store.load()
        await self.registry.read()
        return settings

    # Views

    async def client_view(self, client_id: str) -> Dict[str, Any]:
        """Combined registry + active view for one client."""
        async with self.settings_store.locked() as settings:
            active_set = await self.client_store.read(settings, client_id)
        registry = await self.registry.read()
        return {MCP_SERVERS_KEY: overlay(registry, active_set)}

    async def group_view(self, group_id: str) -> Dict[str, Any]:
        """Combined registry + active view for one sync group."""
        async with self.settings_store.locked() as settings:
            active_set = await self.client_store.read_group(settings, group_id)
        registry = await self.registry.read()
        return {MCP_SERVERS_KEY: overlay(registry, active_set)}

    async def aggregated_view(self) -> Dict[str, Any]:
        """
        Union of every enabled client's active set.

        Each name carries ``_sources`` (client ids, in settings order, no
        duplicates) and ``_conflicts``. Later occurrences are compared against
        the first recorded value only. Registry names no enabled client uses
        are listed as disabled with no sources.
        """
        combined: Dict[str, Dict[str, Any]] = {}
        async with self.settings_store.locked() as settings:
            active_sets = [
                (client_id, await self.client_store.read(settings, client_id))
                for client_id in settings.enabled_clients()
            ]

        for client_id, active_set in active_sets:
            for name, definition in active_set.items():
                entry = combined.get(name)
                if entry is None:
                    combined[name] = {
                        **copy.deepcopy(strip_transient(definition)),
                        "enabled": True,
                        "_sources": [client_id],
                        "_conflicts": False,
                    }
                    continue
                if not structural_equal(entry, definition, TRANSIENT_KEYS):
                    if not entry["_conflicts"]:
                        logger.debug(f"Conflicting definitions for server '{name}'")
                    entry["_conflicts"] = True
                if client_id not in entry["_sources"]:
                    entry["_sources"].append(client_id)

        registry = await self.registry.read()
        for name, definition in registry.items():
            if name not in combined:
                combined[name] = {
                    **copy.deepcopy(strip_transient(definition)),
                    "enabled": False,
                    "_sources": [],
                    "_conflicts": False,
                }
        return {MCP_SERVERS_KEY: combined}

    async def view(
        self, client_id: Optional[str] = None, group_id: Optional[str] = None
    ) -> Dict[str, Any]:
        if group_id:
            return await self.group_view(group_id)
        if client_id:
            return await self.client_view(client_id)
        return await self.aggregated_view()

    async def check_configs_differ(self) -> Dict[str, Any]:
        """
        Compare the original files of all enabled clients.

        Skipped (no difference) while syncing is off or fewer than two
        enabled clients have a config path. A missing original reads as
        empty; a malformed one raises MalformedConfigError.
        """
        settings = self.settings_store.current()
        if not settings.sync_clients:
            logger.debug("Sync is off, skipping config difference check")
            return {
                "configsDiffer": False,
                "differences": [],
                "message": "Sync is disabled, comparison skipped.",
            }

        candidates = [
            (client_id, client)
            for client_id, client in settings.clients.items()
            if client.enabled and client.config_path
        ]
        if len(candidates) < 2:
            return {"configsDiffer": False, "differences": []}

        originals = [
            (client_id, client, await self.client_store.read_original(client))
            for client_id, client in candidates
        ]
        first_id, first_client, first_servers = originals[0]
        differences: List[Dict[str, str]] = []
        for client_id, client, servers in originals[1:]:
            if not servers_equal(first_servers, servers, ignore_keys=()):
                differences.append({
                    "client1": first_id,
                    "client2": client_id,
                    "message": f"{first_client.name} and {client.name} configurations differ.",
                })
                logger.info(f"Difference detected between {first_id} and {client_id}")

        return {"configsDiffer": bool(differences), "differences": differences}

    @staticmethod
    def has_changed(before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> bool:
        """Whether two ``mcpServers`` maps differ, ignoring response-only keys."""
        return not servers_equal(before, after)

    async def config_differs(
        self,
        payload: Any,
        client_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Whether saving ``payload`` would change the target's active set."""
        self._require_target(client_id, group_id)
        proposed = self.active_set_of(self._parse_payload(payload))
        async with self.settings_store.locked() as settings:
            if group_id:
                current = await self.client_store.read_group(settings, group_id)
            else:
                current = await self.client_store.read(settings, client_id)
        return {
            "configDiffers": self.has_changed(current, proposed),
            "enabledServers": sorted(proposed),
        }

    # Saves

    @staticmethod
    def _parse_payload(payload: Any) -> ActiveSet:
        if not isinstance(payload, dict) or MCP_SERVERS_KEY not in payload:
            raise ValidationError(
                f"Invalid configuration data: expected an object with '{MCP_SERVERS_KEY}'"
            )
        try:
            return validate_definitions(payload[MCP_SERVERS_KEY])
        except ValueError as e:
            raise ValidationError(f"Invalid configuration data: {e}") from e

    @staticmethod
    def _require_target(client_id: Optional[str], group_id: Optional[str]) -> None:
        if not client_id and not group_id:
            raise ValidationError(
                "Select a client or sync group; the aggregated view cannot be saved",
                error_code="NO_TARGET",
            )

    @staticmethod
    def _check_target(
        settings: Settings, client_id: Optional[str], group_id: Optional[str]
    ) -> None:
        if group_id:
            if group_id not in settings.sync_groups:
                raise NotFoundError("sync group", group_id)
        elif client_id not in settings.clients:
            raise NotFoundError("client", client_id)

    @staticmethod
    def active_set_of(servers: ActiveSet) -> ActiveSet:
        """Entries marked ``enabled: true``, with transient keys removed."""
        return {
            name: strip_transient(definition)
            for name, definition in servers.items()
            if definition.get("enabled") is True
        }

    async def save(
        self,
        payload: Any,
        client_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Persist a combined view.

        Every entry is upserted into the registry (transient keys removed);
        the entries marked ``enabled: true`` become the active set of the
        target. A client in a sync group saves to the group's file.

        Raises:
            ValidationError: no target, or a payload of the wrong shape
            NotFoundError: unknown client or group
        """
        self._require_target(client_id, group_id)
        servers = self._parse_payload(payload)
        self._check_target(self.settings_store.current(), client_id, group_id)
        active_set = self.active_set_of(servers)

        await self.registry.merge(servers)

        # Membership may have changed while the registry was written; the
        # target is picked and written with the settings lock held.
        async with self.settings_store.locked() as settings:
            self._check_target(settings, client_id, group_id)
            if not group_id and settings.group_of(client_id) is not None:
                group_id = settings.clients[client_id].sync_group

            if group_id:
                target = await self.client_store.write_group(settings, group_id, active_set)
                affected = list(settings.sync_groups[group_id].members)
            else:
                target = await self.client_store.write(settings, client_id, active_set)
                affected = [client_id]

            result: Dict[str, Any] = {
                "message": "Configuration saved successfully.",
                "target": str(target.path),
                "groupId": group_id,
                "affectedClients": affected,
                "enabledServers": sorted(active_set),
            }
            if group_id and settings.sync_clients:
                result.update(await self._propagate(settings, affected, active_set))

        logger.info(
            f"Saved {len(active_set)} enabled servers to {target.path}",
            extra={"target": str(target.path), "clients": affected},
        )
        return result

    async def _propagate(
        self, settings: Settings, members: List[str], active_set: ActiveSet
    ) -> Dict[str, Any]:
        """Mirror a group's active set into its enabled members' original files."""
        synced: List[str] = []
        errors: List[Dict[str, str]] = []
        for member in members:
            client = settings.clients.get(member)
            if client is None or not client.enabled:
                continue
            original = self.client_store.original_path(client)
            if original is None:
                continue
            try:
                await self.client_store.write_path(original, active_set)
                synced.append(member)
                logger.info(f"Synced configuration to original client path: {original}")
            except ConfigManagerError as e:
                logger.error(f"Failed to sync configuration to {original}: {e}")
                errors.append({"clientId": member, "error": e.message})
        return {"syncedClients": synced, "syncErrors": errors}

    async def reset(self, client_id: str) -> Dict[str, Any]:
        """Replace a client's active set with its original file's servers."""
        async with self.settings_store.locked() as settings:
            original = await self.client_store.reset(settings, client_id)
        await self.registry.merge(original, overwrite=False)
        return {MCP_SERVERS_KEY: overlay(await self.registry.read(), original)}

    # Client management

    async def list_clients(self) -> Dict[str, Dict[str, Any]]:
        """Clients with metadata of their original and managed files."""
        settings = self.settings_store.current()
        listing = {}
        for client_id, client in settings.clients.items():
            listing[client_id] = {
                **client.to_json_dict(),
                **await self.client_store.file_metadata(client_id, client),
            }
        return listing

    async def upsert_client(
        self,
        client_id: str,
        name: Optional[str] = None,
        config_path: Optional[str] = None,
        enabled: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Create a client or update its name, path and enabled flag."""
        if not client_id or not CLIENT_ID_PATTERN.match(client_id):
            raise ValidationError(
                f"Invalid client id: {client_id!r}",
                details={"pattern": CLIENT_ID_PATTERN.pattern},
            )

        async with self.settings_store.transaction() as draft:
            client = draft.clients.get(client_id)
            if client is None:
                draft.clients[client_id] = ClientSettings(
                    name=name or client_id,
                    config_path=config_path,
                    enabled=True if enabled is None else enabled,
                )
                logger.info(f"Added client '{client_id}'")
            else:
                if name is not None:
                    client.name = name
                if config_path is not None:
                    client.config_path = config_path
                if enabled is not None:
                    client.enabled = enabled
                logger.info(f"Updated client '{client_id}'")
        return self.settings_store.current().clients[client_id].to_json_dict()

    async def delete_client(self, client_id: str) -> Dict[str, Any]:
        """
        Remove a non-built-in client.

        The client leaves its sync group first (which may dissolve it), then
        its managed file is backed up and deleted.
        """
        async with self.settings_store.transaction() as draft:
            client = draft.clients.get(client_id)
            if client is None:
                raise NotFoundError("client", client_id)
            if client.built_in:
                raise ProtectedClientError(client_id)
            before = draft.model_copy(deep=True)
            change = self.sync_groups.detach_client(draft, client_id)
            del draft.clients[client_id]
            await self.sync_groups.finish(before, draft, change)

        await self.sync_groups.cleanup(change)
        await self.client_store.remove(self.client_store.managed_path(client_id))
        logger.info(f"Deleted client '{client_id}'")
        return {"clientId": client_id, **change.to_dict()}

    async def update_settings(self, update: SettingsUpdate) -> Dict[str, Any]:
        """Partial settings update; only known clients can be changed."""
        async with self.settings_store.transaction() as draft:
            if update.max_backups is not None:
                draft.max_backups = update.max_backups
            if update.sync_clients is not None:
                draft.sync_clients = update.sync_clients
            for client_id, change in (update.clients or {}).items():
                client = draft.clients.get(client_id)
                if client is None:
                    raise NotFoundError("client", client_id)
                self._apply_client_update(client, change)
        logger.info("Settings updated")
        return self.settings_store.current().to_json_dict()

    @staticmethod
    def _apply_client_update(client: ClientSettings, change: ClientUpdate) -> None:
        if change.name is not None:
            client.name = change.name
        if change.config_path is not None:
            client.config_path = change.config_path
        if change.enabled is not None:
            client.enabled = change.enabled

    def current_settings(self) -> Settings:
        return self.settings_store.current()

    @staticmethod
    def resolve_command(command: str) -> Dict[str, Any]:
        """Absolute path of a package-manager/runtime executable found on PATH."""
        if not command or not command.strip():
            raise ValidationError("Command is required")
        base = command.split()[0]
        if base not in RESOLVABLE_COMMANDS:
            return {"message": "Not a resolvable command", "path": command}
        resolved = shutil.which(base)
        if resolved is None:
            raise NotFoundError("command", base)
        return {"path": resolved, "originalCommand": command}
