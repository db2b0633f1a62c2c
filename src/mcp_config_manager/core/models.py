"""
Data models for MCP Config Manager.

Settings, clients and sync groups are Pydantic models persisted to
``settings.json`` with camelCase keys. Server definitions stay plain
dictionaries so that whatever a client wrote survives a round trip
unchanged; ``ServerDefinition`` only checks their structural shape.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MCP_SERVERS_KEY = "mcpServers"

# Keys that only ever live in response payloads, never on disk.
TRANSIENT_KEYS = frozenset({"enabled", "_conflicts", "_sources"})

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

ActiveSet = Dict[str, Dict[str, Any]]


class InspectorConfig(BaseModel):
    """Debug/inspector sub-config of a server definition."""

    model_config = ConfigDict(extra="allow")

    enabled: Optional[bool] = None
    host: Optional[str] = None
    port: Optional[int] = None


class ServerDefinition(BaseModel):
    """Structural shape of one entry under ``mcpServers``."""

    model_config = ConfigDict(extra="allow")

    command: Optional[str] = None
    args: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    type: Optional[str] = Field(default=None, description="stdio, sse, ...")
    url: Optional[str] = None
    sse: Optional[str] = None
    sseUrl: Optional[str] = None
    inspector: Optional[InspectorConfig] = None


def strip_transient(definition: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a definition without response-only keys."""
    return {k: v for k, v in definition.items() if k not in TRANSIENT_KEYS}


def validate_definitions(servers: Any, source: str = "payload") -> ActiveSet:
    """
    Check that ``servers`` is a mapping of name -> definition object.

    Raises:
        ValueError: when the shape is wrong (callers wrap it)
    """
    if not isinstance(servers, dict):
        raise ValueError(f"{source}: '{MCP_SERVERS_KEY}' must be an object")
    for name, definition in servers.items():
        if not isinstance(definition, dict):
            raise ValueError(f"{source}: server '{name}' must be an object")
        ServerDefinition.model_validate(strip_transient(definition))
    return servers


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ClientSettings(_CamelModel):
    """One host application whose MCP servers are managed."""

    name: str
    config_path: Optional[str] = Field(default=None, alias="configPath")
    enabled: bool = True
    built_in: bool = Field(default=False, alias="builtIn")
    sync_group: Optional[str] = Field(default=None, alias="syncGroup")


class SyncGroup(_CamelModel):
    """Clients sharing one active-config file."""

    members: List[str] = Field(default_factory=list)
    config_path: str = Field(alias="configPath")


class Settings(_CamelModel):
    """Contents of ``settings.json``."""

    max_backups: int = Field(default=10, ge=0, alias="maxBackups")
    sync_clients: bool = Field(default=False, alias="syncClients")
    clients: Dict[str, ClientSettings] = Field(default_factory=dict)
    sync_groups: Dict[str, SyncGroup] = Field(default_factory=dict, alias="syncGroups")

    @field_validator("clients")
    @classmethod
    def validate_client_ids(cls, v: Dict[str, ClientSettings]) -> Dict[str, ClientSettings]:
        for client_id in v:
            if not CLIENT_ID_PATTERN.match(client_id):
                raise ValueError(f"Invalid client id: {client_id!r}")
        return v

    def group_of(self, client_id: str) -> Optional[SyncGroup]:
        """The live sync group a client belongs to, if any."""
        client = self.clients.get(client_id)
        if client is None or not client.sync_group:
            return None
        group = self.sync_groups.get(client.sync_group)
        if group is None or client_id not in group.members:
            return None
        return group

    def enabled_clients(self) -> List[str]:
        return [cid for cid, client in self.clients.items() if client.enabled]


class ClientUpdate(_CamelModel):
    """Partial update of a client; group membership is managed elsewhere."""

    name: Optional[str] = None
    config_path: Optional[str] = Field(default=None, alias="configPath")
    enabled: Optional[bool] = None


class SettingsUpdate(_CamelModel):
    """Partial update accepted by ``POST /settings``."""

    max_backups: Optional[int] = Field(default=None, ge=0, alias="maxBackups")
    sync_clients: Optional[bool] = Field(default=None, alias="syncClients")
    clients: Optional[Dict[str, ClientUpdate]] = None
