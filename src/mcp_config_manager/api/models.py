"""
API models for MCP Config Manager REST endpoints.

Request bodies and the response envelopes used by mutating endpoints and
errors. Views are returned as plain ``{"mcpServers": {...}}`` documents,
the same shape the config files have.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class APIResponse(BaseModel):
    """Base API response model."""

    success: bool = Field(description="Request success status")
    message: str = Field(description="Response message")
    data: Optional[Any] = Field(default=None, description="Response data")
    timestamp: datetime = Field(default_factory=_utc_now, description="Response timestamp")


class ErrorResponse(APIResponse):
    """API error response model."""

    success: bool = Field(default=False, description="Always false for errors")
    error_code: str = Field(description="Error code identifier")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Error details")


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SyncGroupRequest(_Request):
    """Body of ``POST /sync-groups``."""

    client_ids: List[str] = Field(
        default_factory=list, alias="clientIds", description="Clients to group, first one seeds"
    )


class LeaveGroupRequest(_Request):
    """Body of ``POST /sync-groups/leave``."""

    client_id: str = Field(alias="clientId")


class ClientRequest(_Request):
    """Body of ``POST /clients``."""

    id: str = Field(description="Client id, used as the managed file name")
    name: Optional[str] = None
    config_path: Optional[str] = Field(default=None, alias="configPath")
    enabled: Optional[bool] = None


class ResolvePathRequest(_Request):
    """Body of ``POST /resolve-path``."""

    command: str = Field(default="", description="Command line whose executable to locate")


class HealthCheckResponse(APIResponse):
    """Response model for health check."""

    status: str = Field(description="Health status")
    version: str = Field(description="API version")
    uptime_seconds: float = Field(description="API uptime in seconds")
    data_dir: str = Field(description="Directory holding settings and managed configs")
    clients: int = Field(description="Number of configured clients")
    sync_groups: int = Field(description="Number of sync groups")


class PresetsRequest(_Request):
    """Body of ``POST /presets``; replaces every preset."""

    presets: Any = Field(default=None, description="Mapping of preset name to snapshot")
