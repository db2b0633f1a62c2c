"""Core reconciliation functionality."""

from mcp_config_manager.core.exceptions import (
    ConfigManagerError, MalformedConfigError, NotFoundError,
    ProtectedClientError, ValidationError, WriteError,
)
from mcp_config_manager.core.models import ClientSettings, Settings, SyncGroup
from mcp_config_manager.core.reconciler import ReconciliationEngine

__all__ = [
    "ConfigManagerError",
    "MalformedConfigError",
    "NotFoundError",
    "ProtectedClientError",
    "ValidationError",
    "WriteError",
    "ClientSettings",
    "Settings",
    "SyncGroup",
    "ReconciliationEngine",
]
