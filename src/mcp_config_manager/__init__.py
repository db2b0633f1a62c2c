"""
MCP Config Manager - keeps MCP server definitions consistent across clients.

Maintains a registry of every known MCP server definition, tracks which of
them each client (Claude, Cursor, ...) has enabled, lets clients share one
configuration through sync groups and backs up every file it overwrites.
"""

__version__ = "1.0.0"
__description__ = "MCP server configuration manager for multiple clients"

# Public API
from mcp_config_manager.core.exceptions import ConfigManagerError
from mcp_config_manager.core.reconciler import ReconciliationEngine

__all__ = [
    "__version__",
    "__description__",
    "ConfigManagerError",
    "ReconciliationEngine",
]
