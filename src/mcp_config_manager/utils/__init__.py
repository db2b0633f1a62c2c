"""Utility modules for MCP Config Manager."""

from mcp_config_manager.utils.logging import get_logger, setup_logging
from mcp_config_manager.utils.config import Config, get_config

__all__ = [
    "get_logger",
    "setup_logging",
    "Config",
    "get_config",
]
