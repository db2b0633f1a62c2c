"""
API module for MCP Config Manager.

Exposes the reconciliation engine over HTTP with FastAPI.
"""

from .endpoints import ConfigEndpoints
from .server import APIServer, create_api_server

__all__ = [
    "ConfigEndpoints",
    "APIServer",
    "create_api_server",
]
