"""Command-line interface for MCP Config Manager."""
