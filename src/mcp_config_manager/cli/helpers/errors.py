"""
Error handling utilities for CLI commands.
"""

import functools
import sys

import click
from rich.console import Console

from mcp_config_manager.core.exceptions import ConfigManagerError
from mcp_config_manager.utils.logging import get_logger

console = Console()
logger = get_logger(__name__)


def handle_errors(func):
    """Decorator to handle common CLI errors."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except ConfigManagerError as e:
            logger.debug("Command failed", exc_info=True)
            console.print(f"[red]Error: {e.message}[/red]")
            if e.details:
                console.print(f"[dim]{e.details}[/dim]")
            sys.exit(1)
        except Exception as e:
            logger.debug("Unexpected command failure", exc_info=True)
            console.print(f"[red]Error: {e}[/red]")
            console.print("[dim]Use --debug for more details[/dim]")
            sys.exit(1)

    return wrapper
