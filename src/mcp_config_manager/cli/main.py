"""
Main CLI interface for MCP Config Manager.

Runs the HTTP server and exposes the engine's read and maintenance
operations on the command line.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

import click
from rich.console import Console
from rich.table import Table

from mcp_config_manager import __version__
from mcp_config_manager.cli.helpers import handle_errors
from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.models import MCP_SERVERS_KEY
from mcp_config_manager.core.reconciler import ReconciliationEngine
from mcp_config_manager.utils.config import Config, get_config, reload_config
from mcp_config_manager.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

T = TypeVar("T")


class CLIContext:
    """CLI context for passing state between commands."""

    def __init__(self):
        self.config: Optional[Config] = None

    def get_config(self) -> Config:
        if self.config is None:
            self.config = get_config()
        return self.config

    def run(self, operation: Callable[[ReconciliationEngine], Awaitable[T]]) -> T:
        """Start an engine for the configured data dir and run one operation on it."""
        config = self.get_config()

        async def _run() -> T:
            engine = ReconciliationEngine.from_config(config)
            await engine.start()
            return await operation(engine)

        return asyncio.run(_run())


# Global CLI context
cli_context = CLIContext()


@click.group()
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug logging"
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, dir_okay=True),
    help="Directory holding settings, registry and managed configs"
)
@click.version_option(version=__version__, prog_name="MCP Config Manager")
def cli(debug: bool, data_dir: Optional[str]):
    """
    Keep MCP server definitions consistent across client applications.

    Maintains a registry of every known server, per-client active sets and
    sync groups of clients that share one configuration.
    """
    overrides: Dict[str, Any] = {}
    if debug:
        overrides["debug"] = True
    if data_dir:
        overrides["storage"] = {"data_dir": data_dir}
    config = reload_config(**overrides) if overrides else get_config()
    cli_context.config = config

    setup_logging(
        level=config.logging.level,
        console_level="DEBUG" if config.debug else config.logging.console_level,
        log_file=config.get_log_file(),
        format_type=config.logging.format_type,
        enable_rich=config.logging.enable_rich,
    )


@cli.command()
@click.option("--host", help="Interface to bind (default from config)")
@click.option("--port", "-p", type=int, help="Port to listen on (default: PORT or 3456)")
@handle_errors
def serve(host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    from mcp_config_manager.api.server import create_api_server

    server = create_api_server(cli_context.get_config())
    server.run(host=host, port=port)


@cli.command("clients")
@click.option(
    "--output-format", "-o",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format"
)
@handle_errors
def clients_cmd(output_format: str):
    """List configured clients and their config files."""
    clients = cli_context.run(lambda engine: engine.list_clients())

    if output_format == "json":
        click.echo(json.dumps(clients, indent=2))
        return

    table = Table(
        title=f"Clients ({len(clients)} total)",
        show_header=True,
        header_style="bold cyan",
        title_style="bold cyan"
    )
    table.add_column("ID", style="green")
    table.add_column("Name")
    table.add_column("Status", width=10)
    table.add_column("Sync group", style="yellow")
    table.add_column("Config path", style="dim")

    for client_id, client in clients.items():
        status = "Enabled" if client["enabled"] else "Disabled"
        if client["builtIn"]:
            status += "*"
        path = client.get("configPath") or "-"
        if not client["originalConfigMeta"]["exists"]:
            path += " (missing)"
        table.add_row(client_id, client["name"], status, client.get("syncGroup") or "-", path)

    console.print("")
    console.print(table)
    console.print("[dim]* built-in client[/dim]")


@cli.command()
@handle_errors
def check():
    """Report whether enabled clients' original configs differ."""
    report = cli_context.run(lambda engine: engine.check_configs_differ())

    if report.get("message"):
        console.print(f"[dim]{report['message']}[/dim]")
    if not report["configsDiffer"]:
        console.print("[green]Client configurations match[/green]")
        return
    for difference in report["differences"]:
        console.print(f"[yellow]{difference['message']}[/yellow]")


def _render_view(title: str, servers: Dict[str, Dict[str, Any]], aggregated: bool) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan", title_style="bold cyan")
    table.add_column("Server", style="green")
    table.add_column("Enabled", width=8)
    if aggregated:
        table.add_column("Sources")
        table.add_column("Conflict", width=8)
    table.add_column("Command", style="dim")

    for name in sorted(servers):
        definition = servers[name]
        command = " ".join([definition.get("command") or definition.get("url") or ""] +
                           [str(a) for a in definition.get("args") or []]).strip()
        row = [name, "yes" if definition.get("enabled") else "no"]
        if aggregated:
            row.append(", ".join(definition.get("_sources", [])) or "-")
            row.append("[red]yes[/red]" if definition.get("_conflicts") else "no")
        row.append(command or "-")
        table.add_row(*row)
    return table


@cli.command()
@click.option("--client", "-c", "client_id", help="Show one client's view")
@click.option("--group", "-g", "group_id", help="Show one sync group's view")
@click.option(
    "--output-format", "-o",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format"
)
@handle_errors
def view(client_id: Optional[str], group_id: Optional[str], output_format: str):
    """Show the combined registry view (aggregated when no client or group is given)."""
    result = cli_context.run(lambda engine: engine.view(client_id=client_id, group_id=group_id))
    servers = result[MCP_SERVERS_KEY]

    if output_format == "json":
        click.echo(json.dumps(result, indent=2))
        return

    if group_id:
        title = f"Sync group {group_id}"
    elif client_id:
        title = f"Client {client_id}"
    else:
        title = "All enabled clients"
    console.print(_render_view(title, servers, aggregated=not (client_id or group_id)))


@cli.command()
@click.argument("client_id")
@handle_errors
def reset(client_id: str):
    """Discard managed edits and re-adopt CLIENT_ID's original config file."""
    result = cli_context.run(lambda engine: engine.reset(client_id))
    enabled = [name for name, d in result[MCP_SERVERS_KEY].items() if d.get("enabled")]
    console.print(f"[green]Reset '{client_id}' ({len(enabled)} servers enabled)[/green]")


@cli.group("sync-group")
def sync_group():
    """Manage sync groups."""


@sync_group.command("create")
@click.argument("client_ids", nargs=-1, required=True)
@handle_errors
def sync_group_create(client_ids: Tuple[str, ...]):
    """Group CLIENT_IDS; the first client's config seeds the group."""
    result = cli_context.run(lambda engine: engine.sync_groups.create_or_join(list(client_ids)))
    console.print(
        f"[green]Created sync group {result['groupId']}[/green] "
        f"with {', '.join(result['members'])}"
    )
    if result["dissolvedGroups"]:
        console.print(f"[dim]Dissolved: {', '.join(result['dissolvedGroups'])}[/dim]")


@sync_group.command("leave")
@click.argument("client_id")
@handle_errors
def sync_group_leave(client_id: str):
    """Take CLIENT_ID out of its sync group."""
    result = cli_context.run(lambda engine: engine.sync_groups.leave(client_id))
    console.print(f"[green]'{client_id}' left sync group {result['groupId']}[/green]")


@sync_group.command("delete")
@click.argument("group_id")
@handle_errors
def sync_group_delete(group_id: str):
    """Dissolve GROUP_ID."""
    result = cli_context.run(lambda engine: engine.sync_groups.delete_group(group_id))
    console.print(
        f"[green]Dissolved {group_id}[/green], released {', '.join(result['released']) or 'nobody'}"
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@handle_errors
def backup(path: Path):
    """Back up PATH into its sibling mcp-backups directory."""

    async def _backup(engine: ReconciliationEngine) -> Optional[Path]:
        manager = BackupManager(engine.current_settings().max_backups)
        return await manager.backup(path)

    created = cli_context.run(_backup)
    if created is None:
        console.print("[red]Backup failed, see log for details[/red]")
        raise SystemExit(1)
    console.print(f"[green]Backup written to {created}[/green]")


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
