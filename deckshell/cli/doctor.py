"""
deckshell doctor - environment report

Checks the tools the shell launches (node, npm, pnpm, nmap, tailscale) and
whether the configured server port is free. Read-only.
"""

import asyncio

import click
from rich.console import Console
from rich.table import Table

from deckshell.config import get_config_path
from deckshell.environment import check_command, check_environment, check_port
from deckshell.platform_utils import get_log_dir, get_platform
from deckshell.supervisor import is_development_mode

console = Console()


def _row(table: Table, name: str, available: bool, detail: str) -> None:
    mark = "[green]✓[/green]" if available else "[red]✗[/red]"
    table.add_row(mark, name, detail)


@click.command()
@click.pass_obj
def doctor(settings):
    """Check the local environment"""
    console.print(f"[dim]Platform: {get_platform()}[/dim]")
    console.print(f"[dim]Config: {get_config_path()}[/dim]")
    console.print(f"[dim]Logs: {get_log_dir()}[/dim]")
    mode = "development" if is_development_mode(settings) else "production"
    console.print(f"[dim]Server mode: {mode}[/dim]")

    env = asyncio.run(check_environment(settings))

    table = Table(show_header=True, header_style="bold")
    table.add_column("")
    table.add_column("Check")
    table.add_column("Detail")

    for name, info in (("node", env.node), ("npm", env.npm), ("pnpm", env.pnpm)):
        _row(table, name, info.available, info.version or "not found")

    for name, override in (("nmap", settings.nmap_path), ("tailscale", settings.tailscale_path)):
        info = check_command(name, override)
        _row(table, f"{name} (optional)", info.available, info.version or "not found")

    port = check_port(settings.server_port)
    _row(
        table,
        f"port {port.port}",
        port.available,
        "available" if port.available else "in use",
    )

    console.print(table)

    required_ok = env.node.available and (env.npm.available or env.pnpm.available)
    if not required_ok:
        console.print("✗ [red]Node.js is required[/red] - install from https://nodejs.org/")
        raise SystemExit(1)
