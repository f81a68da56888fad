"""CLI remote access commands"""

import asyncio
import json

import click
from rich.console import Console

from deckshell.networkos import find_tailscale_command, get_remote_access_status

console = Console()


@click.group()
def remote_group():
    """Remote access (Tailscale)"""
    pass


@remote_group.command()
@click.option("--json", "as_json", is_flag=True, help="Print status as JSON")
@click.pass_obj
def status(settings, as_json):
    """Show Tailscale and serve status"""
    binary = find_tailscale_command(settings.tailscale_path)
    result = asyncio.run(get_remote_access_status(binary))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    ts = result.tailscale
    if not ts.installed:
        console.print("✗ Tailscale not installed - see https://tailscale.com/download")
        return

    console.print(f"✓ Tailscale installed, state: [cyan]{ts.backend_state or 'unknown'}[/cyan]")
    if ts.auth_url:
        console.print(f"  Login: {ts.auth_url}")
    if ts.self_dns_name:
        console.print(f"  Device: {ts.self_dns_name}")
    if ts.tailscale_ips:
        console.print(f"  IPs: {', '.join(ts.tailscale_ips)}")

    if result.serve_enabled:
        console.print(f"✓ Serve enabled: [cyan]{result.serve_url or 'unknown URL'}[/cyan]")
    else:
        console.print("○ Serve not enabled")
