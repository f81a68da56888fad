"""CLI scan commands"""

import asyncio
import json
from typing import List

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from deckshell.errors import DeckShellError
from deckshell.scanner import ScanOptions, ScanReport, is_nmap_available, scan
from deckshell.scanner.ports import parse_ports

console = Console()


def _print_report(report: ScanReport) -> None:
    title = f"{report.host}"
    if report.os_guess:
        title += f"  (OS: {report.os_guess})"

    if not report.ports:
        console.print(f"[bold]{title}[/bold]: no open ports")
        return

    table = Table(title=title, title_justify="left")
    table.add_column("Port", justify="right", style="cyan")
    table.add_column("Proto")
    table.add_column("State", style="green")
    table.add_column("Service")
    table.add_column("Version")

    for p in sorted(report.ports, key=lambda p: p.port):
        table.add_row(str(p.port), p.protocol, p.status.value, p.service or "-", p.version or "-")

    console.print(table)


@click.command()
@click.option("--host", "hosts", multiple=True, help="Target host (repeatable, default 127.0.0.1)")
@click.option("--ports", "ports_spec", default=None, help='Ports, e.g. "22,80,3000-3010" (default: common ports)')
@click.option("--os", "os_detection", is_flag=True, help="Guess the OS from open ports")
@click.option("--service-version", "version_detection", is_flag=True, help="Grab banners and detect versions")
@click.option("--timeout", type=float, default=None, help="Per-probe timeout in seconds")
@click.option("--parallelism", type=int, default=None, help="Concurrent probes per batch")
@click.option("--external", is_flag=True, help="Use nmap when it is installed")
@click.option("--json", "as_json", is_flag=True, help="Print reports as JSON")
@click.pass_obj
def scan_cmd(settings, hosts, ports_spec, os_detection, version_detection, timeout, parallelism, external, as_json):
    """Scan hosts for open TCP ports"""
    try:
        ports = parse_ports(ports_spec) if ports_spec else None
        options_data = {
            "ports": ports,
            "os_detection": os_detection,
            "version_detection": version_detection,
            "timeout": timeout if timeout is not None else settings.scan_timeout_ms / 1000.0,
            "parallelism": parallelism if parallelism is not None else settings.scan_parallelism,
        }
        if hosts:
            options_data["hosts"] = list(hosts)
        options = ScanOptions(**options_data)
    except (ValidationError, ValueError) as e:
        raise click.BadParameter(str(e))

    try:
        reports: List[ScanReport] = asyncio.run(
            scan(options, prefer_external=external, nmap_binary=settings.nmap_path)
        )
    except DeckShellError as e:
        console.print(f"✗ [red]Scan failed: {e}[/red]")
        raise click.Abort()

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in reports], indent=2))
        return

    for report in reports:
        _print_report(report)


@click.command()
@click.pass_obj
def nmap_check(settings):
    """Check whether nmap is available"""
    binary = settings.nmap_path or "nmap"
    if asyncio.run(is_nmap_available(binary)):
        console.print(f"✓ nmap is available ([cyan]{binary}[/cyan])")
    else:
        console.print("✗ [yellow]nmap not found[/yellow] - install from https://nmap.org/download.html")
        raise SystemExit(1)
