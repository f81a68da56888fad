"""CLI server commands

``deckshell server run`` starts the backend under supervision and keeps it
in the foreground until it exits or Ctrl-C is pressed; the supervised
processes are stopped on every exit path.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

import click
from rich.console import Console

from deckshell.config.settings import ShellSettings
from deckshell.errors import DeckShellError
from deckshell.supervisor import DesktopShell, wait_until_ready

console = Console()

TUNNEL_URL_TIMEOUT = 15.0
POLL_INTERVAL = 0.5


@dataclass
class ControlResult:
    """Result of start/stop operation"""
    ok: bool
    kind: str = "server"
    action: str = ""  # "start" | "stop"
    pid: Optional[int] = None
    message: str = ""
    error: Optional[Dict[str, str]] = None


async def start_process(shell: DesktopShell, kind: str, port: int) -> ControlResult:
    """Start the server or tunnel and fold the outcome into a ControlResult"""
    starter = shell.start_server if kind == "server" else shell.start_tunnel
    try:
        handle = await starter(port)
    except DeckShellError as e:
        return ControlResult(
            ok=False,
            kind=kind,
            action="start",
            message=f"Failed to start {kind}",
            error={"code": type(e).__name__, "message": str(e)},
        )
    return ControlResult(
        ok=True,
        kind=kind,
        action="start",
        pid=handle.pid,
        message=f"{kind.capitalize()} started (PID: {handle.pid}, port: {port})",
    )


async def stop_process(shell: DesktopShell, kind: str) -> ControlResult:
    stopper = shell.stop_server if kind == "server" else shell.stop_tunnel
    try:
        exit_code = await stopper()
    except DeckShellError as e:
        return ControlResult(
            ok=False,
            kind=kind,
            action="stop",
            message=f"Failed to stop {kind}",
            error={"code": type(e).__name__, "message": str(e)},
        )
    return ControlResult(ok=True, kind=kind, action="stop", message=f"{kind.capitalize()} stopped (exit code {exit_code})")


def _echo_result(result: ControlResult) -> None:
    if result.ok:
        console.print(f"✓ {result.message}")
    else:
        detail = result.error["message"] if result.error else ""
        console.print(f"✗ [red]{result.message}: {detail}[/red]")


async def _run_foreground(settings: ShellSettings, port: int, tunnel: bool, ready_timeout: float) -> int:
    async with DesktopShell(settings) as shell:
        result = await start_process(shell, "server", port)
        _echo_result(result)
        if not result.ok:
            return 1

        if await wait_until_ready(port, timeout=ready_timeout):
            console.print(f"✓ Server ready at [cyan]http://127.0.0.1:{port}[/cyan]")
        else:
            console.print(f"⚠️  Server not answering after {ready_timeout}s, still waiting on the process")

        if tunnel:
            tunnel_result = await start_process(shell, "tunnel", port)
            _echo_result(tunnel_result)
            if tunnel_result.ok:
                url = await _wait_tunnel_url(shell)
                if url:
                    console.print(f"✓ Tunnel URL: [cyan]{url}[/cyan]")
                else:
                    console.print("⚠️  Tunnel started but URL not available yet")

        console.print("[dim]Press Ctrl-C to stop[/dim]")
        while (await shell.server_status()).running:
            await asyncio.sleep(POLL_INTERVAL)

        logs = await shell.server.get_output("stderr", lines=20)
        console.print("✗ [red]Server exited[/red]")
        for line in logs:
            console.print(f"  [dim]{line}[/dim]")
        return 1


async def _wait_tunnel_url(shell: DesktopShell) -> Optional[str]:
    deadline = asyncio.get_running_loop().time() + TUNNEL_URL_TIMEOUT
    while asyncio.get_running_loop().time() < deadline:
        status = await shell.tunnel_status()
        if not status.running:
            return None
        if status.url:
            return status.url
        await asyncio.sleep(POLL_INTERVAL)
    return None


@click.group()
def server_group():
    """Backend server supervision"""
    pass


@server_group.command()
@click.option("--port", type=int, default=None, help="Server port (default from settings, 8787)")
@click.option("--tunnel", is_flag=True, help="Also expose the server through localtunnel")
@click.option("--ready-timeout", type=float, default=30.0, show_default=True, help="Seconds to wait for HTTP readiness")
@click.pass_obj
def run(settings, port, tunnel, ready_timeout):
    """Run the backend server in the foreground"""
    port = port or settings.server_port
    try:
        code = asyncio.run(_run_foreground(settings, port, tunnel, ready_timeout))
    except KeyboardInterrupt:
        console.print("\n✓ Stopped")
        return
    except DeckShellError as e:
        console.print(f"✗ [red]{e}[/red]")
        raise click.Abort()
    if code:
        raise SystemExit(code)
