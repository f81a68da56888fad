"""
Tunnel Launcher

Runs ``npx localtunnel --port <port>`` under supervision and scrapes its
stdout for the public URL and the access password. Scraping is a substring
heuristic, not a grammar: lines that match nothing are ignored.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional

from deckshell.common import validate_port
from deckshell.config.settings import ShellSettings
from deckshell.errors import ToolNotFoundError
from deckshell.platform_utils import find_executable, get_platform
from deckshell.supervisor.handle import ManagedProcess

logger = logging.getLogger(__name__)

URL_MARKER = "your url is:"
PASSWORD_MARKERS = ("tunnel password:", "password:")

NPX_HINT = "Please install Node.js from https://nodejs.org/"


def _value_after(line: str, marker: str) -> Optional[str]:
    pos = line.lower().find(marker)
    if pos == -1:
        return None
    value = line[pos + len(marker):].strip()
    return value or None


def parse_tunnel_url(line: str) -> Optional[str]:
    """
    Extract the public URL from a localtunnel output line.

    Examples:
        >>> parse_tunnel_url("your url is: https://abc.loca.lt")
        'https://abc.loca.lt'
        >>> parse_tunnel_url("your url is: pending") is None
        True
    """
    value = _value_after(line, URL_MARKER)
    if value is None:
        return None
    token = value.split()[0]
    return token if token.startswith("https://") else None


def parse_tunnel_password(line: str) -> Optional[str]:
    """Extract the access password from a tunnel output line"""
    for marker in PASSWORD_MARKERS:
        value = _value_after(line, marker)
        if value:
            return value.split()[0]
    return None


@dataclass
class TunnelSnapshot:
    url: Optional[str] = None
    password: Optional[str] = None


class TunnelInfo:
    """
    Captured tunnel URL and password.

    Written by the stdout reader task, read by status callers. Each field is
    last-writer-wins; readers get a copy via ``snapshot()``.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._data = TunnelSnapshot()

    async def observe_line(self, line: str) -> None:
        """Update fields from one output line"""
        url = parse_tunnel_url(line)
        password = None if url else parse_tunnel_password(line)
        if url is None and password is None:
            return

        async with self._lock:
            if url is not None:
                self._data.url = url
                logger.info(f"Tunnel URL: {url}")
            if password is not None:
                self._data.password = password
                logger.info("Tunnel password captured")

    async def snapshot(self) -> TunnelSnapshot:
        async with self._lock:
            return replace(self._data)


async def launch_tunnel(port: int, settings: Optional[ShellSettings] = None) -> ManagedProcess:
    """
    Start localtunnel forwarding to a local port.

    Raises:
        InvalidPortError: port below 1024 or out of range
        ToolNotFoundError: npx not found
        SupervisorError: spawn failed
    """
    validate_port(port)
    settings = settings or ShellSettings()

    npx = find_executable("npx", settings.npx_path)
    if npx is None:
        # Last resort: npx next to node
        node = find_executable("node", settings.node_path)
        if node is not None:
            candidate = node.parent / ("npx.cmd" if get_platform() == "windows" else "npx")
            if candidate.is_file():
                npx = candidate
    if npx is None:
        raise ToolNotFoundError("npx", NPX_HINT)

    info = TunnelInfo()
    logger.info(f"Starting tunnel for port {port}")
    return await ManagedProcess.spawn(
        "tunnel",
        [str(npx), "localtunnel", "--port", str(port)],
        port=port,
        tunnel_info=info,
        on_stdout_line=info.observe_line,
    )
