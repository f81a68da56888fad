"""
Environment checks

Reports whether the Node.js toolchain is available and whether a local port
is free, for the ``doctor`` command and for callers deciding where to start
the server.
"""

import asyncio
import logging
import socket
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from deckshell.config.settings import ShellSettings
from deckshell.platform_utils import find_executable, get_executable_version

logger = logging.getLogger(__name__)


@dataclass
class CommandInfo:
    """Availability of one command-line tool"""
    available: bool
    version: Optional[str] = None
    path: Optional[str] = None


@dataclass
class EnvironmentInfo:
    node: CommandInfo
    npm: CommandInfo
    pnpm: CommandInfo

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PortAvailability:
    port: int
    available: bool
    in_use: bool


def check_command(name: str, override: Optional[str] = None) -> CommandInfo:
    """Locate a tool and read its ``--version`` output"""
    path = find_executable(name, override)
    if path is None:
        return CommandInfo(available=False)

    version = get_executable_version(path)
    if version is None:
        logger.debug(f"{name} found at {path} but --version failed")
        return CommandInfo(available=False, path=str(path))
    return CommandInfo(available=True, version=version, path=str(path))


async def check_environment(settings: Optional[ShellSettings] = None) -> EnvironmentInfo:
    """Check node, npm and pnpm concurrently"""
    settings = settings or ShellSettings()
    loop = asyncio.get_running_loop()
    node, npm, pnpm = await asyncio.gather(
        loop.run_in_executor(None, check_command, "node", settings.node_path),
        loop.run_in_executor(None, check_command, "npm", settings.npm_path),
        loop.run_in_executor(None, check_command, "pnpm", None),
    )
    return EnvironmentInfo(node=node, npm=npm, pnpm=pnpm)


def check_port(port: int, host: str = "127.0.0.1") -> PortAvailability:
    """
    Check whether a local TCP port can be bound.

    Binding (rather than connecting) also catches listeners that refuse
    connections from us.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        available = True
    except OSError as e:
        logger.debug(f"Port {port} not bindable: {e}")
        available = False
    finally:
        sock.close()
    return PortAvailability(port=port, available=available, in_use=not available)
