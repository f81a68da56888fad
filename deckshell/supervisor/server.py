"""
Backend Server Launcher

Spawns the Node.js backend under supervision.

Launch modes:
- development: ``npm run dev`` in ``<project root>/apps/server``
- production: ``node <resources>/server/index.js``

Both pass PORT and DB_PATH through the environment.
"""

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

import httpx

from deckshell.common import DEFAULT_PORT, validate_port
from deckshell.config.settings import ShellSettings
from deckshell.errors import SupervisorError, ToolNotFoundError
from deckshell.platform_utils import find_executable, get_platform
from deckshell.supervisor.handle import ManagedProcess

logger = logging.getLogger(__name__)

# Maximum number of parent directories searched for package.json / resources
MAX_SEARCH_DEPTH = 10

DB_FILENAME = "deck-ide.db"
NODE_HINT = "Please install Node.js from https://nodejs.org/"

_TRUTHY = {"1", "true", "yes", "on"}


def is_development_mode(settings: Optional[ShellSettings] = None) -> bool:
    """
    Whether the server should run from sources.

    An explicit ``dev_mode`` setting wins; otherwise DECKSHELL_DEV or DEBUG
    in the environment turns development mode on.
    """
    if settings is not None and settings.dev_mode is not None:
        return settings.dev_mode
    for var in ("DECKSHELL_DEV", "DEBUG"):
        value = os.environ.get(var)
        if value is not None and value.strip().lower() in _TRUTHY:
            return True
    return False


def _walk_up(start: Path, max_depth: int = MAX_SEARCH_DEPTH) -> List[Path]:
    """``start`` and up to ``max_depth - 1`` of its parents"""
    levels = [start]
    for parent in start.parents:
        if len(levels) >= max_depth:
            break
        levels.append(parent)
    return levels


def find_project_root(start: Optional[Path] = None) -> Path:
    """
    Find the nearest directory holding package.json.

    Searches upward from ``start`` (default: cwd), then from this package's
    install location.

    Raises:
        SupervisorError: no package.json within MAX_SEARCH_DEPTH levels
    """
    origins = [Path(start) if start else Path.cwd(), Path(__file__).resolve().parent]
    for origin in origins:
        for level in _walk_up(origin.resolve()):
            if (level / "package.json").is_file():
                return level
    raise SupervisorError("Could not find project root (package.json)")


def get_server_path(settings: Optional[ShellSettings] = None) -> Path:
    """
    Locate the bundled server entry point ``resources/server/index.js``.

    ``resources_dir`` from settings is used as-is when configured. The
    returned path may not exist; callers check.
    """
    if settings is not None and settings.resources_dir:
        return Path(settings.resources_dir).expanduser() / "server" / "index.js"

    for origin in (Path.cwd(), Path(__file__).resolve().parent):
        for level in _walk_up(origin):
            candidate = level / "resources" / "server" / "index.js"
            if candidate.is_file():
                return candidate

    return Path.cwd() / "resources" / "server" / "index.js"


def _server_env(port: int, db_path: Path) -> dict:
    env = os.environ.copy()
    env["PORT"] = str(port)
    env["DB_PATH"] = str(db_path)
    return env


async def launch_server(port: int = DEFAULT_PORT, settings: Optional[ShellSettings] = None) -> ManagedProcess:
    """
    Start the backend server on ``port``.

    Raises:
        InvalidPortError: port below 1024 or out of range
        ToolNotFoundError: npm (dev) or node (production) not found
        SupervisorError: project root or server bundle missing, or spawn failed
    """
    validate_port(port)
    settings = settings or ShellSettings()

    if is_development_mode(settings):
        root = find_project_root(Path(settings.project_dir) if settings.project_dir else None)
        server_dir = root / "apps" / "server"
        npm = find_executable("npm", settings.npm_path)
        if npm is None:
            raise ToolNotFoundError("npm", NODE_HINT)

        command = [str(npm), "run", "dev"]
        if get_platform() == "windows":
            # npm is a .cmd shim on Windows
            command = ["cmd.exe", "/c"] + command

        logger.info(f"Starting dev server in {server_dir} on port {port}")
        return await ManagedProcess.spawn(
            "server",
            command,
            cwd=str(server_dir),
            env=_server_env(port, server_dir / "data" / DB_FILENAME),
            port=port,
        )

    server_path = get_server_path(settings)
    if not server_path.is_file():
        raise SupervisorError(
            f"Server executable not found at: {server_path}. Ensure resources are bundled correctly."
        )

    node = find_executable("node", settings.node_path)
    if node is None:
        raise ToolNotFoundError("node", NODE_HINT)

    db_path = server_path.parent.parent / "data" / DB_FILENAME
    logger.info(f"Starting server {server_path} on port {port}")
    return await ManagedProcess.spawn(
        "server",
        [str(node), str(server_path)],
        env=_server_env(port, db_path),
        port=port,
    )


async def wait_until_ready(
    port: int,
    host: str = "127.0.0.1",
    timeout: float = 30.0,
    interval: float = 0.5,
) -> bool:
    """
    Poll the server until it answers HTTP.

    Any HTTP response counts as ready, including error statuses.

    Returns:
        True once the server answered, False if ``timeout`` elapsed
    """
    url = f"http://{host}:{port}/"
    deadline = time.monotonic() + timeout

    async with httpx.AsyncClient(timeout=1.5) as client:
        while True:
            try:
                response = await client.get(url)
                logger.info(f"Server on port {port} is ready (HTTP {response.status_code})")
                return True
            except httpx.TransportError:
                pass

            if time.monotonic() >= deadline:
                logger.warning(f"Server on port {port} not ready after {timeout}s")
                return False
            await asyncio.sleep(interval)
