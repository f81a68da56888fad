"""
Desktop Shell composition root

Owns the server and tunnel supervisors for one session. Anything that needs
start/stop access is handed this object (or one of its supervisors); there is
no module-level process state.

Usage:
    async with DesktopShell(settings) as shell:
        await shell.start_server()
        ...
    # both supervised processes are stopped here, on every exit path
"""

import logging
from functools import partial
from typing import Optional

from deckshell.common import DEFAULT_PORT
from deckshell.config.settings import ShellSettings
from deckshell.errors import NotRunningError, SupervisorError
from deckshell.supervisor.handle import ManagedProcess
from deckshell.supervisor.server import launch_server
from deckshell.supervisor.supervisor import ProcessStatus, ProcessSupervisor
from deckshell.supervisor.tunnel import launch_tunnel

logger = logging.getLogger(__name__)


class DesktopShell:
    """Session owner for the supervised backend server and tunnel"""

    def __init__(self, settings: Optional[ShellSettings] = None):
        self.settings = settings or ShellSettings()
        self.server = ProcessSupervisor("server", partial(launch_server, settings=self.settings))
        self.tunnel = ProcessSupervisor("tunnel", partial(launch_tunnel, settings=self.settings))

    async def start_server(self, port: Optional[int] = None) -> ManagedProcess:
        return await self.server.start(port=port or self.settings.server_port)

    async def stop_server(self) -> Optional[int]:
        return await self.server.stop()

    async def server_status(self) -> ProcessStatus:
        """Server status; a stopped server reports the default port"""
        status = await self.server.status()
        if status.port is None:
            status.port = DEFAULT_PORT
        return status

    async def start_tunnel(self, port: Optional[int] = None) -> ManagedProcess:
        return await self.tunnel.start(port=port or self.settings.server_port)

    async def stop_tunnel(self) -> Optional[int]:
        return await self.tunnel.stop()

    async def tunnel_status(self) -> ProcessStatus:
        return await self.tunnel.status()

    async def aclose(self) -> None:
        """
        Stop the tunnel, then the server.

        Both are attempted even if the first fails; the first failure is
        re-raised afterwards.
        """
        first_error: Optional[SupervisorError] = None
        for supervisor in (self.tunnel, self.server):
            try:
                await supervisor.stop()
            except NotRunningError:
                continue
            except SupervisorError as e:
                logger.error(f"Failed to stop {supervisor.kind}: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    async def __aenter__(self) -> "DesktopShell":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
