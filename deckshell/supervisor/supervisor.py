"""
Process Supervisor

A single-slot owner for one kind of supervised process. The slot holds the
only live reference to the ManagedProcess; all access goes through an
asyncio.Lock.

State machine:
    Empty --start()--> Running --stop()--> Empty
    Running --(process exits on its own)--> cleared on next start()/status()

stop() takes the handle out of the slot under the lock and kills it outside
the critical section, so a slow kill never blocks status() callers and no
two callers can both believe they own the process.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from deckshell.errors import AlreadyRunningError, DeckShellError, NotRunningError, SupervisorError
from deckshell.logging_utils import OperationTimer, get_supervisor_logger
from deckshell.supervisor.handle import ManagedProcess

logger = logging.getLogger(__name__)

Launcher = Callable[..., Awaitable[ManagedProcess]]


@dataclass
class ProcessStatus:
    """Snapshot of a supervisor slot"""
    running: bool
    pid: Optional[int] = None
    port: Optional[int] = None
    url: Optional[str] = None
    password: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProcessSupervisor:
    """
    Owns at most one running process of a given kind.

    Args:
        kind: Process kind ("server", "tunnel")
        launcher: Async callable that spawns and returns a ManagedProcess
    """

    def __init__(self, kind: str, launcher: Launcher):
        self.kind = kind
        self._launcher = launcher
        self._handle: Optional[ManagedProcess] = None
        self._lock = asyncio.Lock()
        self._slog = get_supervisor_logger()

    def _clear_exited(self) -> None:
        """Drop a handle whose process already exited (caller holds the lock)"""
        if self._handle is not None and not self._handle.is_running:
            self._slog.log_operation(
                logging.INFO, self.kind, "exit",
                pid=self._handle.pid, exit_code=self._handle.returncode,
                message=f"{self.kind.capitalize()} exited on its own",
            )
            self._handle = None

    async def start(self, **params) -> ManagedProcess:
        """
        Spawn a process into the empty slot.

        Raises:
            AlreadyRunningError: slot holds a live process (slot unchanged)
            DeckShellError: launcher failure (slot stays empty)
        """
        async with self._lock:
            self._clear_exited()
            if self._handle is not None:
                raise AlreadyRunningError(self.kind, self._handle.pid)

            with OperationTimer() as timer:
                try:
                    handle = await self._launcher(**params)
                except DeckShellError as e:
                    self._slog.log_start_failure(
                        self.kind, type(e).__name__, str(e), elapsed_ms=timer.elapsed_ms()
                    )
                    raise

            self._handle = handle
            self._slog.log_start_success(self.kind, handle.pid, handle.command, elapsed_ms=timer.elapsed_ms())
            return handle

    async def stop(self) -> Optional[int]:
        """
        Stop the running process and wait for it to exit.

        Returns:
            Exit code of the stopped process

        Raises:
            NotRunningError: slot is empty (slot unchanged)
            SupervisorError: kill failed
        """
        async with self._lock:
            handle = self._handle
            if handle is None:
                raise NotRunningError(self.kind)
            self._handle = None

        with OperationTimer() as timer:
            try:
                exit_code = await handle.kill()
            except SupervisorError as e:
                self._slog.log_stop_failure(self.kind, handle.pid, "KILL_FAILED", str(e))
                raise

        self._slog.log_stop_success(self.kind, handle.pid, exit_code, elapsed_ms=timer.elapsed_ms())
        return exit_code

    async def status(self) -> ProcessStatus:
        """Current slot state; tunnel url/password come from a snapshot"""
        async with self._lock:
            self._clear_exited()
            handle = self._handle

        if handle is None:
            return ProcessStatus(running=False)

        status = ProcessStatus(running=True, pid=handle.pid, port=handle.port)
        if handle.tunnel_info is not None:
            info = await handle.tunnel_info.snapshot()
            status.url = info.url
            status.password = info.password
        return status

    async def is_running(self) -> bool:
        return (await self.status()).running

    async def get_output(self, stream: str = "stdout", lines: Optional[int] = None) -> List[str]:
        """Captured output of the current process, empty when the slot is empty"""
        async with self._lock:
            handle = self._handle
        if handle is None:
            return []
        return handle.get_output(stream, lines)

    async def aclose(self) -> None:
        """Stop the process if one is running"""
        try:
            await self.stop()
        except NotRunningError:
            pass

    async def __aenter__(self) -> "ProcessSupervisor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
