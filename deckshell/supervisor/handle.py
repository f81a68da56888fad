"""
Managed Process Handle

Owns one spawned OS process plus its kind-specific payload (the server's
port, the tunnel's url/password cell).

Cleanup guarantee:
- A weakref.finalize hook kills the whole process tree when the handle is
  garbage collected or the interpreter exits, so an abandoned handle never
  leaves an orphan behind
- ``async with`` kills and waits on exit
- ``kill()`` is the explicit path used by the supervisor

Output capture:
- stdout/stderr lines are kept in ring buffers (last 1000 lines)
- Reader tasks never reference the handle itself, otherwise a running
  reader would keep a dropped handle alive
"""

import asyncio
import logging
import subprocess
import time
import weakref
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Sequence

from deckshell.core.utils.process import (
    ProcessError,
    collect_descendants,
    kill_process_tree,
    terminate_processes,
)
from deckshell.errors import SupervisorError, ToolNotFoundError
from deckshell.platform_utils import hidden_window_kwargs

logger = logging.getLogger(__name__)

OUTPUT_BUFFER_LINES = 1000

# Seconds a process tree gets to exit after terminate before it is killed
KILL_GRACE_SECONDS = 2.0

# Seconds to let reader tasks drain the pipes after the process exited
READER_DRAIN_SECONDS = 1.0

LineHandler = Callable[[str], Awaitable[None]]


def _kill_on_drop(kind: str, process: subprocess.Popen) -> None:
    """Finalizer: best-effort non-blocking kill of an abandoned process tree"""
    if process.poll() is not None:
        return
    try:
        kill_process_tree(process.pid)
        logger.warning(f"Killed orphaned {kind} process tree (PID {process.pid})")
    except ProcessError as e:
        logger.error(f"Failed to kill orphaned {kind} process {process.pid}: {e}")
    # Reap if it already died; never block here
    process.poll()


async def _pump_stream(
    label: str,
    stream,
    buffer: Deque[str],
    on_line: Optional[LineHandler] = None,
) -> None:
    """Read a pipe line by line until EOF"""
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, stream.readline)
            if not line:
                break
            line = line.rstrip("\r\n")
            buffer.append(line)
            if on_line is not None:
                await on_line(line)
    except (OSError, ValueError) as e:
        # ValueError: read on a pipe closed during shutdown
        logger.debug(f"{label} reader stopped: {e}")


class ManagedProcess:
    """
    A spawned process exclusively owned by one supervisor slot.

    States: running -> terminated (absorbing). Use ``spawn()`` to create.
    """

    def __init__(
        self,
        kind: str,
        process: subprocess.Popen,
        command: Sequence[str],
        port: Optional[int] = None,
        tunnel_info=None,
    ):
        self.kind = kind
        self.process = process
        self.command = " ".join(str(c) for c in command)
        self.port = port
        self.tunnel_info = tunnel_info
        self.started_at = time.time()
        self.stdout_buffer: Deque[str] = deque(maxlen=OUTPUT_BUFFER_LINES)
        self.stderr_buffer: Deque[str] = deque(maxlen=OUTPUT_BUFFER_LINES)
        self._reader_tasks: List[asyncio.Task] = []
        self._finalizer = weakref.finalize(self, _kill_on_drop, kind, process)

    @classmethod
    async def spawn(
        cls,
        kind: str,
        command: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        capture_output: bool = True,
        port: Optional[int] = None,
        tunnel_info=None,
        on_stdout_line: Optional[LineHandler] = None,
    ) -> "ManagedProcess":
        """
        Spawn a process and start its output readers.

        Args:
            kind: Process kind for logs and errors ("server", "tunnel")
            command: Argument vector
            cwd: Working directory
            env: Full environment for the child (inherits ours when None)
            capture_output: Pipe stdout/stderr into the ring buffers
            port: Server port payload
            tunnel_info: TunnelInfo payload
            on_stdout_line: Async callback for every stdout line

        Raises:
            ToolNotFoundError: executable does not exist
            SupervisorError: spawn failed for another reason
        """
        popen_kwargs: Dict = {
            "cwd": cwd,
            "env": dict(env) if env is not None else None,
            "stdin": subprocess.DEVNULL,
            **hidden_window_kwargs(),
        }
        if capture_output:
            popen_kwargs.update(
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        else:
            popen_kwargs.update(stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

        try:
            process = subprocess.Popen(list(command), **popen_kwargs)
        except FileNotFoundError as e:
            raise ToolNotFoundError(str(command[0])) from e
        except OSError as e:
            raise SupervisorError(f"Failed to start {kind}: {e}") from e

        handle = cls(kind, process, command, port=port, tunnel_info=tunnel_info)
        if capture_output:
            handle._start_readers(on_stdout_line)

        logger.info(f"Spawned {kind} (PID {process.pid}): {handle.command}")
        return handle

    def _start_readers(self, on_stdout_line: Optional[LineHandler]) -> None:
        label = f"{self.kind}[{self.pid}]"
        if self.process.stdout:
            self._reader_tasks.append(asyncio.create_task(
                _pump_stream(f"{label} stdout", self.process.stdout, self.stdout_buffer, on_stdout_line)
            ))
        if self.process.stderr:
            self._reader_tasks.append(asyncio.create_task(
                _pump_stream(f"{label} stderr", self.process.stderr, self.stderr_buffer)
            ))

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll()

    @property
    def is_running(self) -> bool:
        return self.process.poll() is None

    def get_output(self, stream: str = "stdout", lines: Optional[int] = None) -> List[str]:
        """
        Get captured output lines.

        Args:
            stream: "stdout" or "stderr"
            lines: Number of trailing lines (None = all buffered)
        """
        buffer = self.stderr_buffer if stream == "stderr" else self.stdout_buffer
        output = list(buffer)
        if lines is not None:
            output = output[-lines:] if lines > 0 else []
        return output

    def start_kill(self) -> None:
        """Send kill to the process tree without waiting"""
        if not self.is_running:
            return
        try:
            kill_process_tree(self.pid)
        except ProcessError as e:
            raise SupervisorError(f"Failed to kill {self.kind} (PID {self.pid}): {e}") from e

    async def kill(self) -> Optional[int]:
        """
        Terminate the process tree and wait for it to exit.

        Returns:
            Exit code of the root process

        Raises:
            SupervisorError: the process could not be killed
        """
        loop = asyncio.get_running_loop()

        try:
            returncode = await loop.run_in_executor(None, self._stop_tree)
        except (ProcessError, OSError) as e:
            raise SupervisorError(f"Failed to kill {self.kind} (PID {self.pid}): {e}") from e

        self._finalizer.detach()
        await self._drain_readers()
        return returncode

    def _stop_tree(self) -> int:
        """
        Terminate the tree and reap the root (blocking, run in an executor).

        The root is signalled and waited through Popen so its exit status is
        not lost; psutil only handles the descendants.
        """
        if self.process.poll() is not None:
            return self.process.returncode

        descendants = collect_descendants(self.pid)
        self.process.terminate()
        terminate_processes(descendants, KILL_GRACE_SECONDS)
        try:
            return self.process.wait(timeout=KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.kind} (PID {self.pid}) ignored terminate, killing")
            self.process.kill()
            return self.process.wait()

    async def _drain_readers(self) -> None:
        if not self._reader_tasks:
            return
        tasks, self._reader_tasks = self._reader_tasks, []
        _, pending = await asyncio.wait(tasks, timeout=READER_DRAIN_SECONDS)
        for task in pending:
            task.cancel()

    async def __aenter__(self) -> "ManagedProcess":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.kill()
        return False

    def __repr__(self) -> str:
        state = "running" if self.is_running else f"exited({self.returncode})"
        return f"<ManagedProcess kind={self.kind} pid={self.pid} {state}>"
