"""
Cross-platform process utilities

Unified process operations for Windows, Linux and macOS, built on psutil.

Functions:
    - terminate_process_tree: graceful stop (SIGTERM / TerminateProcess), escalating to kill
    - kill_process_tree: forceful, non-blocking kill of a process and its descendants
    - terminate_processes: graceful stop of an explicit process list (e.g. descendants only)
    - is_process_running: liveness check that treats zombies as dead
"""

import logging
from typing import List

import psutil

logger = logging.getLogger(__name__)


class ProcessError(Exception):
    """Process operation failed"""
    pass


def _collect_tree(pid: int) -> List[psutil.Process]:
    """Return the process and all of its descendants, children first"""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return []

    try:
        children = parent.children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        children = []
    return children + [parent]


def kill_process_tree(pid: int) -> bool:
    """
    Forcefully kill a process and its descendants without waiting.

    Package-manager launchers (npm, npx) spawn the real node process as a
    child, so killing only the top-level pid would orphan it.

    Args:
        pid: Root process ID

    Returns:
        True: at least one kill signal was delivered
        False: process did not exist

    Raises:
        ProcessError: permission denied for the root process
    """
    procs = _collect_tree(pid)
    if not procs:
        logger.debug(f"Process {pid} is not running")
        return False

    delivered = False
    for proc in procs:
        try:
            proc.kill()
            delivered = True
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as e:
            if proc.pid == pid:
                raise ProcessError(f"Permission denied to kill process {pid}") from e
            logger.warning(f"Permission denied to kill child process {proc.pid}")

    if delivered:
        logger.debug(f"Sent kill to process tree rooted at {pid} ({len(procs)} processes)")
    return delivered


def collect_descendants(pid: int) -> List[psutil.Process]:
    """Descendants of ``pid`` (not the process itself); empty if it is gone"""
    return _collect_tree(pid)[:-1]


def terminate_processes(procs: List[psutil.Process], timeout: float = 2.0) -> None:
    """
    Terminate processes, killing the ones still alive after ``timeout``.

    Only pass processes that are not children of this interpreter's Popen
    objects: wait_procs reaps its own children, which would hide their exit
    code from Popen.

    Raises:
        ProcessError: permission denied
    """
    for proc in procs:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as e:
            raise ProcessError(f"Permission denied to terminate process {proc.pid}") from e

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    if alive:
        logger.warning(f"{len(alive)} process(es) did not terminate after {timeout}s, killing")
        for proc in alive:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                raise ProcessError(f"Permission denied to kill process {proc.pid}") from e
        psutil.wait_procs(alive, timeout=1.0)


def terminate_process_tree(pid: int, timeout: float = 2.0) -> bool:
    """
    Gracefully terminate a process tree, escalating to kill after timeout.

    Args:
        pid: Root process ID
        timeout: Seconds to wait for graceful exit before killing

    Returns:
        True: processes terminated
        False: process did not exist

    Raises:
        ProcessError: termination failed
    """
    procs = _collect_tree(pid)
    if not procs:
        return False

    terminate_processes(procs, timeout)
    return True


def is_process_running(pid: int) -> bool:
    """
    Check whether a process is running (cross-platform).

    Zombie processes have exited and are only waiting to be reaped by their
    parent, so they count as not running.
    """
    if pid < 0:
        return False

    try:
        proc = psutil.Process(pid)
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Exists but owned by someone else
        return True
