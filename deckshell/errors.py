"""
Error taxonomy for deckshell

Call-boundary faults (missing tools, external tool failures, supervisor state
conflicts) are raised as subclasses of DeckShellError so callers can choose a
fallback. Per-probe timeouts and parse problems never surface as errors.
"""

from typing import Optional


class DeckShellError(Exception):
    """Base class for all deckshell errors"""
    pass


class ToolNotFoundError(DeckShellError):
    """A required external tool is not installed or not on PATH"""

    def __init__(self, tool: str, hint: Optional[str] = None):
        self.tool = tool
        self.hint = hint
        message = f"{tool} not found"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class ExternalToolError(DeckShellError):
    """An external tool exited with a non-zero status"""

    def __init__(self, tool: str, returncode: Optional[int], stderr: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{tool} failed (exit code {returncode}): {stderr.strip()}")


class InvalidPortError(DeckShellError, ValueError):
    """Port outside the range a supervised process may bind"""
    pass


class SupervisorError(DeckShellError):
    """Process supervisor failure (spawn or kill)"""
    pass


class AlreadyRunningError(SupervisorError):
    """start() called while the slot already holds a running process"""

    def __init__(self, kind: str, pid: Optional[int] = None):
        self.kind = kind
        self.pid = pid
        suffix = f" (PID {pid})" if pid is not None else ""
        super().__init__(f"{kind.capitalize()} is already running{suffix}")


class NotRunningError(SupervisorError):
    """stop() called while the slot is empty"""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"{kind.capitalize()} is not running")
