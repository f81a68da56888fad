"""
Supervisor Structured Logging Utilities

Provides structured logging for supervised process operations with context
including process kind, action, platform, pid, timing and error tracking.

- Structured key=value lines: timestamp, kind, action, platform, pid, exit_code, elapsed_ms, error_code
- Log file: ~/.deckshell/logs/supervisor.log
- Console logging for the CLI via rich
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from rich.logging import RichHandler

from deckshell import platform_utils


class SupervisorStructuredLogger:
    """
    Structured logger for supervised process operations

    Features:
    - Platform detection
    - key=value log entries that are easy to grep
    - Dedicated log file for the supervisor
    """

    def __init__(self, logger_name: str = "deckshell.supervisor"):
        self.logger = logging.getLogger(logger_name)
        self._ensure_log_file()

    def _ensure_log_file(self):
        """Attach a file handler for supervisor.log once"""
        log_dir = platform_utils.get_log_dir()
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.debug(f"Log directory unavailable ({e}), file logging disabled")
            return

        log_file = log_dir / "supervisor.log"

        has_file_handler = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file)
            for h in self.logger.handlers
        )
        if has_file_handler:
            return

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        file_handler.setLevel(logging.DEBUG)
        self.logger.addHandler(file_handler)

    @staticmethod
    def _format_structured_log(kind: str, action: str, **fields) -> str:
        """Render the entry as key=value pairs, skipping empty fields"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "kind": kind,
            "action": action,
        }
        for key, value in fields.items():
            if value is None:
                continue
            if key == "elapsed_ms":
                value = round(value, 2)
            log_data[key] = value

        log_parts = []
        for key, value in log_data.items():
            if isinstance(value, str) and ' ' in value:
                log_parts.append(f'{key}="{value}"')
            else:
                log_parts.append(f'{key}={value}')
        return ' '.join(log_parts)

    def log_operation(
        self,
        level: int,
        kind: str,
        action: str,
        pid: Optional[int] = None,
        exit_code: Optional[int] = None,
        elapsed_ms: Optional[float] = None,
        error_code: Optional[str] = None,
        message: Optional[str] = None,
        **extra_fields
    ):
        """
        Log a supervisor operation with structured data

        Args:
            level: Logging level (logging.INFO, logging.ERROR, etc.)
            kind: Supervised process kind ("server", "tunnel")
            action: Action performed ("start", "stop", "exit", "cleanup")
            pid: Process ID
            exit_code: Exit code
            elapsed_ms: Duration in milliseconds
            error_code: Error code
            message: Additional message
            **extra_fields: Additional fields
        """
        structured_msg = self._format_structured_log(
            kind,
            action,
            platform=platform_utils.get_platform(),
            pid=pid,
            exit_code=exit_code,
            elapsed_ms=elapsed_ms,
            error_code=error_code,
            message=message,
            **extra_fields
        )
        self.logger.log(level, structured_msg)

    def log_start_success(self, kind: str, pid: int, command: str, elapsed_ms: Optional[float] = None):
        self.log_operation(
            logging.INFO, kind, "start",
            pid=pid, elapsed_ms=elapsed_ms, command=command,
            message=f"Started {kind}",
        )

    def log_start_failure(self, kind: str, error_code: str, message: str, elapsed_ms: Optional[float] = None):
        self.log_operation(
            logging.ERROR, kind, "start",
            error_code=error_code, elapsed_ms=elapsed_ms, message=message,
        )

    def log_stop_success(self, kind: str, pid: int, exit_code: Optional[int], elapsed_ms: Optional[float] = None):
        self.log_operation(
            logging.INFO, kind, "stop",
            pid=pid, exit_code=exit_code, elapsed_ms=elapsed_ms,
            message=f"Stopped {kind}",
        )

    def log_stop_failure(self, kind: str, pid: Optional[int], error_code: str, message: str):
        self.log_operation(
            logging.ERROR, kind, "stop",
            pid=pid, error_code=error_code, message=message,
        )


class OperationTimer:
    """
    Context manager for timing operations

    Usage:
        with OperationTimer() as timer:
            # perform operation
            pass

        elapsed_ms = timer.elapsed_ms()
    """

    def __init__(self):
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        return False

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds"""
        if self.start_time is None:
            return 0.0

        end = self.end_time if self.end_time is not None else time.perf_counter()
        return (end - self.start_time) * 1000.0


_supervisor_logger: Optional[SupervisorStructuredLogger] = None


def get_supervisor_logger() -> SupervisorStructuredLogger:
    """Get the global supervisor structured logger instance"""
    global _supervisor_logger
    if _supervisor_logger is None:
        _supervisor_logger = SupervisorStructuredLogger()
    return _supervisor_logger


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for CLI use (rich console output)"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
