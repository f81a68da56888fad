"""Tests for supervisor structured logging"""

import logging
import time

from deckshell.logging_utils import (
    OperationTimer,
    SupervisorStructuredLogger,
    get_supervisor_logger,
)


def test_structured_format_quotes_spaces():
    line = SupervisorStructuredLogger._format_structured_log(
        "server", "start", pid=1234, elapsed_ms=12.3456, message="Started server", error_code=None
    )

    assert "kind=server" in line
    assert "action=start" in line
    assert "pid=1234" in line
    assert "elapsed_ms=12.35" in line
    assert 'message="Started server"' in line
    assert "error_code" not in line


def test_log_file_written(tmp_path, monkeypatch):
    monkeypatch.setenv("DECKSHELL_HOME", str(tmp_path))
    slog = SupervisorStructuredLogger("deckshell.test.supervisor")
    slog.logger.setLevel(logging.DEBUG)

    slog.log_stop_success("tunnel", 42, 0, elapsed_ms=5.0)
    for handler in slog.logger.handlers:
        handler.flush()

    content = (tmp_path / "logs" / "supervisor.log").read_text(encoding="utf-8")
    assert "kind=tunnel" in content
    assert "action=stop" in content
    assert "exit_code=0" in content

    for handler in list(slog.logger.handlers):
        handler.close()
        slog.logger.removeHandler(handler)


def test_file_handler_attached_once(tmp_path, monkeypatch):
    monkeypatch.setenv("DECKSHELL_HOME", str(tmp_path))
    first = SupervisorStructuredLogger("deckshell.test.once")
    SupervisorStructuredLogger("deckshell.test.once")

    assert len(first.logger.handlers) == 1

    for handler in list(first.logger.handlers):
        handler.close()
        first.logger.removeHandler(handler)


def test_get_supervisor_logger_is_shared():
    assert get_supervisor_logger() is get_supervisor_logger()


def test_operation_timer():
    with OperationTimer() as timer:
        time.sleep(0.01)

    elapsed = timer.elapsed_ms()
    assert elapsed >= 10.0
    assert timer.elapsed_ms() == elapsed
    assert OperationTimer().elapsed_ms() == 0.0
