"""Tests for process-tree helpers, port checks and executable lookup"""

import os
import socket
import subprocess
import sys
from pathlib import Path

import pytest

from deckshell.common import MIN_PORT, validate_port
from deckshell.core.utils.process import (
    is_process_running,
    kill_process_tree,
    terminate_process_tree,
)
from deckshell.environment import check_command, check_port
from deckshell.errors import InvalidPortError
from deckshell.platform_utils import find_executable, get_config_dir, get_log_dir


def _free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


class TestValidatePort:

    def test_valid(self):
        assert validate_port(MIN_PORT) == MIN_PORT
        assert validate_port(65535) == 65535

    @pytest.mark.parametrize("port", [0, 80, 1023, 65536])
    def test_invalid(self, port):
        with pytest.raises(InvalidPortError):
            validate_port(port)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            validate_port(22)


class TestProcessTree:

    def test_missing_pid(self):
        assert is_process_running(-1) is False
        assert kill_process_tree(2 ** 22 + 12345) is False
        assert terminate_process_tree(2 ** 22 + 12345) is False

    def test_current_process_running(self):
        assert is_process_running(os.getpid())

    def test_terminate_tree(self):
        proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
        try:
            assert terminate_process_tree(proc.pid, timeout=2.0) is True
            proc.wait(timeout=5)
            assert not is_process_running(proc.pid)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()

    def test_kill_tree(self):
        proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
        try:
            assert kill_process_tree(proc.pid) is True
            proc.wait(timeout=5)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()


class TestCheckPort:

    def test_free_port(self):
        port = _free_port()
        result = check_port(port)
        assert result.available
        assert not result.in_use

    def test_bound_port(self):
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        try:
            result = check_port(s.getsockname()[1])
            assert not result.available
            assert result.in_use
        finally:
            s.close()


class TestPlatformUtils:

    def test_home_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DECKSHELL_HOME", str(tmp_path))
        assert get_config_dir() == tmp_path
        assert get_log_dir() == tmp_path / "logs"

    @pytest.mark.skipif(sys.platform == "win32", reason="executable bit check is POSIX-only")
    def test_override_used_when_valid(self):
        assert find_executable("node", sys.executable) == Path(sys.executable)

    def test_unknown_tool(self):
        assert find_executable("deckshell-no-such-tool-xyz") is None
        assert check_command("deckshell-no-such-tool-xyz").available is False

    def test_check_command_reads_version(self):
        info = check_command("python", sys.executable)
        assert info.available
        assert info.version.lower().startswith("python")
