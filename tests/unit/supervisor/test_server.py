"""Tests for the backend server launcher"""

import asyncio
import socket

import pytest
import pytest_asyncio

from deckshell.config.settings import ShellSettings
from deckshell.errors import InvalidPortError, SupervisorError
from deckshell.supervisor.server import (
    find_project_root,
    get_server_path,
    is_development_mode,
    launch_server,
    wait_until_ready,
)


class TestDevelopmentMode:

    def test_setting_wins(self, monkeypatch):
        monkeypatch.setenv("DECKSHELL_DEV", "1")
        assert is_development_mode(ShellSettings(dev_mode=False)) is False
        assert is_development_mode(ShellSettings(dev_mode=True)) is True

    def test_environment(self, monkeypatch):
        monkeypatch.delenv("DECKSHELL_DEV", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)
        assert is_development_mode() is False

        monkeypatch.setenv("DEBUG", "true")
        assert is_development_mode() is True

    def test_falsy_value_ignored(self, monkeypatch):
        monkeypatch.delenv("DEBUG", raising=False)
        monkeypatch.setenv("DECKSHELL_DEV", "0")
        assert is_development_mode() is False


def test_find_project_root(tmp_path):
    root = tmp_path / "repo"
    nested = root / "apps" / "server" / "src"
    nested.mkdir(parents=True)
    (root / "package.json").write_text("{}")

    assert find_project_root(nested) == root.resolve()


def test_server_path_from_settings(tmp_path):
    settings = ShellSettings(resources_dir=str(tmp_path / "resources"))
    assert get_server_path(settings) == tmp_path / "resources" / "server" / "index.js"


@pytest.mark.asyncio
async def test_launch_rejects_privileged_port():
    with pytest.raises(InvalidPortError):
        await launch_server(port=443)


@pytest.mark.asyncio
async def test_launch_without_bundle_fails(tmp_path):
    settings = ShellSettings(dev_mode=False, resources_dir=str(tmp_path / "empty"))
    with pytest.raises(SupervisorError, match="Server executable not found"):
        await launch_server(port=18787, settings=settings)


@pytest_asyncio.fixture
async def http_server():
    async def handle(reader, writer):
        await reader.readuntil(b"\r\n\r\n")
        writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\nConnection: close\r\n\r\nok")
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    try:
        yield server.sockets[0].getsockname()[1]
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_wait_until_ready(http_server):
    assert await wait_until_ready(http_server, timeout=5.0) is True


@pytest.mark.asyncio
async def test_wait_until_ready_times_out():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    assert await wait_until_ready(port, timeout=0.3, interval=0.1) is False
