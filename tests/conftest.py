"""Shared fixtures"""

import asyncio

import pytest
import pytest_asyncio


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config and supervisor logs out of the real home directory"""
    home = tmp_path / "deckshell-home"
    monkeypatch.setenv("DECKSHELL_HOME", str(home))
    return home


@pytest_asyncio.fixture
async def tcp_listener():
    """A bound localhost listener; yields its port"""

    async def handle(reader, writer):
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield port
    finally:
        server.close()
        await server.wait_closed()
