"""Tests for the single-port prober"""

import asyncio
import socket

import pytest

from deckshell.scanner import prober
from deckshell.scanner.models import PortStatus
from deckshell.scanner.prober import probe


def _unused_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.mark.asyncio
async def test_open_port(tcp_listener):
    result = await probe("127.0.0.1", tcp_listener, 1.0)
    assert result is not None
    assert result.status == PortStatus.OPEN
    assert result.port == tcp_listener
    assert result.protocol == "tcp"


@pytest.mark.asyncio
async def test_refused_port_is_closed():
    result = await probe("127.0.0.1", _unused_port(), 1.0)
    assert result is not None
    assert result.status == PortStatus.CLOSED


@pytest.mark.asyncio
async def test_timeout_is_filtered(monkeypatch):
    async def hang(host, port):
        await asyncio.sleep(10)

    monkeypatch.setattr(prober.asyncio, "open_connection", hang)
    result = await probe("192.0.2.1", 80, 0.05)

    assert result is not None
    assert result.status == PortStatus.FILTERED


@pytest.mark.asyncio
async def test_resolution_failure_gives_no_result(monkeypatch):
    async def unresolvable(host, port):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr(prober.asyncio, "open_connection", unresolvable)
    assert await probe("no-such-host.invalid", 80, 1.0) is None
