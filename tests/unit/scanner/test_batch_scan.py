"""Tests for the batch scanner pipeline"""

import asyncio
import socket

import pytest
import pytest_asyncio

from deckshell.scanner import batch
from deckshell.scanner.batch import iter_batches, scan_host
from deckshell.scanner.models import PortProbeResult, PortStatus, ScanOptions


def _free_ports(count):
    """Ports with no listener: bind to 0, note the port, release it"""
    socks = []
    try:
        for _ in range(count):
            s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            s.bind(("127.0.0.1", 0))
            socks.append(s)
        return [s.getsockname()[1] for s in socks]
    finally:
        for s in socks:
            s.close()


@pytest_asyncio.fixture
async def two_listeners():
    async def handle(reader, writer):
        writer.close()

    servers = [await asyncio.start_server(handle, "127.0.0.1", 0) for _ in range(2)]
    try:
        yield [s.sockets[0].getsockname()[1] for s in servers]
    finally:
        for s in servers:
            s.close()
            await s.wait_closed()


def test_iter_batches_splits_in_order():
    assert list(iter_batches([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    assert list(iter_batches([1, 2], 10)) == [[1, 2]]
    assert list(iter_batches([], 3)) == []


def test_iter_batches_rejects_zero():
    with pytest.raises(ValueError):
        list(iter_batches([1], 0))


@pytest.mark.asyncio
async def test_bound_listener_is_reported_open(tcp_listener):
    options = ScanOptions(ports=[tcp_listener], timeout=1.0)
    report = await scan_host("127.0.0.1", options)

    assert report.host == "127.0.0.1"
    assert report.open_ports() == [tcp_listener]
    assert report.ports[0].status == PortStatus.OPEN


@pytest.mark.asyncio
async def test_no_false_positives(tcp_listener):
    closed = _free_ports(3)
    options = ScanOptions(ports=closed + [tcp_listener], timeout=1.0)
    report = await scan_host("127.0.0.1", options)

    assert set(report.open_ports()) == {tcp_listener}


@pytest.mark.asyncio
async def test_no_listeners_gives_empty_report():
    options = ScanOptions(ports=_free_ports(5), timeout=1.0)
    report = await scan_host("127.0.0.1", options)

    assert report.ports == []
    assert report.services == []
    assert report.os_guess is None


@pytest.mark.asyncio
async def test_parallelism_does_not_change_result(two_listeners):
    ports = _free_ports(4) + two_listeners

    serial = await scan_host("127.0.0.1", ScanOptions(ports=ports, timeout=1.0, parallelism=1))
    wide = await scan_host("127.0.0.1", ScanOptions(ports=ports, timeout=1.0, parallelism=100))

    assert set(serial.open_ports()) == set(two_listeners)
    assert set(wide.open_ports()) == set(serial.open_ports())


@pytest.mark.asyncio
async def test_batches_cap_concurrency_and_do_not_overlap(monkeypatch):
    ports = list(range(5000, 5050))
    parallelism = 7
    in_flight = 0
    peak = 0
    events = []

    async def fake_probe(host, port, timeout):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        events.append(("start", port))
        # Uneven delays so completion order differs from request order
        await asyncio.sleep(0.001 * (port % 5))
        events.append(("end", port))
        in_flight -= 1
        return PortProbeResult(port=port, status=PortStatus.OPEN)

    monkeypatch.setattr(batch, "probe", fake_probe)
    report = await scan_host("127.0.0.1", ScanOptions(ports=ports, parallelism=parallelism))

    assert peak == parallelism
    assert sorted(report.open_ports()) == ports

    position = {(kind, port): i for i, (kind, port) in enumerate(events)}
    chunks = [ports[i:i + parallelism] for i in range(0, len(ports), parallelism)]
    for previous, current in zip(chunks, chunks[1:]):
        last_end = max(position[("end", p)] for p in previous)
        first_start = min(position[("start", p)] for p in current)
        assert last_end < first_start


@pytest.mark.asyncio
async def test_empty_host_rejected():
    with pytest.raises(ValueError):
        await scan_host("  ", ScanOptions(ports=[80]))


@pytest.mark.asyncio
async def test_failed_probe_task_is_dropped(monkeypatch):
    async def fake_probe(host, port, timeout):
        if port == 2000:
            raise RuntimeError("boom")
        return PortProbeResult(port=port, status=PortStatus.OPEN)

    monkeypatch.setattr(batch, "probe", fake_probe)
    report = await scan_host("127.0.0.1", ScanOptions(ports=[2000, 2001, 2002]))

    assert sorted(report.open_ports()) == [2001, 2002]


@pytest.mark.asyncio
async def test_closed_and_filtered_not_retained(monkeypatch):
    statuses = {3000: PortStatus.OPEN, 3001: PortStatus.CLOSED, 3002: PortStatus.FILTERED}

    async def fake_probe(host, port, timeout):
        return PortProbeResult(port=port, status=statuses[port])

    monkeypatch.setattr(batch, "probe", fake_probe)
    report = await scan_host("127.0.0.1", ScanOptions(ports=list(statuses)))

    assert report.open_ports() == [3000]


@pytest.mark.asyncio
async def test_os_detection_and_static_service_names(monkeypatch):
    async def fake_probe(host, port, timeout):
        return PortProbeResult(port=port, status=PortStatus.OPEN)

    monkeypatch.setattr(batch, "probe", fake_probe)
    options = ScanOptions(ports=[22, 111, 4321], os_detection=True)
    report = await scan_host("10.0.0.5", options)

    assert report.os_guess == "Unix/Linux"
    by_port = {p.port: p for p in report.ports}
    assert by_port[22].service == "ssh"
    assert by_port[4321].service is None
    assert [s.name for s in report.services] == ["ssh"]


@pytest.mark.asyncio
async def test_version_detection_uses_fingerprinter(monkeypatch):
    from deckshell.scanner.models import ServiceInfo

    async def fake_probe(host, port, timeout):
        return PortProbeResult(port=port, status=PortStatus.OPEN)

    async def fake_fingerprint(host, port_info, timeout):
        if port_info.port == 80:
            return ServiceInfo(name=port_info.service, version="1.18.0", info="Server: nginx/1.18.0")
        return None

    monkeypatch.setattr(batch, "probe", fake_probe)
    monkeypatch.setattr(batch, "fingerprint", fake_fingerprint)
    report = await scan_host("127.0.0.1", ScanOptions(ports=[80, 5555], version_detection=True))

    by_port = {p.port: p for p in report.ports}
    assert by_port[80].service == "http"
    assert by_port[80].version == "1.18.0"
    assert by_port[5555].version is None
    assert len(report.services) == 1
