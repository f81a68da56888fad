"""Tests for scan backend selection"""

import pytest

from deckshell.scanner import orchestrator
from deckshell.scanner.models import PortProbeResult, PortStatus, ScanOptions, ScanReport
from deckshell.scanner.orchestrator import scan, scan_localhost


class TestScan:

    def setup_method(self):
        self.calls = []

    def _install(self, monkeypatch, nmap_available):
        async def fake_available(binary=None):
            return nmap_available

        async def fake_internal(host, options):
            self.calls.append(("internal", host))
            return ScanReport(host=host, ports=[PortProbeResult(port=22, status=PortStatus.OPEN)])

        async def fake_nmap(host, ports=None, os_detection=False, version_detection=False, binary=None):
            self.calls.append(("nmap", host))
            return [ScanReport(host=host, ports=[PortProbeResult(port=22, status=PortStatus.OPEN)])]

        monkeypatch.setattr(orchestrator, "is_nmap_available", fake_available)
        monkeypatch.setattr(orchestrator, "scan_host", fake_internal)
        monkeypatch.setattr(orchestrator, "scan_with_nmap", fake_nmap)

    @pytest.mark.asyncio
    async def test_internal_by_default(self, monkeypatch):
        self._install(monkeypatch, nmap_available=True)
        reports = await scan(ScanOptions(hosts=["a", "b"]))

        assert [r.host for r in reports] == ["a", "b"]
        assert self.calls == [("internal", "a"), ("internal", "b")]

    @pytest.mark.asyncio
    async def test_external_when_preferred_and_available(self, monkeypatch):
        self._install(monkeypatch, nmap_available=True)
        reports = await scan(ScanOptions(hosts=["a"]), prefer_external=True)

        assert self.calls == [("nmap", "a")]
        assert reports[0].open_ports() == [22]

    @pytest.mark.asyncio
    async def test_falls_back_when_nmap_missing(self, monkeypatch):
        self._install(monkeypatch, nmap_available=False)
        reports = await scan(ScanOptions(hosts=["a"]), prefer_external=True)

        assert self.calls == [("internal", "a")]
        assert reports[0].open_ports() == [22]


@pytest.mark.asyncio
async def test_scan_localhost_returns_single_report(tcp_listener):
    report = await scan_localhost(ports=[tcp_listener])
    assert report.host == "127.0.0.1"
    assert report.open_ports() == [tcp_listener]
