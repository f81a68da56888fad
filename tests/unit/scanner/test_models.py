"""Tests for scanner models, port tables and OS guessing"""

import json

import pytest
from pydantic import ValidationError

from deckshell.scanner.models import PortProbeResult, PortStatus, ScanOptions, ScanReport, ServiceInfo
from deckshell.scanner.os_guess import guess_os
from deckshell.scanner.ports import COMMON_PORTS, lookup_service, parse_ports


class TestScanOptions:

    def test_defaults(self):
        options = ScanOptions()
        assert options.hosts == ["127.0.0.1"]
        assert options.ports is None
        assert options.timeout == 0.2
        assert options.parallelism == 100
        assert not options.os_detection
        assert not options.version_detection

    @pytest.mark.parametrize("kwargs", [
        {"parallelism": 0},
        {"timeout": 0},
        {"timeout": -1.0},
        {"ports": []},
        {"ports": [0]},
        {"ports": [65536]},
        {"hosts": []},
        {"hosts": [""]},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            ScanOptions(**kwargs)

    def test_hosts_stripped(self):
        assert ScanOptions(hosts=[" box.lan "]).hosts == ["box.lan"]


def test_report_serializes():
    report = ScanReport(
        host="127.0.0.1",
        ports=[PortProbeResult(port=8787, status=PortStatus.OPEN, service="deck-ide")],
        services=[ServiceInfo(name="deck-ide")],
    )
    data = json.loads(report.model_dump_json())
    assert data["ports"][0]["status"] == "open"
    assert data["os_guess"] is None
    assert data["services"][0]["version"] is None


class TestGuessOs:

    @staticmethod
    def _open(*ports):
        return [PortProbeResult(port=p, status=PortStatus.OPEN) for p in ports]

    def test_windows(self):
        assert guess_os(self._open(135, 445, 8080)) == "Windows"

    def test_unix(self):
        assert guess_os(self._open(22)) == "Unix/Linux"

    def test_both_is_unknown(self):
        assert guess_os(self._open(22, 3389)) == "Unknown"

    def test_neither_is_unknown(self):
        assert guess_os(self._open(8080)) == "Unknown"

    def test_empty(self):
        assert guess_os([]) is None


class TestPorts:

    def test_common_ports_cover_dev_servers(self):
        for port in (3000, 5173, 8000, 8080, 8787):
            assert port in COMMON_PORTS
        assert len(COMMON_PORTS) == len(set(COMMON_PORTS))

    def test_lookup(self):
        assert lookup_service(22) == "ssh"
        assert lookup_service(8787) == "deck-ide"
        assert lookup_service(4242) is None

    def test_parse_ports(self):
        assert parse_ports("80") == [80]
        assert parse_ports("22, 80,443") == [22, 80, 443]
        assert parse_ports("8000-8003,22,8001") == [8000, 8001, 8002, 8003, 22]

    @pytest.mark.parametrize("spec", ["", "0", "70000", "10-5", "abc"])
    def test_parse_ports_invalid(self, spec):
        with pytest.raises(ValueError):
            parse_ports(spec)
