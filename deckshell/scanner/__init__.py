"""
Concurrent TCP scanner

Probes many ports in parallel under per-probe timeouts, optionally layers
service fingerprinting and OS guessing on top, and can delegate to nmap.

Modules:
- models: ScanOptions / ScanReport data shapes
- prober: single bounded-time TCP connect
- batch: batched fan-out / fan-in over the prober
- fingerprint: banner grab and version extraction
- os_guess: OS family from the open port set
- nmap: external scan delegate
- orchestrator: backend selection
"""

from deckshell.scanner.models import (
    PortStatus,
    ScanOptions,
    PortProbeResult,
    ServiceInfo,
    ScanReport,
)
from deckshell.scanner.nmap import is_nmap_available, parse_nmap_xml, scan_with_nmap
from deckshell.scanner.fingerprint import parse_version_from_banner
from deckshell.scanner.orchestrator import scan, scan_localhost

__all__ = [
    "PortStatus",
    "ScanOptions",
    "PortProbeResult",
    "ServiceInfo",
    "ScanReport",
    "is_nmap_available",
    "parse_nmap_xml",
    "scan_with_nmap",
    "parse_version_from_banner",
    "scan",
    "scan_localhost",
]
