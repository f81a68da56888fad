"""
Scan Orchestrator

Single entry point for scans. Chooses between the nmap delegate and the
internal TCP pipeline; the caller receives the same ScanReport shape either
way.
"""

import logging
from typing import List, Optional, Sequence

from deckshell.scanner.batch import scan_host
from deckshell.scanner.models import DEFAULT_HOST, ScanOptions, ScanReport
from deckshell.scanner.nmap import is_nmap_available, scan_with_nmap

logger = logging.getLogger(__name__)


async def scan(
    options: ScanOptions,
    prefer_external: bool = False,
    nmap_binary: Optional[str] = None,
) -> List[ScanReport]:
    """
    Scan every host in ``options``.

    Args:
        options: Validated scan options
        prefer_external: Use nmap when it is available
        nmap_binary: nmap executable override

    Returns:
        One ScanReport per requested host (nmap may report several hosts
        for one target, e.g. a hostname with multiple addresses)

    Raises:
        ExternalToolError: nmap was chosen and failed
    """
    use_external = prefer_external and await is_nmap_available(nmap_binary)
    if prefer_external and not use_external:
        logger.info("nmap not available, using internal scanner")

    reports: List[ScanReport] = []
    for host in options.hosts:
        if use_external:
            reports.extend(
                await scan_with_nmap(
                    host,
                    ports=options.ports,
                    os_detection=options.os_detection,
                    version_detection=options.version_detection,
                    binary=nmap_binary,
                )
            )
        else:
            reports.append(await scan_host(host, options))

    return reports


async def scan_localhost(
    ports: Optional[Sequence[int]] = None,
    os_detection: bool = False,
    version_detection: bool = False,
) -> ScanReport:
    """Scan 127.0.0.1 with the internal pipeline"""
    options = ScanOptions(
        hosts=[DEFAULT_HOST],
        ports=list(ports) if ports is not None else None,
        os_detection=os_detection,
        version_detection=version_detection,
    )
    reports = await scan(options)
    return reports[0] if reports else ScanReport(host=DEFAULT_HOST)
