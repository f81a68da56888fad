"""
Batch Scanner

Fans a host's port list out across the Port Prober in sequential batches of
at most ``options.parallelism`` concurrent probes, fans the results back in
as they complete, then layers OS guessing and service identification on the
open ports.

Concurrency model:
- Batch N+1 starts only after every probe in batch N has finished, which caps
  simultaneous sockets deterministically
- Inside a batch results are collected in completion order, so the report's
  port order is not the request order
- A probe task that raises is logged and dropped; the scan carries on
"""

import asyncio
import logging
from typing import Iterator, List, Sequence

from deckshell.scanner.fingerprint import fingerprint
from deckshell.scanner.models import PortProbeResult, PortStatus, ScanOptions, ScanReport, ServiceInfo
from deckshell.scanner.os_guess import guess_os
from deckshell.scanner.ports import COMMON_PORTS, lookup_service
from deckshell.scanner.prober import probe

logger = logging.getLogger(__name__)


def iter_batches(ports: Sequence[int], size: int) -> Iterator[Sequence[int]]:
    """Split ports into consecutive chunks of at most ``size``"""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for i in range(0, len(ports), size):
        yield ports[i:i + size]


async def _probe_batch(host: str, batch: Sequence[int], timeout: float, counts: dict) -> List[PortProbeResult]:
    tasks = [asyncio.create_task(probe(host, port, timeout)) for port in batch]
    open_ports: List[PortProbeResult] = []

    for next_done in asyncio.as_completed(tasks):
        try:
            result = await next_done
        except Exception as e:
            counts["failed"] += 1
            logger.debug(f"Probe task on {host} failed: {e!r}")
            continue

        if result is None:
            continue
        counts[result.status.value] += 1
        if result.status == PortStatus.OPEN:
            open_ports.append(result)

    return open_ports


async def _identify_services(host: str, open_ports: List[PortProbeResult], options: ScanOptions) -> List[ServiceInfo]:
    services: List[ServiceInfo] = []

    if not options.version_detection:
        for port_info in open_ports:
            name = lookup_service(port_info.port)
            if name:
                port_info.service = name
                services.append(ServiceInfo(name=name))
        return services

    for port_info in open_ports:
        port_info.service = lookup_service(port_info.port)

    for batch in iter_batches(open_ports, options.parallelism):
        results = await asyncio.gather(
            *(fingerprint(host, port_info, options.timeout) for port_info in batch),
            return_exceptions=True,
        )
        for port_info, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.debug(f"Fingerprint of {host}:{port_info.port} failed: {result!r}")
                continue
            if result is None:
                continue
            port_info.service = result.name
            port_info.version = result.version
            services.append(result)

    return services


async def scan_host(host: str, options: ScanOptions) -> ScanReport:
    """
    Scan one host with the internal TCP pipeline.

    Args:
        host: Target host name or address
        options: Scan options (the ``hosts`` field is ignored here)

    Returns:
        ScanReport with open ports only

    Raises:
        ValueError: host is empty
    """
    host = host.strip() if host else ""
    if not host:
        raise ValueError("Scan target host must not be empty")

    ports = list(options.ports) if options.ports is not None else list(COMMON_PORTS)
    counts = {"open": 0, "closed": 0, "filtered": 0, "failed": 0}
    open_ports: List[PortProbeResult] = []

    logger.info(
        f"Scanning {host}: {len(ports)} ports, parallelism={options.parallelism}, "
        f"timeout={options.timeout}s"
    )

    for batch in iter_batches(ports, options.parallelism):
        open_ports.extend(await _probe_batch(host, batch, options.timeout, counts))

    report = ScanReport(host=host, ports=open_ports)

    if options.os_detection:
        report.os_guess = guess_os(open_ports)

    report.services = await _identify_services(host, open_ports, options)

    logger.info(
        f"Scan of {host} done: open={counts['open']} closed={counts['closed']} "
        f"filtered={counts['filtered']} failed={counts['failed']}"
    )
    return report
