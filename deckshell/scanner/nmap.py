"""
External Scan Delegate (nmap)

Runs nmap as a subprocess and normalizes its XML output into ScanReport.

Invocation:
    nmap <host> [-p <comma-list>] [-O] [-sV] -oX - -T4

The XML is read with best-effort line scanning rather than a validating
parser: nmap writes each <port> element (with its nested <state> and
<service>) on a single line, and anything unexpected leaves fields at their
defaults instead of failing the scan.
"""

import asyncio
import html
import logging
import re
from typing import List, Optional, Sequence

from deckshell.errors import ExternalToolError, ToolNotFoundError
from deckshell.platform_utils import hidden_window_kwargs
from deckshell.scanner.models import PortProbeResult, PortStatus, ScanReport, ServiceInfo

logger = logging.getLogger(__name__)

NMAP_BINARY = "nmap"
VERSION_CHECK_TIMEOUT = 10.0
INSTALL_HINT = "Install nmap from https://nmap.org/download.html"

_HOST_START = re.compile(r"<host[\s>]")
_STATE_MAP = {
    "open": PortStatus.OPEN,
    "closed": PortStatus.CLOSED,
}


def extract_attr(fragment: str, attr: str) -> Optional[str]:
    """
    Extract an XML attribute value from a tag fragment.

    The match requires a non-word character before the name, so ``name``
    does not match inside ``hostname``.

    Example:
        >>> extract_attr('<port protocol="tcp" portid="80">', "portid")
        '80'
    """
    match = re.search(rf'(?<![\w:-]){re.escape(attr)}="([^"]*)"', fragment)
    if not match:
        return None
    return html.unescape(match.group(1))


def _segment(line: str, tag: str) -> Optional[str]:
    """Text of ``line`` from the opening ``<tag `` to its closing ``>``"""
    start = line.find(f"<{tag} ")
    if start == -1:
        return None
    end = line.find(">", start)
    return line[start:] if end == -1 else line[start:end + 1]


def _service_from(segment: str) -> ServiceInfo:
    name = extract_attr(segment, "name") or "unknown"
    product = extract_attr(segment, "product")
    extrainfo = extract_attr(segment, "extrainfo")
    info = " ".join(part for part in (product, extrainfo) if part) or None
    return ServiceInfo(name=name, version=extract_attr(segment, "version"), info=info)


def parse_nmap_xml(xml: str, default_host: str = "unknown", open_only: bool = False) -> List[ScanReport]:
    """
    Parse nmap ``-oX`` output into ScanReports.

    Args:
        xml: Raw nmap XML output
        default_host: Host used when no address element is found
        open_only: Drop non-open ports and their services

    Returns:
        One report per <host> element. Empty or unrecognizable input yields
        a single empty report for ``default_host``; this never raises.
    """
    reports: List[ScanReport] = []
    current: Optional[ScanReport] = None
    last_port: Optional[PortProbeResult] = None
    in_hosthint = False

    def ensure_report() -> ScanReport:
        nonlocal current
        if current is None:
            current = ScanReport(host=default_host)
            reports.append(current)
        return current

    for line in (xml or "").splitlines():
        # <hosthint> repeats the address of hosts discovered during ping scan
        if "<hosthint" in line:
            in_hosthint = "</hosthint>" not in line
            continue
        if in_hosthint:
            in_hosthint = "</hosthint>" not in line
            continue

        if _HOST_START.search(line):
            current = ScanReport(host=default_host)
            reports.append(current)
            last_port = None

        address = _segment(line, "address")
        if address:
            addr = extract_attr(address, "addr")
            addrtype = extract_attr(address, "addrtype")
            if addr and addrtype in (None, "ipv4", "ipv6"):
                ensure_report().host = addr

        port_segment = _segment(line, "port")
        if port_segment:
            last_port = None
            port_id = extract_attr(port_segment, "portid")
            try:
                port_num = int(port_id) if port_id is not None else None
            except ValueError:
                port_num = None

            if port_num is not None and 0 < port_num <= 65535:
                state_segment = _segment(line, "state") or ""
                state = extract_attr(state_segment, "state") or "unknown"
                status = _STATE_MAP.get(state, PortStatus.FILTERED)

                if not open_only or status == PortStatus.OPEN:
                    port_info = PortProbeResult(
                        port=port_num,
                        status=status,
                        protocol=extract_attr(port_segment, "protocol") or "tcp",
                    )
                    report = ensure_report()
                    report.ports.append(port_info)
                    last_port = port_info

        service_segment = _segment(line, "service")
        if service_segment and (last_port is not None or not port_segment):
            if last_port is not None or not open_only:
                service = _service_from(service_segment)
                ensure_report().services.append(service)
                if last_port is not None and last_port.service is None:
                    last_port.service = service.name
                    last_port.version = service.version

        osmatch = _segment(line, "osmatch")
        if osmatch:
            name = extract_attr(osmatch, "name")
            report = ensure_report()
            # nmap lists matches by descending accuracy
            if name and report.os_guess is None:
                report.os_guess = name

        if "</port>" in line:
            last_port = None

    if not reports:
        reports.append(ScanReport(host=default_host))
    return reports


def build_nmap_command(
    host: str,
    ports: Optional[Sequence[int]] = None,
    os_detection: bool = False,
    version_detection: bool = False,
    binary: str = NMAP_BINARY,
) -> List[str]:
    """
    Build the nmap argument vector.

    Raises:
        ValueError: ``ports`` is an empty list (None means nmap's defaults)
    """
    if ports is not None and not ports:
        raise ValueError("ports must be None or a non-empty list")
    cmd = [binary, host]
    if ports:
        cmd.extend(["-p", ",".join(str(p) for p in ports)])
    if os_detection:
        cmd.append("-O")
    if version_detection:
        cmd.append("-sV")
    cmd.extend(["-oX", "-", "-T4"])
    return cmd


async def is_nmap_available(binary: Optional[str] = None) -> bool:
    """
    Check whether nmap can be executed.

    Runs ``nmap --version``; a missing binary, a timeout or a non-zero exit
    all mean unavailable.
    """
    binary = binary or NMAP_BINARY
    try:
        proc = await asyncio.create_subprocess_exec(
            binary, "--version",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            **hidden_window_kwargs(),
        )
    except OSError:
        return False

    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout=VERSION_CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning(f"{binary} --version timed out")
        return False
    return returncode == 0


async def scan_with_nmap(
    host: str,
    ports: Optional[Sequence[int]] = None,
    os_detection: bool = False,
    version_detection: bool = False,
    binary: Optional[str] = None,
) -> List[ScanReport]:
    """
    Scan a host with nmap.

    Returns:
        Reports holding open ports only, like the internal pipeline

    Raises:
        ToolNotFoundError: nmap is not installed
        ExternalToolError: nmap exited non-zero (stderr attached)
    """
    cmd = build_nmap_command(
        host, ports, os_detection, version_detection, binary=binary or NMAP_BINARY
    )
    logger.info(f"Running {' '.join(cmd)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **hidden_window_kwargs(),
        )
    except FileNotFoundError as e:
        raise ToolNotFoundError(cmd[0], INSTALL_HINT) from e
    except OSError as e:
        raise ExternalToolError(cmd[0], None, str(e)) from e

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise ExternalToolError(cmd[0], proc.returncode, stderr.decode(errors="replace"))

    return parse_nmap_xml(stdout.decode(errors="replace"), default_host=host, open_only=True)
