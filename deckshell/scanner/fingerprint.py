"""
Service Fingerprinter

Opens a fresh connection to an open port, grabs a banner (after a minimal
HTTP request on HTTP-family ports) and extracts a version string from it.

Version extraction is a total function: unrecognized banners give None.
"""

import asyncio
import logging
import re
from typing import Iterable, Optional

from deckshell.scanner.models import PortProbeResult, ServiceInfo
from deckshell.scanner.ports import HTTP_PORTS, lookup_service
from deckshell.scanner.prober import close_writer

logger = logging.getLogger(__name__)

# Ordered markers that typically precede a version token
VERSION_MARKERS = ("Server: ", "version ", " v", "/")

HTTP_READ_SIZE = 1024
BANNER_READ_SIZE = 512
HTTP_PROBE_TIMEOUT = 0.1

_NON_PRINTABLE = re.compile(r"[^\x09\x0a\x0d\x20-\x7e]")
_VERSION_RUN = re.compile(r"[0-9.]*")


def clean_banner(text: str, max_len: int = 300) -> str:
    """Strip control bytes and truncate a banner for display"""
    text = _NON_PRINTABLE.sub("", text).strip()
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text


def _version_after_markers(line: str) -> Optional[str]:
    for marker in VERSION_MARKERS:
        pos = line.find(marker)
        if pos == -1:
            continue
        run = _VERSION_RUN.match(line, pos + len(marker)).group(0)
        if any(c.isdigit() for c in run) and run.count(".") <= 2:
            return run
    return None


def _first_version(lines: Iterable[str]) -> Optional[str]:
    for line in lines:
        version = _version_after_markers(line)
        if version:
            return version
    return None


def parse_version_from_banner(banner: str) -> Optional[str]:
    """
    Extract a version string from a service banner.

    An HTTP ``Server:`` header wins over the rest of the banner: its digit
    run is returned when it has one (``nginx/1.18.0`` -> ``1.18.0``),
    otherwise its full value (``cloudflare``). Without a Server header every
    line is scanned for the ordered markers.

    Examples:
        >>> parse_version_from_banner("Server: nginx/1.18.0")
        '1.18.0'
        >>> parse_version_from_banner("OpenSSH/8.2p1 Ubuntu")
        '8.2'
        >>> parse_version_from_banner("no version here") is None
        True
    """
    if not banner:
        return None

    lines = banner.splitlines()
    server_lines = [line for line in lines if line.lower().startswith("server:")]

    if server_lines:
        version = _first_version(server_lines)
        if version:
            return version
        value = server_lines[0].split(":", 1)[1].strip()
        return value or None

    return _first_version(lines)


async def _read_banner(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    host: str,
    port: int,
    timeout: float,
) -> bytes:
    data = b""

    if port in HTTP_PORTS:
        request = f"GET / HTTP/1.0\r\nHost: {host}\r\n\r\n".encode()
        try:
            writer.write(request)
            await asyncio.wait_for(writer.drain(), timeout=HTTP_PROBE_TIMEOUT)
            data = await asyncio.wait_for(reader.read(HTTP_READ_SIZE), timeout=HTTP_PROBE_TIMEOUT)
        except (asyncio.TimeoutError, OSError):
            data = b""

    if not data:
        try:
            data = await asyncio.wait_for(reader.read(BANNER_READ_SIZE), timeout=timeout)
        except (asyncio.TimeoutError, OSError):
            data = b""

    return data


async def fingerprint(host: str, port_info: PortProbeResult, timeout: float) -> Optional[ServiceInfo]:
    """
    Identify the service behind an open port.

    Args:
        host: Target host
        port_info: Open port from the probe phase
        timeout: Connect and banner read timeout in seconds

    Returns:
        ServiceInfo, or None if the connect failed or no banner byte arrived
        (silent or TLS-only services)
    """
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port_info.port),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, OSError) as e:
        logger.debug(f"Fingerprint connect to {host}:{port_info.port} failed: {e!r}")
        return None

    try:
        data = await _read_banner(reader, writer, host, port_info.port, timeout)
    finally:
        await close_writer(writer)

    if not data:
        return None

    banner = data.decode(errors="ignore")
    return ServiceInfo(
        name=port_info.service or lookup_service(port_info.port) or "unknown",
        version=parse_version_from_banner(banner),
        info=clean_banner(banner),
    )
