"""
Port Prober

One bounded-time TCP connect attempt against a single (host, port) pair.

Classification:
- connect succeeds             -> OPEN
- connect refused / fails fast -> CLOSED
- no answer before timeout     -> FILTERED
- host name does not resolve   -> None (no confident result)
"""

import asyncio
import logging
import socket
from typing import Optional

from deckshell.scanner.models import PortProbeResult, PortStatus

logger = logging.getLogger(__name__)


async def close_writer(writer: asyncio.StreamWriter) -> None:
    """Close a stream, ignoring errors from an already-dead connection"""
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


async def probe(host: str, port: int, timeout: float) -> Optional[PortProbeResult]:
    """
    Probe a single TCP port.

    Args:
        host: Target host name or address
        port: Target port
        timeout: Connect timeout in seconds

    Returns:
        PortProbeResult, or None when the host cannot be resolved
    """
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        return PortProbeResult(port=port, status=PortStatus.FILTERED)
    except socket.gaierror as e:
        logger.debug(f"Cannot resolve {host}: {e}")
        return None
    except OSError:
        # ConnectionRefusedError and other immediate connect failures
        return PortProbeResult(port=port, status=PortStatus.CLOSED)

    await close_writer(writer)
    return PortProbeResult(port=port, status=PortStatus.OPEN)
