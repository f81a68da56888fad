"""OS Guesser: coarse classification from the set of open ports

No raw-socket TCP/IP fingerprinting; this is a best-effort signal only.
"""

from typing import Iterable, Optional

from deckshell.scanner.models import PortProbeResult

WINDOWS_PORTS = frozenset({135, 445, 3389})
UNIX_PORTS = frozenset({22, 111})


def guess_os(open_ports: Iterable[PortProbeResult]) -> Optional[str]:
    """
    Guess the operating system from open ports.

    Returns:
        "Windows", "Unix/Linux", "Unknown" (both or neither family seen),
        or None when there are no open ports
    """
    ports = {p.port for p in open_ports}
    if not ports:
        return None

    has_windows = bool(ports & WINDOWS_PORTS)
    has_unix = bool(ports & UNIX_PORTS)

    if has_windows and not has_unix:
        return "Windows"
    if has_unix and not has_windows:
        return "Unix/Linux"
    return "Unknown"
