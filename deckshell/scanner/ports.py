"""Port tables used by the scanner"""

from typing import List, Optional

# Well-known service ports plus common development server ports, scanned by default
COMMON_PORTS: List[int] = [
    21,    # FTP
    22,    # SSH
    23,    # Telnet
    25,    # SMTP
    53,    # DNS
    80,    # HTTP
    110,   # POP3
    143,   # IMAP
    443,   # HTTPS
    3306,  # MySQL
    3389,  # RDP
    5432,  # PostgreSQL
    3000,  # Node.js dev
    3001,  # Alternative Node.js
    5173,  # Vite dev
    5174,  # Alternative Vite
    8000,  # Python dev
    8080,  # Alternative HTTP
    8787,  # Deck IDE backend
    9000,  # Alternative dev
]

# Static port -> service name table, used when version detection is off
SERVICE_FINGERPRINTS = {
    21: "ftp",
    22: "ssh",
    23: "telnet",
    25: "smtp",
    53: "dns",
    80: "http",
    110: "pop3",
    143: "imap",
    443: "https",
    3306: "mysql",
    3389: "rdp",
    5432: "postgresql",
    3000: "nodejs",
    5173: "vite",
    8000: "http-alt",
    8080: "http-proxy",
    8787: "deck-ide",
}

# Ports that get a minimal HTTP request before the banner read
HTTP_PORTS = frozenset({80, 3000, 5173, 8000, 8080, 8787})


def lookup_service(port: int) -> Optional[str]:
    """Service name for a port from the static table"""
    return SERVICE_FINGERPRINTS.get(port)


def parse_ports(spec: str) -> List[int]:
    """
    Parse a port specification string into a list of ports.

    Supports:
    - Single ports: "80"
    - Ranges: "1-1024"
    - Comma-separated: "22,80,443"
    - Mixed: "1-1024,8080,9000-9005"

    Order of first appearance is kept; duplicates are dropped.
    """
    spec = spec.strip()
    if not spec:
        raise ValueError("Empty port spec")

    ports: List[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_s, end_s = part.split("-", 1)
            start = int(start_s)
            end = int(end_s)
            if start < 1 or end > 65535 or start > end:
                raise ValueError(f"Invalid port range: {part}")
            ports.extend(range(start, end + 1))
        else:
            p = int(part)
            if p < 1 or p > 65535:
                raise ValueError(f"Invalid port: {p}")
            ports.append(p)

    return list(dict.fromkeys(ports))
