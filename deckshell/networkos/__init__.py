"""NetworkOS: remote access discovery (Tailscale)"""

from deckshell.networkos.tailscale import (
    RemoteAccessStatus,
    TailscaleStatus,
    find_tailscale_command,
    get_remote_access_status,
    get_status_summary,
    parse_serve_status_json,
    parse_status_json,
)

__all__ = [
    "RemoteAccessStatus",
    "TailscaleStatus",
    "find_tailscale_command",
    "get_remote_access_status",
    "get_status_summary",
    "parse_serve_status_json",
    "parse_status_json",
]
