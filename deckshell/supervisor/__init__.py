"""Process supervision for the backend server and remote-access tunnel."""

from deckshell.supervisor.handle import ManagedProcess
from deckshell.supervisor.supervisor import ProcessStatus, ProcessSupervisor
from deckshell.supervisor.server import (
    find_project_root,
    get_server_path,
    is_development_mode,
    launch_server,
    wait_until_ready,
)
from deckshell.supervisor.tunnel import (
    TunnelInfo,
    launch_tunnel,
    parse_tunnel_password,
    parse_tunnel_url,
)
from deckshell.supervisor.shell import DesktopShell

__all__ = [
    "ManagedProcess",
    "ProcessStatus",
    "ProcessSupervisor",
    "find_project_root",
    "get_server_path",
    "is_development_mode",
    "launch_server",
    "wait_until_ready",
    "TunnelInfo",
    "launch_tunnel",
    "parse_tunnel_password",
    "parse_tunnel_url",
    "DesktopShell",
]
