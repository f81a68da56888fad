"""Tailscale integration for remote access status

Tailscale is treated as an external dependency: we shell out to the
``tailscale`` CLI when it is installed. Output parsing extracts only the
fields we use, so schema drift degrades to empty fields instead of errors.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from deckshell.errors import ExternalToolError, ToolNotFoundError
from deckshell.platform_utils import find_executable, hidden_window_kwargs

logger = logging.getLogger(__name__)

TAILSCALE_TIMEOUT = 10.0
_URL_TRAILING = ".,;)]}"


@dataclass
class TailscaleStatus:
    """Summary of ``tailscale status --json``"""
    installed: bool
    backend_state: Optional[str] = None  # "Running", "NeedsLogin", ...
    auth_url: Optional[str] = None
    self_hostname: Optional[str] = None
    self_dns_name: Optional[str] = None
    tailscale_ips: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RemoteAccessStatus:
    """Tailscale status plus ``tailscale serve`` state"""
    tailscale: TailscaleStatus
    serve_enabled: bool = False
    serve_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.tailscale.to_dict()
        data["serve_enabled"] = self.serve_enabled
        data["serve_url"] = self.serve_url
        return data


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_status_json(text: str) -> TailscaleStatus:
    """
    Parse ``tailscale status --json`` output.

    Raises:
        ValueError: payload is not a JSON object
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Tailscale status is not a JSON object")

    self_obj = data.get("Self")
    if not isinstance(self_obj, dict):
        self_obj = {}

    ips = self_obj.get("TailscaleIPs")
    return TailscaleStatus(
        installed=True,
        backend_state=_str_or_none(data.get("BackendState")),
        auth_url=_str_or_none(data.get("AuthURL")),
        self_hostname=_str_or_none(self_obj.get("HostName")),
        self_dns_name=_str_or_none(self_obj.get("DNSName")),
        tailscale_ips=[ip for ip in ips if isinstance(ip, str)] if isinstance(ips, list) else [],
    )


def is_serve_enabled_from_text(text: str) -> bool:
    """Plain ``tailscale serve status`` lists URLs only when something is served"""
    lowered = text.lower()
    return "https://" in lowered or "http://" in lowered


def pick_serve_url_from_text(text: str) -> Optional[str]:
    """First https:// token in the text, trailing punctuation stripped"""
    for token in text.split():
        if token.startswith("https://"):
            return token.rstrip(_URL_TRAILING)
    return None


def _first_web_url(web: Any) -> Optional[str]:
    if isinstance(web, dict) and web:
        host_port = next(iter(web))
        return f"https://{host_port.rstrip('/')}/"
    return None


def parse_serve_status_json(text: str) -> Tuple[bool, Optional[str]]:
    """
    Parse ``tailscale serve status --json``.

    The Web map is keyed by "<dns>:<port>"; some CLI versions nest it under
    Foreground/Background session maps. Falls back to the text heuristics
    when no Web entry is found or the payload is not JSON.

    Returns:
        (serve_enabled, serve_url)
    """
    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if isinstance(data, dict):
        url = _first_web_url(data.get("Web"))
        if url:
            return True, url
        for section in ("Foreground", "Background"):
            sessions = data.get(section)
            if not isinstance(sessions, dict):
                continue
            for config in sessions.values():
                url = _first_web_url(config.get("Web") if isinstance(config, dict) else None)
                if url:
                    return True, url

    return is_serve_enabled_from_text(text), pick_serve_url_from_text(text)


def find_tailscale_command(override: Optional[str] = None) -> Optional[str]:
    path = find_executable("tailscale", override)
    return str(path) if path else None


async def _run_tailscale(binary: str, *args: str) -> Tuple[int, str, str]:
    try:
        proc = await asyncio.create_subprocess_exec(
            binary, *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **hidden_window_kwargs(),
        )
    except FileNotFoundError as e:
        raise ToolNotFoundError("tailscale") from e
    except OSError as e:
        raise ExternalToolError("tailscale", None, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=TAILSCALE_TIMEOUT)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ExternalToolError("tailscale", None, f"timed out after {TAILSCALE_TIMEOUT}s") from e

    return proc.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace")


async def get_status_summary(binary: Optional[str] = None) -> TailscaleStatus:
    """
    Fetch Tailscale status via the CLI.

    A missing CLI is reported as ``installed=False``; a CLI that fails or
    prints unparseable output is reported as installed with empty fields.
    """
    binary = binary or find_tailscale_command()
    if binary is None:
        return TailscaleStatus(installed=False)

    try:
        _, stdout, _ = await _run_tailscale(binary, "status", "--json")
    except ToolNotFoundError:
        return TailscaleStatus(installed=False)
    except ExternalToolError as e:
        logger.warning(f"tailscale status failed: {e}")
        return TailscaleStatus(installed=True)

    try:
        return parse_status_json(stdout)
    except ValueError as e:
        logger.debug(f"Unparseable tailscale status output: {e}")
        return TailscaleStatus(installed=True)


async def get_serve_status(binary: str) -> Tuple[bool, Optional[str]]:
    """
    Query ``tailscale serve`` state: JSON first, then plain text.

    Raises:
        ToolNotFoundError: CLI vanished
        ExternalToolError: CLI could not be run
    """
    returncode, stdout, _ = await _run_tailscale(binary, "serve", "status", "--json")
    if returncode == 0:
        return parse_serve_status_json(stdout)

    _, stdout, stderr = await _run_tailscale(binary, "serve", "status")
    combined = f"{stdout}\n{stderr}"
    return is_serve_enabled_from_text(combined), pick_serve_url_from_text(combined)


async def get_remote_access_status(binary: Optional[str] = None) -> RemoteAccessStatus:
    """Tailscale status plus serve state; never raises for a missing CLI"""
    binary = binary or find_tailscale_command()
    status = await get_status_summary(binary)
    if not status.installed or binary is None:
        return RemoteAccessStatus(tailscale=status)

    try:
        enabled, url = await get_serve_status(binary)
    except (ToolNotFoundError, ExternalToolError) as e:
        logger.warning(f"tailscale serve status failed: {e}")
        enabled, url = False, None
    return RemoteAccessStatus(tailscale=status, serve_enabled=enabled, serve_url=url)
