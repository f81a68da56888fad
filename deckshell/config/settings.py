"""Shell Settings: configuration for the supervisor, scanner and CLI

Settings are read from ``<config dir>/config.yaml`` when present and then
overridden by ``DECKSHELL_*`` environment variables. They are never written
back by deckshell.
"""

import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from deckshell import platform_utils

logger = logging.getLogger(__name__)

ENV_PREFIX = "DECKSHELL_"


@dataclass
class ShellSettings:
    """Shell Settings: global configuration"""

    # Backend server
    server_port: int = 8787
    project_dir: Optional[str] = None  # Repo root containing apps/server (dev mode)
    resources_dir: Optional[str] = None  # Bundle dir containing server/index.js (production)
    dev_mode: Optional[bool] = None  # None = auto-detect

    # Executable overrides
    node_path: Optional[str] = None
    npm_path: Optional[str] = None
    npx_path: Optional[str] = None
    nmap_path: Optional[str] = None
    tailscale_path: Optional[str] = None

    # Scanner defaults
    scan_timeout_ms: int = 200
    scan_parallelism: int = 100

    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShellSettings":
        """Create from dictionary, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings keys: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})


def _coerce(raw: str, current: Any, name: str) -> Any:
    """Convert an environment string to the type of the field default"""
    if name == "dev_mode" or isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    return raw


def get_config_path() -> Path:
    """Default config file location"""
    return platform_utils.get_config_dir() / "config.yaml"


def load_settings(config_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> ShellSettings:
    """
    Load settings from YAML then apply environment overrides.

    Args:
        config_path: YAML file (default: ~/.deckshell/config.yaml)
        environ: Environment mapping (default: os.environ)

    Returns:
        ShellSettings; defaults when the file is missing or unreadable
    """
    config_path = config_path or get_config_path()
    environ = os.environ if environ is None else environ

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning(f"Config file {config_path} is not a mapping, using defaults")
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config {config_path}: {e}")

    settings = ShellSettings.from_dict(data)

    for f in fields(ShellSettings):
        raw = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
        if raw is None:
            continue
        try:
            setattr(settings, f.name, _coerce(raw, getattr(settings, f.name), f.name))
        except ValueError:
            logger.warning(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}")

    return settings
