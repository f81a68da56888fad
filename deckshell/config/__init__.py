"""Configuration management for deckshell"""

from deckshell.config.settings import (
    ShellSettings,
    get_config_path,
    load_settings,
)

__all__ = [
    "ShellSettings",
    "get_config_path",
    "load_settings",
]
