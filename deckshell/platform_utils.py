"""
Cross-platform utility module for deckshell.

This module provides platform detection, path management, and executable detection
utilities for Windows, macOS, and Linux environments.

Features:
- Platform detection (Windows/macOS/Linux)
- Configuration and log directory management (cross-platform)
- Executable detection with standard install path support (node, npm, npx, nmap, tailscale)
- Executable validation (existence, permissions, extensions)
"""

import os
import platform
import shutil
import subprocess
from pathlib import Path
from typing import Optional, List


def get_platform() -> str:
    """
    Detect the current operating system platform.

    Returns:
        str: Platform identifier - 'windows', 'macos', or 'linux'

    Examples:
        >>> get_platform()
        'macos'  # On macOS
        'windows'  # On Windows
        'linux'  # On Linux
    """
    system = platform.system()
    if system == 'Windows':
        return 'windows'
    elif system == 'Darwin':
        return 'macos'
    else:
        return 'linux'


def get_config_dir() -> Path:
    """
    Get the deckshell configuration directory for the current platform.

    Returns:
        Path: Configuration directory path
            - Windows: %APPDATA%\\deckshell
            - macOS/Linux: ~/.deckshell

    The DECKSHELL_HOME environment variable overrides both.
    """
    override = os.environ.get('DECKSHELL_HOME')
    if override:
        return Path(override)

    if get_platform() == 'windows':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / 'deckshell'
        return Path.home() / 'AppData' / 'Roaming' / 'deckshell'
    return Path.home() / '.deckshell'


def get_log_dir() -> Path:
    """
    Get the directory for log files.

    Returns:
        Path: Log directory path (config_dir/logs)

    Note:
        The directory is created lazily by whoever writes to it.
    """
    return get_config_dir() / 'logs'


def get_standard_paths(name: str) -> List[Path]:
    """
    Get standard installation paths for a supported executable.

    Args:
        name: Executable name - 'node', 'npm', 'npx', 'nmap' or 'tailscale'

    Returns:
        list[Path]: Standard installation paths for the current platform,
        most common first. Unknown names return an empty list.
    """
    platform_type = get_platform()

    if name in ('node', 'npm', 'npx'):
        if platform_type == 'windows':
            suffix = '.exe' if name == 'node' else '.cmd'
            roaming = Path(os.environ.get('APPDATA', str(Path.home() / 'AppData' / 'Roaming')))
            return [
                Path('C:/Program Files/nodejs') / f"{name}{suffix}",
                Path('C:/Program Files (x86)/nodejs') / f"{name}{suffix}",
                roaming / 'npm' / f"{name}{suffix}",
            ]
        return [
            Path('/usr/local/bin') / name,
            Path('/usr/bin') / name,
            Path('/opt/homebrew/bin') / name,
        ]

    if name == 'nmap':
        if platform_type == 'windows':
            return [
                Path('C:/Program Files (x86)/Nmap/nmap.exe'),
                Path('C:/Program Files/Nmap/nmap.exe'),
            ]
        return [
            Path('/usr/bin/nmap'),
            Path('/usr/local/bin/nmap'),
            Path('/opt/homebrew/bin/nmap'),
        ]

    if name == 'tailscale':
        if platform_type == 'windows':
            return [
                Path('C:/Program Files/Tailscale/tailscale.exe'),
                Path('C:/Program Files (x86)/Tailscale/tailscale.exe'),
            ]
        if platform_type == 'macos':
            return [
                Path('/Applications/Tailscale.app/Contents/MacOS/Tailscale'),
                Path('/usr/local/bin/tailscale'),
                Path('/opt/homebrew/bin/tailscale'),
            ]
        return [
            Path('/usr/bin/tailscale'),
            Path('/usr/local/bin/tailscale'),
        ]

    return []


def validate_executable(path: Path) -> bool:
    """
    Validate that a path points to a valid executable file.

    Validation checks:
        - File exists and is a regular file
        - Windows: has an .exe/.cmd/.bat extension
        - Unix (macOS/Linux): has executable permission (os.X_OK)
    """
    if not path.exists() or not path.is_file():
        return False

    if get_platform() == 'windows':
        return path.suffix.lower() in {'.exe', '.bat', '.cmd'}
    return os.access(path, os.X_OK)


def find_in_path(name: str) -> Optional[Path]:
    """
    Find an executable in the PATH environment variable.

    On Windows the .exe, .cmd and .bat extensions are tried in that order,
    so 'npm' resolves to 'npm.cmd'.

    Args:
        name: Executable name (without extension on Windows)

    Returns:
        Optional[Path]: Path to the executable if found, None otherwise
    """
    if get_platform() == 'windows':
        for ext in ['.exe', '.cmd', '.bat', '']:
            path_str = shutil.which(f"{name}{ext}")
            if path_str and validate_executable(Path(path_str)):
                return Path(path_str)
        return None

    path_str = shutil.which(name)
    if path_str and validate_executable(Path(path_str)):
        return Path(path_str)
    return None


def find_executable(name: str, override: Optional[str] = None) -> Optional[Path]:
    """
    Resolve an executable: explicit override, then PATH, then standard paths.

    Args:
        name: Executable name (e.g. 'node')
        override: Optional configured path; used only when it validates

    Returns:
        Optional[Path]: Resolved executable path, or None if not found
    """
    if override:
        candidate = Path(override).expanduser()
        if validate_executable(candidate):
            return candidate
        found = find_in_path(override)
        if found:
            return found

    found = find_in_path(name)
    if found:
        return found

    for candidate in get_standard_paths(name):
        if validate_executable(candidate):
            return candidate

    return None


def get_executable_version(path: Path, timeout: float = 5.0) -> Optional[str]:
    """
    Get version of an executable by running its --version command.

    Some executables print their version on stderr, so stderr is used
    when stdout is empty.

    Returns:
        Optional[str]: First line of the version output, None on any failure
    """
    try:
        result = subprocess.run(
            [str(path), "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            **hidden_window_kwargs(),
        )
    except (subprocess.TimeoutExpired, OSError):
        return None

    if result.returncode != 0:
        return None
    output = result.stdout.strip() or result.stderr.strip()
    if not output:
        return None
    return output.splitlines()[0].strip()


def hidden_window_kwargs() -> dict:
    """Popen kwargs that prevent a console window popup on Windows"""
    if get_platform() == 'windows':
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {}
