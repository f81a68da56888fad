"""Common constants and validation shared by the supervisor and CLI"""

from deckshell.errors import InvalidPortError

# Ports below 1024 require special privileges
MIN_PORT = 1024

MAX_PORT = 65535

# Port used when the server is not running
DEFAULT_PORT = 8787


def validate_port(port: int) -> int:
    """
    Validate that a port is usable by an unprivileged supervised process.

    Raises:
        InvalidPortError: port is 0, below MIN_PORT or above MAX_PORT
    """
    if port == 0:
        raise InvalidPortError("Port 0 is not valid")
    if port < MIN_PORT:
        raise InvalidPortError(
            f"Port {port} is below {MIN_PORT}. Use a port between {MIN_PORT} and {MAX_PORT}."
        )
    if port > MAX_PORT:
        raise InvalidPortError(f"Port {port} is above {MAX_PORT}")
    return port
