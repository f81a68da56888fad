"""deckshell - Desktop shell process supervision and local network discovery"""

__version__ = "0.3.0"
