"""
geochat: realtime chat room synchronization and nearby room discovery.
"""

from .engine import ChatEngine, connect

__version__ = "0.1.0"

__all__ = [
    "ChatEngine",
    "connect",
]
