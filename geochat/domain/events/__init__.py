"""
Domain Events
"""

from .store_events import DocumentChanged

__all__ = [
    "DocumentChanged",
]
