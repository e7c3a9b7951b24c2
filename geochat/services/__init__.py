"""
Services layer for room synchronization and discovery.

This layer handles:
- Message, presence, typing and reaction state per room
- Room directory and membership
- Nearby room discovery and location preferences
"""

from . import distance
from . import geo_discovery
from . import geolocation
from . import location_preferences
from . import message_channel
from . import presence_tracker
from . import reaction_aggregator
from . import room_directory
from . import room_session
from . import typing_tracker

__all__ = [
    "distance",
    "geo_discovery",
    "geolocation",
    "location_preferences",
    "message_channel",
    "presence_tracker",
    "reaction_aggregator",
    "room_directory",
    "room_session",
    "typing_tracker",
]
