from .room import Room, NearbyRoom
from .message import Message, ReactionMap
from .presence import PresenceRecord, PresenceStatus
from .typing_record import TypingRecord
from .location import Coordinates, LocationPreferences, LocationPrivacy

__all__ = [
    "Room",
    "NearbyRoom",
    "Message",
    "ReactionMap",
    "PresenceRecord",
    "PresenceStatus",
    "TypingRecord",
    "Coordinates",
    "LocationPreferences",
    "LocationPrivacy",
]
