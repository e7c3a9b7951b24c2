from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from geochat.utils.time_utils import from_millis

ROOMS_COLLECTION = "rooms"
ROOM_MEMBERS_COLLECTION = "room_members"


class Room(BaseModel):
    id: str = Field(..., description="Room ID")
    name: str = Field(..., description="Room name")
    description: str = Field(default="", description="Room description")
    created_by: str = Field(..., description="User ID who created the room")
    created_at: Optional[datetime] = Field(None, description="When the room was created")
    member_count: int = Field(default=0, ge=0, description="Number of joined members")
    latitude: float = Field(..., ge=-90, le=90, description="Room latitude")
    longitude: float = Field(..., ge=-180, le=180, description="Room longitude")
    radius: float = Field(default=10.0, ge=0, description="Discovery radius in km")
    last_message: Optional[datetime] = Field(None, description="Last activity marker")

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Room":
        return cls(
            id=doc_id,
            name=data.get("name") or "",
            description=data.get("description") or "",
            created_by=data.get("created_by") or "",
            created_at=from_millis(data.get("created_at")),
            member_count=max(0, int(data.get("member_count") or 0)),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            radius=data.get("radius") if data.get("radius") is not None else 10.0,
            last_message=from_millis(data.get("last_message")),
        )

    def __repr__(self):
        return f"<Room(id={self.id}, name={self.name}, member_count={self.member_count})>"


class NearbyRoom(Room):
    distance_km: float = Field(..., ge=0, description="Distance from the query point in km")

    def __repr__(self):
        return f"<NearbyRoom(id={self.id}, distance_km={self.distance_km:.2f}, member_count={self.member_count})>"
