from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field

from geochat.utils.time_utils import from_millis

PRESENCE_COLLECTION = "presence"

PresenceStatus = Literal["online", "offline"]
PRESENCE_STATUSES = ["online", "offline"]


class PresenceRecord(BaseModel):
    room_id: str = Field(..., description="Room the presence is scoped to")
    user_id: str = Field(..., description="User ID")
    user_name: str = Field(default="", description="User display name")
    status: PresenceStatus = Field(..., description="online or offline")
    last_seen: Optional[datetime] = Field(None, description="Last status change")

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "PresenceRecord":
        return cls(
            room_id=data.get("room_id") or "",
            user_id=data.get("user_id") or "",
            user_name=data.get("user_name") or "",
            status=data.get("status") or "offline",
            last_seen=from_millis(data.get("last_seen")),
        )

    @property
    def is_online(self) -> bool:
        return self.status == "online"
