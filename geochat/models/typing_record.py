from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from geochat.utils.time_utils import from_millis

TYPING_COLLECTION = "typing"


class TypingRecord(BaseModel):
    room_id: str = Field(..., description="Room the record is scoped to")
    user_id: str = Field(..., description="User ID who is typing")
    user_name: str = Field(default="", description="User display name")
    timestamp_ms: int = Field(default=0, description="Last keystroke time (epoch ms)")

    @property
    def timestamp(self) -> Optional[datetime]:
        return from_millis(self.timestamp_ms)

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "TypingRecord":
        raw_timestamp = data.get("timestamp")
        return cls(
            room_id=data.get("room_id") or "",
            user_id=data.get("user_id") or "",
            user_name=data.get("user_name") or "",
            timestamp_ms=int(raw_timestamp) if isinstance(raw_timestamp, (int, float)) else 0,
        )
