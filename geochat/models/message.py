from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from geochat.utils.time_utils import from_millis

MESSAGES_COLLECTION = "messages"

ReactionMap = Dict[str, List[str]]  # emoji -> user IDs


class Message(BaseModel):
    id: str = Field(..., description="Message ID")
    room_id: str = Field(..., description="Room ID where message was sent")
    user_id: str = Field(..., description="User ID who sent the message")
    user_name: str = Field(default="", description="Sender display name")
    text: str = Field(default="", description="Message content")
    timestamp: Optional[datetime] = Field(None, description="Store-assigned write time")
    attachments: List[str] = Field(default_factory=list, description="Ordered attachment references")
    reactions: ReactionMap = Field(default_factory=dict, description="emoji -> user IDs who reacted")

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Message":
        return cls(
            id=doc_id,
            room_id=data.get("room_id") or "",
            user_id=data.get("user_id") or "",
            user_name=data.get("user_name") or "",
            text=data.get("text") or "",
            timestamp=from_millis(data.get("timestamp")),
            attachments=list(data.get("attachments") or []),
            reactions={emoji: list(users) for emoji, users in (data.get("reactions") or {}).items()},
        )

    def __repr__(self):
        return f"<Message(id={self.id}, room_id={self.room_id}, user_id={self.user_id})>"
