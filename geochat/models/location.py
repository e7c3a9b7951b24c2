from typing import Any, Dict, Literal
from pydantic import BaseModel, Field

USERS_COLLECTION = "users"

LocationPrivacy = Literal["private", "nearby-only", "public"]
LOCATION_PRIVACY_LEVELS = ["private", "nearby-only", "public"]


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LocationPreferences(BaseModel):
    location_privacy: LocationPrivacy = Field(default="nearby-only", description="Location visibility level")
    share_location_for_discovery: bool = Field(default=True, description="Use location to find nearby rooms")
    location_visible_to_room_members: bool = Field(default=False, description="Show location to room members")

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "LocationPreferences":
        """누락된 필드는 기본값으로 채웁니다."""
        defaults = cls()
        privacy = data.get("location_privacy")
        share = data.get("share_location_for_discovery")
        visible = data.get("location_visible_to_room_members")
        return cls(
            location_privacy=privacy if privacy in LOCATION_PRIVACY_LEVELS else defaults.location_privacy,
            share_location_for_discovery=share if isinstance(share, bool) else defaults.share_location_for_discovery,
            location_visible_to_room_members=visible if isinstance(visible, bool) else defaults.location_visible_to_room_members,
        )

    @property
    def can_share_for_discovery(self) -> bool:
        return self.share_location_for_discovery and self.location_privacy != "private"
