from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from geochat.models import LocationPreferences, Message, PresenceRecord, Room, TypingRecord


class TestDocumentConversion:
    """저장소 문서 변환 테스트"""

    def test_room_timestamps_are_utc(self):
        room = Room.from_document("r1", {
            "name": "Hongdae", "created_by": "u1", "created_at": 1704067200000,
            "member_count": 3, "latitude": 37.55, "longitude": 126.92,
        })
        assert room.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert room.radius == 10.0
        assert room.last_message is None

    def test_room_rejects_bad_coordinates(self):
        with pytest.raises(ValidationError):
            Room.from_document("r1", {"name": "x", "created_by": "u", "latitude": 120, "longitude": 0})

    def test_negative_member_count_clamped(self):
        room = Room.from_document("r1", {
            "name": "x", "created_by": "u", "member_count": -2, "latitude": 0, "longitude": 0,
        })
        assert room.member_count == 0

    def test_message_defaults(self):
        message = Message.from_document("m1", {"room_id": "r", "user_id": "u"})
        assert message.text == ""
        assert message.attachments == []
        assert message.reactions == {}
        assert message.timestamp is None

    def test_presence_and_typing(self):
        presence = PresenceRecord.from_document({"room_id": "r", "user_id": "u", "status": "online"})
        assert presence.is_online

        typing = TypingRecord.from_document({"room_id": "r", "user_id": "u", "timestamp": 1704067200000})
        assert typing.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_preferences_ignore_invalid_values(self):
        preferences = LocationPreferences.from_document({
            "location_privacy": "friends-only",
            "share_location_for_discovery": "yes",
        })
        assert preferences == LocationPreferences()
