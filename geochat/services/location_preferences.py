"""
위치 공개 설정 서비스
"""

from typing import Any, Dict

from geochat.core.errors import BaseCustomException, InvalidArgumentException, ValidationError
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.location import LOCATION_PRIVACY_LEVELS, USERS_COLLECTION, LocationPreferences
from geochat.store.base import DocumentStore

logger = get_logger(__name__)

_BOOLEAN_FIELDS = ("share_location_for_discovery", "location_visible_to_room_members")


class LocationPreferenceService:
    """사용자 위치 공개 설정 조회/변경"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def get_preferences(self, user_id: str) -> LocationPreferences:
        """
        위치 설정 조회

        레코드나 필드가 없으면 기본값을 사용하며, 조회 실패 시에도 기본값을 반환합니다.
        """
        Validator.validate_required(user_id, "user_id")
        try:
            data = await self._store.get(USERS_COLLECTION, user_id)
        except BaseCustomException as e:
            logger.warning(f"Failed to load location preferences for user {user_id}: {e.message}")
            return LocationPreferences()

        if data is None:
            return LocationPreferences()
        return LocationPreferences.from_document(data)

    async def update_preferences(self, user_id: str, **changes: Any) -> LocationPreferences:
        """
        위치 설정 변경 (지정한 필드만 병합)

        Args:
            user_id: 사용자 ID
            **changes: location_privacy, share_location_for_discovery,
                location_visible_to_room_members 중 변경할 값

        Returns:
            LocationPreferences: 변경 후 설정
        """
        Validator.validate_required(user_id, "user_id")
        fields: Dict[str, Any] = {}
        errors = []

        for name, value in changes.items():
            if name == "location_privacy":
                fields[name] = Validator.validate_enum(value, LOCATION_PRIVACY_LEVELS, name)
            elif name in _BOOLEAN_FIELDS:
                if not isinstance(value, bool):
                    errors.append(ValidationError(field=name, message="Must be a boolean", value=value))
                fields[name] = value
            else:
                errors.append(ValidationError(field=name, message="Unknown preference", value=value))

        if errors:
            raise InvalidArgumentException("Invalid location preferences", validation_errors=errors)

        if fields:
            await self._store.set(USERS_COLLECTION, user_id, fields, merge=True)
            logger.info(f"Location preferences updated for user {user_id}", extra={
                "user_id": user_id,
                "fields": sorted(fields)
            })

        return await self.get_preferences(user_id)

    async def can_share_for_discovery(self, user_id: str) -> bool:
        preferences = await self.get_preferences(user_id)
        return preferences.can_share_for_discovery
