"""
Room directory service.

Lists and creates room metadata records and tracks room membership.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from geochat.core.config import settings
from geochat.core.errors import NotFoundException
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.room import ROOM_MEMBERS_COLLECTION, ROOMS_COLLECTION, Room
from geochat.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDocument

logger = get_logger(__name__)


def member_doc_id(room_id: str, user_id: str) -> str:
    return f"{room_id}:{user_id}"


def parse_rooms(documents: List[StoredDocument]) -> List[Room]:
    """저장소 문서를 Room으로 변환 (좌표가 유효하지 않은 문서는 건너뜀)"""
    rooms = []
    for doc in documents:
        try:
            rooms.append(Room.from_document(doc.id, doc.data))
        except (PydanticValidationError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed room {doc.id}: {e}")
    return rooms


class RoomDirectory:
    """채팅방 목록/생성/입장/퇴장"""

    def __init__(self, store: DocumentStore):
        self._store = store

    # =========================================================================
    # Room CRUD Operations
    # =========================================================================

    async def create_room(
        self,
        name: str,
        description: str,
        created_by: str,
        latitude: float,
        longitude: float,
        radius: Optional[float] = None,
    ) -> Room:
        """채팅방 생성 (생성자가 첫 멤버)"""
        Validator.validate_required(name, "name")
        Validator.validate_required(created_by, "created_by")
        lat, lon = Validator.validate_coordinates(latitude, longitude)
        radius_km = Validator.validate_radius(
            settings.default_room_radius_km if radius is None else radius
        )

        room_id = await self._store.add(ROOMS_COLLECTION, {
            "name": name.strip(),
            "description": description or "",
            "created_by": created_by,
            "created_at": SERVER_TIMESTAMP,
            "member_count": 1,
            "latitude": lat,
            "longitude": lon,
            "radius": radius_km,
        })

        logger.info(f"Room {room_id} created by {created_by}", extra={
            "room_id": room_id,
            "event_type": "room_created"
        })
        return await self.get_room(room_id)

    async def get_room(self, room_id: str) -> Room:
        """채팅방 ID로 조회"""
        Validator.validate_required(room_id, "room_id")
        data = await self._store.get(ROOMS_COLLECTION, room_id)
        if data is None:
            raise NotFoundException("Room", details={"room_id": room_id})
        return Room.from_document(room_id, data)

    async def list_rooms(self) -> List[Room]:
        """전체 채팅방 목록 (최신순)"""
        documents = await self._store.query(
            Query(ROOMS_COLLECTION, order_by="created_at", descending=True)
        )
        return parse_rooms(documents)

    # =========================================================================
    # Membership
    # =========================================================================

    async def join_room(self, room_id: str, user_id: str) -> int:
        """
        채팅방 입장

        Returns:
            변경된 멤버 수
        """
        Validator.validate_required(user_id, "user_id")
        room = await self._adjust_member_count(room_id, 1)

        await self._store.set(ROOM_MEMBERS_COLLECTION, member_doc_id(room_id, user_id), {
            "room_id": room_id,
            "user_id": user_id,
            "joined_at": SERVER_TIMESTAMP,
        })

        logger.info(f"User {user_id} joined room {room_id}", extra={
            "room_id": room_id,
            "user_id": user_id,
            "event_type": "room_joined"
        })
        return room["member_count"]

    async def leave_room(self, room_id: str, user_id: str) -> int:
        """
        채팅방 퇴장 (멤버 수는 0 미만으로 내려가지 않음)

        Returns:
            변경된 멤버 수
        """
        Validator.validate_required(user_id, "user_id")
        room = await self._adjust_member_count(room_id, -1)

        await self._store.set(
            ROOM_MEMBERS_COLLECTION,
            member_doc_id(room_id, user_id),
            {"left_at": SERVER_TIMESTAMP},
            merge=True
        )

        logger.info(f"User {user_id} left room {room_id}", extra={
            "room_id": room_id,
            "user_id": user_id,
            "event_type": "room_left"
        })
        return room["member_count"]

    async def _adjust_member_count(self, room_id: str, delta: int) -> Dict[str, Any]:
        Validator.validate_required(room_id, "room_id")

        def apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is None:
                raise NotFoundException("Room", details={"room_id": room_id})
            count = int(current.get("member_count") or 0)
            return {**current, "member_count": max(0, count + delta)}

        return await self._store.transact(ROOMS_COLLECTION, room_id, apply)
