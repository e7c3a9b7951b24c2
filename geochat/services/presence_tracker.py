"""
접속 상태 관리 서비스

채팅방 단위로 사용자의 online/offline 상태를 기록하고 구독합니다.
자동 offline 전환(heartbeat/TTL)은 하지 않습니다.
"""

from typing import Awaitable, Callable, List, Optional, Union

from geochat.core.errors import BaseCustomException
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.presence import PRESENCE_COLLECTION, PRESENCE_STATUSES, PresenceRecord
from geochat.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDocument
from geochat.store.subscription import ErrorCallback, Subscription, maybe_await

logger = get_logger(__name__)

PresenceCallback = Callable[[List[PresenceRecord]], Union[None, Awaitable[None]]]


def presence_doc_id(room_id: str, user_id: str) -> str:
    return f"{room_id}:{user_id}"


def count_online(records: List[PresenceRecord]) -> int:
    """온라인 사용자 수"""
    return sum(1 for record in records if record.is_online)


class PresenceTracker:
    """채팅방 접속 상태 관리"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def set_presence(self, room_id: str, user_id: str, user_name: str, status: str) -> bool:
        """
        접속 상태 설정

        online은 레코드를 덮어쓰고, offline은 status/last_seen만 병합합니다.

        Args:
            room_id: 채팅방 ID
            user_id: 사용자 ID
            user_name: 표시 이름
            status: "online" 또는 "offline"

        Returns:
            성공 여부 (저장소 오류는 예외 대신 False)
        """
        Validator.validate_enum(status, PRESENCE_STATUSES, "status")
        Validator.validate_required(room_id, "room_id")
        Validator.validate_required(user_id, "user_id")

        doc_id = presence_doc_id(room_id, user_id)
        try:
            if status == "online":
                await self._store.set(PRESENCE_COLLECTION, doc_id, {
                    "room_id": room_id,
                    "user_id": user_id,
                    "user_name": user_name or "",
                    "status": "online",
                    "last_seen": SERVER_TIMESTAMP,
                })
            else:
                await self._store.set(PRESENCE_COLLECTION, doc_id, {
                    "room_id": room_id,
                    "user_id": user_id,
                    "status": "offline",
                    "last_seen": SERVER_TIMESTAMP,
                }, merge=True)

            logger.debug(f"User {user_id} is {status} in room {room_id}")
            return True

        except BaseCustomException as e:
            logger.error(f"Failed to set presence {status} for user {user_id} in room {room_id}: {e.message}")
            return False

    async def subscribe(
        self,
        room_id: str,
        on_update: PresenceCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        채팅방 접속 상태 구독

        변경될 때마다 채팅방의 전체 접속 레코드를 이름순으로 전달합니다.
        """
        Validator.validate_required(room_id, "room_id")
        query = Query(PRESENCE_COLLECTION, filters=(("room_id", room_id),))

        async def deliver(documents: List[StoredDocument]):
            records = sorted(
                (PresenceRecord.from_document(doc.data) for doc in documents),
                key=lambda r: (r.user_name, r.user_id)
            )
            await maybe_await(on_update(records))

        return await self._store.watch(query, deliver, on_error)
