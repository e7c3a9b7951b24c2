"""
메시지 채널 서비스

채팅방의 최근 메시지 윈도우를 실시간으로 구독하고 새 메시지를 추가합니다.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Union

from geochat.core.config import settings
from geochat.core.errors import BaseCustomException
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.message import MESSAGES_COLLECTION, Message
from geochat.models.room import ROOMS_COLLECTION
from geochat.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDocument
from geochat.store.subscription import ErrorCallback, Subscription, maybe_await

logger = get_logger(__name__)

MessagesCallback = Callable[[List[Message]], Union[None, Awaitable[None]]]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def order_messages(messages: List[Message]) -> List[Message]:
    """타임스탬프 오름차순 정렬 (동일 시각은 ID 순, 타임스탬프 없는 메시지는 앞쪽)"""
    return sorted(messages, key=lambda m: (m.timestamp or _EPOCH, m.id))


class MessageChannel:
    """채팅방 메시지 채널"""

    def __init__(self, store: DocumentStore, window: Optional[int] = None):
        self._store = store
        self._window = window if window is not None else settings.message_window

    @property
    def window(self) -> int:
        return self._window

    async def subscribe(
        self,
        room_id: str,
        on_update: MessagesCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        채팅방 메시지 구독

        구독 즉시, 그리고 해당 채팅방 메시지가 변경될 때마다 최근 메시지 윈도우 전체를
        타임스탬프 오름차순으로 전달합니다.

        Args:
            room_id: 채팅방 ID
            on_update: 메시지 목록을 받는 콜백
            on_error: 구독 이후 피드 오류를 받는 콜백

        Returns:
            Subscription: 취소 가능한 구독 핸들
        """
        Validator.validate_required(room_id, "room_id")

        query = Query(
            MESSAGES_COLLECTION,
            filters=(("room_id", room_id),),
            order_by="timestamp",
            descending=True,
            limit=self._window,
        )

        async def deliver(documents: List[StoredDocument]):
            messages = order_messages([Message.from_document(doc.id, doc.data) for doc in documents])
            await maybe_await(on_update(messages))

        return await self._store.watch(query, deliver, on_error)

    async def send(
        self,
        room_id: str,
        user_id: str,
        user_name: str,
        text: str,
        attachments: Optional[List[Any]] = None,
    ) -> str:
        """
        메시지 전송

        메시지를 저장한 뒤 채팅방의 last_message 표시를 갱신합니다.
        표시 갱신 실패는 로그만 남기고 메시지 전송은 성공으로 처리합니다.

        Args:
            room_id: 채팅방 ID
            user_id: 보낸 사용자 ID
            user_name: 보낸 사용자 표시 이름
            text: 메시지 내용 (빈 문자열 검증은 호출 측 책임)
            attachments: 첨부 참조 목록

        Returns:
            str: 생성된 메시지 ID
        """
        Validator.validate_required(room_id, "room_id")
        Validator.validate_required(user_id, "user_id")

        message_id = await self._store.add(MESSAGES_COLLECTION, {
            "room_id": room_id,
            "user_id": user_id,
            "user_name": user_name or "",
            "text": text if text is not None else "",
            "timestamp": SERVER_TIMESTAMP,
            "attachments": list(attachments or []),
            "reactions": {},
        })

        logger.info(f"Message {message_id} sent to room {room_id}", extra={
            "room_id": room_id,
            "user_id": user_id,
            "event_type": "message_sent"
        })

        try:
            await self._store.update(ROOMS_COLLECTION, room_id, {"last_message": SERVER_TIMESTAMP})
        except BaseCustomException as e:
            logger.warning(f"Failed to update last_message for room {room_id}: {e.message}")

        return message_id
