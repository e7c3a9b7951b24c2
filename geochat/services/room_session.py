"""
채팅방 세션

사용자가 채팅방에 머무는 동안의 수명 주기를 관리합니다.
열 때 접속 상태를 online으로 설정하고 메시지/접속/입력 중 구독을 시작하며,
닫을 때 입력 중 표시를 해제하고 offline으로 전환한 뒤 모든 구독을 취소합니다.
"""

from typing import Any, List, Optional

from geochat.core.logging import clear_room_context, get_logger, set_room_context
from geochat.core.validators import Validator
from geochat.models.message import ReactionMap
from geochat.services.message_channel import MessageChannel, MessagesCallback
from geochat.services.presence_tracker import PresenceCallback, PresenceTracker
from geochat.services.reaction_aggregator import ReactionAggregator
from geochat.services.typing_tracker import TypingCallback, TypingDebouncer, TypingTracker
from geochat.store.subscription import ErrorCallback, Subscription

logger = get_logger(__name__)


class RoomSession:
    """한 사용자의 채팅방 세션"""

    def __init__(
        self,
        room_id: str,
        user_id: str,
        user_name: str,
        messages: MessageChannel,
        presence: PresenceTracker,
        typing: TypingTracker,
        reactions: ReactionAggregator,
        idle_seconds: Optional[float] = None,
    ):
        Validator.validate_required(room_id, "room_id")
        Validator.validate_required(user_id, "user_id")

        self.room_id = room_id
        self.user_id = user_id
        self.user_name = user_name or ""

        self._messages = messages
        self._presence = presence
        self._typing = typing
        self._reactions = reactions
        self._debouncer = TypingDebouncer(typing, room_id, user_id, self.user_name, idle_seconds)
        self._subscriptions: List[Subscription] = []
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def open(
        self,
        on_messages: MessagesCallback,
        on_presence: PresenceCallback,
        on_typing: TypingCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> "RoomSession":
        """
        세션 시작

        구독 도중 실패하면 이미 시작한 구독을 정리하고 예외를 전달합니다.
        """
        set_room_context(self.room_id, self.user_id)
        await self._presence.set_presence(self.room_id, self.user_id, self.user_name, "online")

        try:
            self._subscriptions.append(await self._messages.subscribe(self.room_id, on_messages, on_error))
            self._subscriptions.append(await self._presence.subscribe(self.room_id, on_presence, on_error))
            self._subscriptions.append(await self._typing.subscribe(self.room_id, on_typing, on_error))
        except Exception:
            await self.close()
            raise

        self._opened = True
        logger.info(f"User {self.user_id} opened room {self.room_id}", extra={
            "room_id": self.room_id,
            "user_id": self.user_id,
            "event_type": "session_opened"
        })
        return self

    async def keystroke(self) -> bool:
        return await self._debouncer.keystroke()

    async def send_message(self, text: str, attachments: Optional[List[Any]] = None) -> str:
        """메시지 전송 (빈 메시지 거부, 입력 중 표시는 즉시 해제)"""
        text = Validator.validate_message_content(text)
        await self._debouncer.message_sent()
        return await self._messages.send(self.room_id, self.user_id, self.user_name, text, attachments)

    async def react(self, message_id: str, emoji: str) -> ReactionMap:
        return await self._reactions.toggle(message_id, emoji, self.user_id)

    async def close(self):
        """세션 종료. 여러 번 호출해도 안전합니다."""
        if self._closed:
            return
        self._closed = True

        await self._debouncer.close()
        await self._typing.set_typing(self.room_id, self.user_id, self.user_name, False)
        await self._presence.set_presence(self.room_id, self.user_id, self.user_name, "offline")

        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions.clear()

        logger.info(f"User {self.user_id} closed room {self.room_id}", extra={
            "room_id": self.room_id,
            "user_id": self.user_id,
            "event_type": "session_closed"
        })
        clear_room_context()

    async def __aenter__(self) -> "RoomSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
