"""
메시지 반응(이모지) 서비스
"""

from typing import Any, Dict, Optional

from geochat.core.errors import NotFoundException
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.message import MESSAGES_COLLECTION, ReactionMap
from geochat.store.base import DocumentStore

logger = get_logger(__name__)

# 빠른 반응 선택지
EMOJI_REACTIONS = ["👍", "❤️", "😂", "😮", "😢", "🔥", "✨"]


def apply_toggle(reactions: Optional[ReactionMap], emoji: str, user_id: str) -> ReactionMap:
    """
    반응 토글 (순수 함수)

    사용자가 이미 반응했으면 제거하고, 아니면 추가합니다.
    빈 이모지 키는 제거되며 나머지 순서는 유지됩니다.
    """
    result: ReactionMap = {key: list(users) for key, users in (reactions or {}).items()}
    users = result.get(emoji, [])

    if user_id in users:
        users = [uid for uid in users if uid != user_id]
    else:
        users = users + [user_id]
    result[emoji] = users

    return {key: value for key, value in result.items() if value}


class ReactionAggregator:
    """메시지 반응 관리"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def toggle(self, message_id: str, emoji: str, user_id: str) -> ReactionMap:
        """
        메시지 반응 토글

        원자적 read-modify-write로 수행되어 동시에 토글해도 변경이 유실되지 않습니다.

        Args:
            message_id: 메시지 ID
            emoji: 이모지
            user_id: 반응한 사용자 ID

        Returns:
            ReactionMap: 변경된 반응 맵

        Raises:
            NotFoundException: 메시지가 없음
        """
        Validator.validate_required(message_id, "message_id")
        Validator.validate_emoji(emoji)
        Validator.validate_required(user_id, "user_id")

        def mutate(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is None:
                raise NotFoundException("Message", details={"message_id": message_id})
            return {**current, "reactions": apply_toggle(current.get("reactions"), emoji, user_id)}

        updated = await self._store.transact(MESSAGES_COLLECTION, message_id, mutate)

        logger.debug(f"User {user_id} toggled {emoji} on message {message_id}")
        return updated["reactions"]
