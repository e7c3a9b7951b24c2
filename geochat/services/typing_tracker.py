"""
입력 중 표시 관리 서비스

키 입력 시 입력 중 레코드를 갱신하고, 구독자에게는 만료되지 않은 레코드만 전달합니다.
레코드는 마지막 키 입력 후 typing_ttl_seconds(기본 5초)가 지나면 만료로 간주됩니다.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Union

from geochat.core.config import settings
from geochat.core.errors import BaseCustomException
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.typing_record import TYPING_COLLECTION, TypingRecord
from geochat.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDocument
from geochat.store.subscription import ErrorCallback, Subscription, maybe_await
from geochat.utils.time_utils import Clock, now_millis, system_clock

logger = get_logger(__name__)

TypingCallback = Callable[[List[TypingRecord]], Union[None, Awaitable[None]]]


def typing_doc_id(room_id: str, user_id: str) -> str:
    return f"{room_id}:{user_id}"


def filter_active(records: List[TypingRecord], now_ms: int, ttl_ms: int) -> List[TypingRecord]:
    """now - timestamp < ttl 인 레코드만 남김"""
    return [record for record in records if now_ms - record.timestamp_ms < ttl_ms]


class _TypingView:
    """구독별 최신 문서와 다음 만료 시각"""

    def __init__(self):
        self.documents: List[StoredDocument] = []
        self.next_expiry_ms: Optional[int] = None
        self.changed = asyncio.Event()


class TypingTracker:
    """채팅방 입력 중 표시 관리"""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = system_clock,
        ttl_seconds: Optional[float] = None,
    ):
        self._store = store
        self._clock = clock
        ttl_seconds = settings.typing_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._ttl_ms = int(ttl_seconds * 1000)

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    async def set_typing(self, room_id: str, user_id: str, user_name: str, is_typing: bool) -> bool:
        """
        입력 중 상태 설정

        Args:
            room_id: 채팅방 ID
            user_id: 사용자 ID
            user_name: 표시 이름
            is_typing: True면 레코드 갱신, False면 삭제

        Returns:
            성공 여부 (저장소 오류는 예외 대신 False)
        """
        Validator.validate_required(room_id, "room_id")
        Validator.validate_required(user_id, "user_id")

        doc_id = typing_doc_id(room_id, user_id)
        try:
            if is_typing:
                await self._store.set(TYPING_COLLECTION, doc_id, {
                    "room_id": room_id,
                    "user_id": user_id,
                    "user_name": user_name or "",
                    "timestamp": SERVER_TIMESTAMP,
                })
            else:
                await self._store.delete(TYPING_COLLECTION, doc_id)
            return True

        except BaseCustomException as e:
            logger.error(f"Failed to set typing={is_typing} for user {user_id} in room {room_id}: {e.message}")
            return False

    async def subscribe(
        self,
        room_id: str,
        on_update: TypingCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        채팅방 입력 중 레코드 구독

        변경될 때마다 만료되지 않은 레코드만 전달합니다. 표시 중인 레코드가 있으면
        가장 오래된 레코드가 만료되는 시점에 다시 전달하여, 추가 변경이 없어도
        만료된 표시가 사라지도록 합니다.
        """
        Validator.validate_required(room_id, "room_id")
        query = Query(TYPING_COLLECTION, filters=(("room_id", room_id),))
        view = _TypingView()

        async def deliver(documents: List[StoredDocument]):
            now_ms = now_millis(self._clock)
            records = [TypingRecord.from_document(doc.data) for doc in documents]
            active = sorted(filter_active(records, now_ms, self._ttl_ms), key=lambda r: r.timestamp_ms)

            view.documents = documents
            view.next_expiry_ms = active[0].timestamp_ms + self._ttl_ms if active else None
            view.changed.set()

            await maybe_await(on_update(active))

        subscription = await self._store.watch(query, deliver, on_error)
        subscription.attach(self._expire(view, subscription))
        return subscription

    async def _expire(self, view: _TypingView, subscription: Subscription):
        """가장 오래된 표시 레코드의 만료 시점에 필터링된 목록을 다시 전달"""
        while subscription.active:
            view.changed.clear()
            deadline = view.next_expiry_ms
            if deadline is None:
                await view.changed.wait()
                continue

            # 타이머가 약간 일찍 깨어나도 만료 이후에 평가되도록 1ms 여유
            delay = max(0.0, (deadline - now_millis(self._clock)) / 1000.0) + 0.001
            try:
                await asyncio.wait_for(view.changed.wait(), timeout=delay)
                continue
            except asyncio.TimeoutError:
                pass

            if now_millis(self._clock) < deadline:
                continue
            await subscription.dispatch(view.documents)


class TypingDebouncer:
    """
    호출 측 입력 중 디바운스

    키 입력마다 입력 중 상태를 갱신하고, 마지막 키 입력 후 idle_seconds(기본 2초)가
    지나면 입력 중 상태를 해제합니다.
    """

    def __init__(
        self,
        tracker: TypingTracker,
        room_id: str,
        user_id: str,
        user_name: str,
        idle_seconds: Optional[float] = None,
    ):
        self._tracker = tracker
        self._room_id = room_id
        self._user_id = user_id
        self._user_name = user_name
        self._idle_seconds = settings.typing_idle_seconds if idle_seconds is None else idle_seconds
        self._timer: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def keystroke(self) -> bool:
        self._cancel_timer()
        result = await self._tracker.set_typing(self._room_id, self._user_id, self._user_name, True)
        self._timer = asyncio.create_task(self._stop_after_idle())
        return result

    async def message_sent(self) -> bool:
        self._cancel_timer()
        return await self._tracker.set_typing(self._room_id, self._user_id, self._user_name, False)

    async def close(self):
        timer = self._timer
        self._cancel_timer()
        if timer is not None:
            try:
                await timer
            except asyncio.CancelledError:
                pass

    async def _stop_after_idle(self):
        await asyncio.sleep(self._idle_seconds)
        await self._tracker.set_typing(self._room_id, self._user_id, self._user_name, False)

    def _cancel_timer(self):
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
