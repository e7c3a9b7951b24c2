"""
geochat 엔진

Redis 클라이언트 수명 주기를 관리하고, 하나의 문서 저장소를 모든 구성 요소에 주입합니다.
"""

from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis

from geochat.core.config import Settings, settings as default_settings
from geochat.core.logging import get_logger
from geochat.database.redis import close_redis, create_redis_client, health_check
from geochat.services.geo_discovery import GeoDiscovery
from geochat.services.location_preferences import LocationPreferenceService
from geochat.services.message_channel import MessageChannel
from geochat.services.presence_tracker import PresenceTracker
from geochat.services.reaction_aggregator import ReactionAggregator
from geochat.services.room_directory import RoomDirectory
from geochat.services.room_session import RoomSession
from geochat.services.typing_tracker import TypingTracker
from geochat.store.redis_store import RedisDocumentStore
from geochat.utils.time_utils import Clock, system_clock

logger = get_logger(__name__)


class ChatEngine:
    """
    채팅 엔진

    client를 주입하면 그 수명은 호출 측이 관리하고, 주입하지 않으면 start()에서
    설정값으로 연결을 만들고 close()에서 닫습니다.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[redis.Redis] = None,
        clock: Clock = system_clock,
    ):
        self.config = config or default_settings
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._started = False

        self.store: Optional[RedisDocumentStore] = None
        self.rooms: Optional[RoomDirectory] = None
        self.preferences: Optional[LocationPreferenceService] = None
        self.discovery: Optional[GeoDiscovery] = None
        self.messages: Optional[MessageChannel] = None
        self.presence: Optional[PresenceTracker] = None
        self.typing: Optional[TypingTracker] = None
        self.reactions: Optional[ReactionAggregator] = None

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> "ChatEngine":
        """연결 생성 및 구성 요소 초기화"""
        if self._started:
            return self

        if self._client is None:
            self._client = await create_redis_client(self.config)

        self.store = RedisDocumentStore(
            self._client,
            prefix=self.config.store_key_prefix,
            clock=self._clock,
            poll_interval=self.config.subscription_poll_interval,
            max_retries=self.config.transaction_max_retries,
        )
        self.rooms = RoomDirectory(self.store)
        self.preferences = LocationPreferenceService(self.store)
        self.discovery = GeoDiscovery(self.store, self.rooms, self.preferences)
        self.messages = MessageChannel(self.store, window=self.config.message_window)
        self.presence = PresenceTracker(self.store)
        self.typing = TypingTracker(self.store, clock=self._clock, ttl_seconds=self.config.typing_ttl_seconds)
        self.reactions = ReactionAggregator(self.store)

        self._started = True
        logger.info(f"{self.config.app_name} engine started")
        return self

    async def close(self):
        """연결 종료 (주입받은 클라이언트는 닫지 않음)"""
        if not self._started:
            return
        self._started = False

        if self._owns_client:
            await close_redis(self._client)
            self._client = None
        logger.info(f"{self.config.app_name} engine stopped")

    async def health(self) -> dict:
        if self._client is None:
            return {"status": "unhealthy", "error": "engine not started"}
        return await health_check(self._client)

    def session(self, room_id: str, user_id: str, user_name: str) -> RoomSession:
        """채팅방 세션 생성 (open()은 호출 측에서)"""
        if not self._started:
            raise RuntimeError("ChatEngine is not started")
        return RoomSession(
            room_id,
            user_id,
            user_name,
            messages=self.messages,
            presence=self.presence,
            typing=self.typing,
            reactions=self.reactions,
            idle_seconds=self.config.typing_idle_seconds,
        )

    async def __aenter__(self) -> "ChatEngine":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


@asynccontextmanager
async def connect(config: Optional[Settings] = None, client: Optional[redis.Redis] = None):
    """엔진을 시작하고 블록이 끝나면 종료"""
    engine = ChatEngine(config=config, client=client)
    await engine.start()
    try:
        yield engine
    finally:
        await engine.close()
