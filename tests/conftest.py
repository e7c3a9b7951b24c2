import asyncio
import time
from typing import Any, Callable, List

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

from geochat.core.config import settings
from geochat.engine import ChatEngine
from geochat.services.geo_discovery import GeoDiscovery
from geochat.services.location_preferences import LocationPreferenceService
from geochat.services.message_channel import MessageChannel
from geochat.services.presence_tracker import PresenceTracker
from geochat.services.reaction_aggregator import ReactionAggregator
from geochat.services.room_directory import RoomDirectory
from geochat.services.typing_tracker import TypingTracker
from geochat.store.redis_store import RedisDocumentStore


# 테스트 기준 시각 (2024-01-01T00:00:00Z)
BASE_TIME = 1704067200.0

# 구독 피드 대기 간격 (초)
POLL_INTERVAL = 0.01


class FakeClock:
    """수동으로 진행시키는 시계 (epoch 초)"""

    def __init__(self, start: float = BASE_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    def advance_ms(self, milliseconds: int):
        self.now += milliseconds / 1000.0


class Recorder:
    """구독 콜백으로 전달된 스냅샷 기록"""

    def __init__(self):
        self.snapshots: List[Any] = []
        self.errors: List[BaseException] = []

    def __call__(self, snapshot):
        self.snapshots.append(snapshot)

    def on_error(self, error: BaseException):
        self.errors.append(error)

    @property
    def latest(self):
        return self.snapshots[-1] if self.snapshots else None

    async def wait_for(self, predicate: Callable[[Any], bool], timeout: float = 2.0):
        """마지막 스냅샷이 조건을 만족할 때까지 대기"""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.snapshots and predicate(self.latest):
                return self.latest
            await asyncio.sleep(0.005)
        raise AssertionError(f"Condition not met within {timeout}s, latest snapshot: {self.latest!r}")


@pytest_asyncio.fixture
async def redis_client():
    """테스트용 인메모리 Redis"""
    client = FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store(redis_client) -> RedisDocumentStore:
    """실제 시계를 사용하는 문서 저장소"""
    return RedisDocumentStore(redis_client, prefix="test", poll_interval=POLL_INTERVAL)


@pytest_asyncio.fixture
async def clocked_store(redis_client, clock) -> RedisDocumentStore:
    """FakeClock을 사용하는 문서 저장소"""
    return RedisDocumentStore(redis_client, prefix="test", clock=clock, poll_interval=POLL_INTERVAL)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def room_directory(store) -> RoomDirectory:
    return RoomDirectory(store)


@pytest.fixture
def preference_service(store) -> LocationPreferenceService:
    return LocationPreferenceService(store)


@pytest.fixture
def discovery(store, room_directory, preference_service) -> GeoDiscovery:
    return GeoDiscovery(store, room_directory, preference_service)


@pytest.fixture
def message_channel(store) -> MessageChannel:
    return MessageChannel(store)


@pytest.fixture
def presence_tracker(store) -> PresenceTracker:
    return PresenceTracker(store)


@pytest.fixture
def reaction_aggregator(store) -> ReactionAggregator:
    return ReactionAggregator(store)


@pytest.fixture
def typing_tracker(clocked_store, clock) -> TypingTracker:
    return TypingTracker(clocked_store, clock=clock)


@pytest_asyncio.fixture
async def test_room(room_directory):
    """테스트용 채팅방 (서울 시청)"""
    return await room_directory.create_room(
        name="Seoul City Hall",
        description="Chat around city hall",
        created_by="user-1",
        latitude=37.5665,
        longitude=126.9780,
    )


@pytest_asyncio.fixture
async def engine(redis_client):
    """FakeRedis를 주입한 엔진"""
    config = settings.model_copy(update={
        "store_key_prefix": "test",
        "subscription_poll_interval": POLL_INTERVAL,
        "typing_idle_seconds": 0.2,
    })
    chat_engine = ChatEngine(config=config, client=redis_client)
    await chat_engine.start()
    try:
        yield chat_engine
    finally:
        await chat_engine.close()


@pytest.fixture
def make_recorder() -> Callable[[], Recorder]:
    return Recorder


@pytest_asyncio.fixture
async def test_room_id(engine) -> str:
    """엔진 저장소에 생성한 채팅방 ID"""
    room = await engine.rooms.create_room(
        name="Gangnam Station",
        description="Exit 11 meetup",
        created_by="user-1",
        latitude=37.4979,
        longitude=127.0276,
    )
    return room.id
