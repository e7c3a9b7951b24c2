import pytest

from geochat.engine import ChatEngine, connect
from geochat.services.geolocation import StaticGeolocationProvider
from geochat.services.presence_tracker import count_online


class TestFullChatFlow:
    """전체 채팅 플로우 통합 테스트"""

    @pytest.mark.asyncio
    async def test_complete_chat_flow(self, engine, make_recorder):
        """
        완전한 채팅 플로우 테스트:
        1. A가 강남역 근처에 채팅방 생성
        2. B가 위치 기반 검색으로 채팅방 발견 후 입장
        3. A, B가 세션을 열고 메시지 주고받기
        4. B의 입력 중 표시가 A에게 전달
        5. A가 B의 메시지에 반응
        6. B가 나가면 A는 offline 상태를 확인
        """

        # 1. 채팅방 생성
        room = await engine.rooms.create_room(
            name="Gangnam Station",
            description="Exit 11 meetup",
            created_by="alice",
            latitude=37.4979,
            longitude=127.0276,
        )

        # 2. 위치 기반 검색 및 입장
        result = await engine.discovery.discover("bob", StaticGeolocationProvider(37.5000, 127.0300))
        assert not result.degraded
        assert [nearby.id for nearby in result.rooms] == [room.id]
        assert result.rooms[0].distance_km < 1

        assert await engine.rooms.join_room(room.id, "bob") == 2

        # 3. 세션 열기
        alice_messages, alice_presence, alice_typing = make_recorder(), make_recorder(), make_recorder()
        bob_messages, bob_presence, bob_typing = make_recorder(), make_recorder(), make_recorder()

        alice = await engine.session(room.id, "alice", "Alice").open(alice_messages, alice_presence, alice_typing)
        bob = await engine.session(room.id, "bob", "Bob").open(bob_messages, bob_presence, bob_typing)

        try:
            await alice_presence.wait_for(lambda records: count_online(records) == 2)

            # 4. 입력 중 표시
            await bob.keystroke()
            typing = await alice_typing.wait_for(lambda records: len(records) == 1)
            assert typing[0].user_name == "Bob"

            # 메시지 주고받기
            await alice.send_message("Hi Bob!")
            bob_message_id = await bob.send_message("Hi Alice!")

            await alice_typing.wait_for(lambda records: records == [])
            messages = await bob_messages.wait_for(lambda batch: len(batch) == 2)
            assert {message.text for message in messages} == {"Hi Bob!", "Hi Alice!"}

            # 5. 반응
            await alice.react(bob_message_id, "👍")
            messages = await bob_messages.wait_for(
                lambda batch: any(message.reactions for message in batch)
            )
            reactions = {message.id: message.reactions for message in messages}
            assert reactions.pop(bob_message_id) == {"👍": ["alice"]}
            assert list(reactions.values()) == [{}]

            refreshed = await engine.rooms.get_room(room.id)
            assert refreshed.last_message is not None

        finally:
            # 6. B 퇴장
            await bob.close()
            await engine.rooms.leave_room(room.id, "bob")

        try:
            records = await alice_presence.wait_for(lambda records: count_online(records) == 1)
            assert {record.user_id: record.status for record in records} == {"alice": "online", "bob": "offline"}
            assert (await engine.rooms.get_room(room.id)).member_count == 1
        finally:
            await alice.close()

    @pytest.mark.asyncio
    async def test_discovery_without_location(self, engine):
        """위치를 사용할 수 없으면 전체 채팅방 목록으로 대체"""
        await engine.rooms.create_room("Busan", "", "alice", 35.1796, 129.0756)
        await engine.rooms.create_room("Seoul", "", "alice", 37.5665, 126.9780)

        result = await engine.discovery.discover("bob", StaticGeolocationProvider(None, None))
        assert result.degraded
        assert {room.name for room in result.rooms} == {"Busan", "Seoul"}


class TestEngineLifecycle:
    """엔진 수명 주기 테스트"""

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, redis_client):
        async with connect(client=redis_client) as chat_engine:
            assert chat_engine.started

        assert not chat_engine.started
        assert await redis_client.ping()

    @pytest.mark.asyncio
    async def test_session_requires_start(self):
        with pytest.raises(RuntimeError):
            ChatEngine().session("room", "user", "name")

    @pytest.mark.asyncio
    async def test_health_before_start(self):
        health = await ChatEngine().health()
        assert health["status"] == "unhealthy"
