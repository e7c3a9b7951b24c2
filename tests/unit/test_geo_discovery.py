import asyncio

import pytest

from geochat.core.errors import (
    InvalidArgumentException,
    LocationTimeoutException,
    PermissionDeniedException,
    UnavailableException,
)
from geochat.models.location import Coordinates
from geochat.services.distance import calculate_distance
from geochat.services.geo_discovery import sort_by_distance
from geochat.services.geolocation import GeolocationProvider, StaticGeolocationProvider, locate


class DeniedProvider(GeolocationProvider):
    async def get_location(self) -> Coordinates:
        raise PermissionDeniedException("User denied geolocation")


class SlowProvider(GeolocationProvider):
    async def get_location(self) -> Coordinates:
        await asyncio.sleep(10)
        return Coordinates(latitude=0, longitude=0)


async def _add_room(store, room_id, latitude, longitude, member_count=1, created_at=1000):
    await store.set("rooms", room_id, {
        "name": room_id,
        "created_by": "u",
        "created_at": created_at,
        "member_count": member_count,
        "latitude": latitude,
        "longitude": longitude,
        "radius": 10,
    })


class TestNearby:
    """반경 내 채팅방 검색 테스트"""

    @pytest.mark.asyncio
    async def test_only_rooms_within_radius(self, store, discovery):
        await _add_room(store, "near", 0, 0.05)
        await _add_room(store, "far", 0, 1)

        rooms = await discovery.nearby(0, 0, 10)
        assert [room.id for room in rooms] == ["near"]
        assert rooms[0].distance_km == pytest.approx(5.56, abs=0.01)

    @pytest.mark.asyncio
    async def test_boundary_is_inclusive(self, store, discovery):
        await _add_room(store, "edge", 0, 1)
        radius = calculate_distance(0, 0, 0, 1)

        rooms = await discovery.nearby(0, 0, radius)
        assert [room.id for room in rooms] == ["edge"]

    @pytest.mark.asyncio
    async def test_sorted_by_member_count(self, store, discovery):
        await _add_room(store, "busy", 0, 0.01, member_count=30)
        await _add_room(store, "quiet", 0, 0.08, member_count=2)
        await _add_room(store, "medium", 0, 0.03, member_count=10)

        rooms = await discovery.nearby(0, 0, 50)
        assert [room.id for room in rooms] == ["quiet", "medium", "busy"]
        assert [room.id for room in sort_by_distance(rooms)] == ["busy", "medium", "quiet"]

    @pytest.mark.asyncio
    async def test_never_returns_rooms_beyond_radius(self, store, discovery):
        for i in range(10):
            await _add_room(store, f"room-{i}", 37.5 + i * 0.05, 127.0)

        rooms = await discovery.nearby(37.5, 127.0, 20)
        assert rooms
        assert all(room.distance_km <= 20 for room in rooms)
        assert all(calculate_distance(37.5, 127.0, room.latitude, room.longitude) <= 20 for room in rooms)

    @pytest.mark.asyncio
    async def test_antipodal_room_does_not_break_scan(self, store, discovery):
        """대척점에 있는 채팅방이 있어도 검색이 실패하지 않음"""
        await _add_room(store, "antipode", -66.16849958870057, 43.903957839683756)
        await _add_room(store, "home", 66.16849958870057, -136.09604216031624)

        rooms = await discovery.nearby(66.16849958870057, -136.09604216031624, 100000)
        assert {room.id for room in rooms} == {"antipode", "home"}

    @pytest.mark.asyncio
    async def test_zero_radius_matches_exact_location(self, store, discovery):
        await _add_room(store, "here", 10, 10)
        assert [room.id for room in await discovery.nearby(10, 10, 0)] == ["here"]

    @pytest.mark.asyncio
    async def test_skips_rooms_without_coordinates(self, store, discovery):
        await store.set("rooms", "legacy", {"name": "legacy", "created_by": "u"})
        await _add_room(store, "ok", 0, 0)
        assert [room.id for room in await discovery.nearby(0, 0, 1)] == ["ok"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat, lon, radius", [
        (91, 0, 10),
        (0, 181, 10),
        (float("nan"), 0, 10),
        (0, 0, -1),
    ])
    async def test_invalid_query(self, discovery, lat, lon, radius):
        with pytest.raises(InvalidArgumentException):
            await discovery.nearby(lat, lon, radius)


class TestDiscover:
    """위치 기반 검색 및 대체 동작 테스트"""

    @pytest.mark.asyncio
    async def test_uses_provider_location(self, store, discovery):
        await _add_room(store, "near", 37.5665, 126.9780)
        await _add_room(store, "busan", 35.1796, 129.0756)

        result = await discovery.discover("user-1", StaticGeolocationProvider(37.57, 126.98))
        assert not result.degraded
        assert result.origin == Coordinates(latitude=37.57, longitude=126.98)
        assert [room.id for room in result.rooms] == ["near"]

    @pytest.mark.asyncio
    async def test_permission_denied_falls_back_to_all_rooms(self, store, discovery):
        await _add_room(store, "older", 37.5, 127.0, created_at=1000)
        await _add_room(store, "newer", 35.1, 129.0, created_at=2000)

        result = await discovery.discover("user-1", DeniedProvider())
        assert result.degraded
        assert result.reason == "permission_denied"
        assert [room.id for room in result.rooms] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_unavailable_falls_back(self, store, discovery):
        await _add_room(store, "room", 0, 0)
        result = await discovery.discover("user-1", StaticGeolocationProvider(None, None))
        assert result.degraded
        assert result.reason == "service_unavailable"
        assert [room.id for room in result.rooms] == ["room"]

    @pytest.mark.asyncio
    async def test_sharing_disabled_falls_back(self, store, discovery, preference_service):
        await _add_room(store, "room", 0, 0)
        await preference_service.update_preferences("user-1", location_privacy="private")

        result = await discovery.discover("user-1", StaticGeolocationProvider(50, 50))
        assert result.degraded
        assert result.origin is None
        assert [room.id for room in result.rooms] == ["room"]


class TestGeolocation:
    """위치 제공자 테스트"""

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(LocationTimeoutException) as exc_info:
            await locate(SlowProvider(), timeout=0.01)
        assert exc_info.value.error == "timeout"

    @pytest.mark.asyncio
    async def test_static_provider(self):
        assert await locate(StaticGeolocationProvider(1.5, 2.5)) == Coordinates(latitude=1.5, longitude=2.5)

    @pytest.mark.asyncio
    async def test_unconfigured_static_provider(self):
        with pytest.raises(UnavailableException):
            await locate(StaticGeolocationProvider(None, None))
