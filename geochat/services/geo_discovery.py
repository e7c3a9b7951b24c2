"""
주변 채팅방 검색 서비스

저장소의 모든 채팅방을 스캔하여 기준 좌표로부터 반경 이내의 채팅방을 찾습니다.
공간 인덱스는 사용하지 않습니다.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Union

from geochat.core.config import settings
from geochat.core.errors import PermissionDeniedException, UnavailableException
from geochat.core.logging import get_logger, log_performance_metric
from geochat.core.validators import Validator
from geochat.models.location import Coordinates
from geochat.models.room import ROOMS_COLLECTION, NearbyRoom, Room
from geochat.services.distance import calculate_distance
from geochat.services.geolocation import GeolocationProvider, locate
from geochat.services.location_preferences import LocationPreferenceService
from geochat.services.room_directory import RoomDirectory, parse_rooms
from geochat.store.base import DocumentStore, Query

logger = get_logger(__name__)


@dataclass
class DiscoveryResult:
    """
    채팅방 검색 결과

    degraded가 True이면 위치를 사용할 수 없어 전체 채팅방 목록(최신순)을 반환한 것입니다.
    """
    rooms: List[Union[NearbyRoom, Room]] = field(default_factory=list)
    origin: Optional[Coordinates] = None
    degraded: bool = False
    reason: Optional[str] = None


def sort_by_distance(rooms: List[NearbyRoom]) -> List[NearbyRoom]:
    """거리 오름차순 정렬 (안정 정렬)"""
    return sorted(rooms, key=lambda room: room.distance_km)


class GeoDiscovery:
    """주변 채팅방 검색"""

    def __init__(
        self,
        store: DocumentStore,
        directory: RoomDirectory,
        preferences: LocationPreferenceService,
    ):
        self._store = store
        self._directory = directory
        self._preferences = preferences

    async def nearby(self, latitude: float, longitude: float, radius_km: float) -> List[NearbyRoom]:
        """
        반경 내 채팅방 검색

        Args:
            latitude: 기준 위도
            longitude: 기준 경도
            radius_km: 검색 반경 (km, 경계 포함)

        Returns:
            List[NearbyRoom]: 멤버 수 오름차순 (동일하면 저장소 순서 유지)
        """
        lat, lon = Validator.validate_coordinates(latitude, longitude)
        radius = Validator.validate_radius(radius_km)
        start_time = time.perf_counter()

        documents = await self._store.query(Query(ROOMS_COLLECTION))
        rooms = parse_rooms(documents)

        nearby_rooms = []
        for room in rooms:
            distance = calculate_distance(lat, lon, room.latitude, room.longitude)
            if distance <= radius:
                nearby_rooms.append(NearbyRoom(**room.model_dump(), distance_km=distance))

        nearby_rooms.sort(key=lambda room: room.member_count)

        log_performance_metric(
            logger,
            "nearby_rooms_scan",
            round((time.perf_counter() - start_time) * 1000, 2),
            scanned=len(rooms),
            matched=len(nearby_rooms),
            radius_km=radius,
        )
        return nearby_rooms

    async def discover(
        self,
        user_id: str,
        provider: GeolocationProvider,
        radius_km: Optional[float] = None,
    ) -> DiscoveryResult:
        """
        사용자 위치 기반 채팅방 검색

        위치 공유가 허용되지 않았거나 위치를 가져오지 못하면 전체 채팅방 목록으로 대체합니다.
        """
        radius = Validator.validate_radius(
            settings.default_discovery_radius_km if radius_km is None else radius_km
        )

        if not await self._preferences.can_share_for_discovery(user_id):
            logger.info(f"User {user_id} does not share location for discovery, listing all rooms")
            return await self._fallback("location_sharing_disabled")

        try:
            origin = await locate(provider)
        except (UnavailableException, PermissionDeniedException) as e:
            logger.warning(f"Geolocation failed for user {user_id}: {e.message}")
            return await self._fallback(e.error)

        rooms = await self.nearby(origin.latitude, origin.longitude, radius)
        return DiscoveryResult(rooms=rooms, origin=origin)

    async def _fallback(self, reason: str) -> DiscoveryResult:
        rooms = await self._directory.list_rooms()
        return DiscoveryResult(rooms=rooms, degraded=True, reason=reason)
