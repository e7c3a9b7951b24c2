"""
위치 제공자

1회성 (위도, 경도) 조회를 제공하거나 Unavailable / PermissionDenied / Timeout으로 실패합니다.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from geochat.core.config import settings
from geochat.core.errors import LocationTimeoutException, UnavailableException
from geochat.core.logging import get_logger
from geochat.core.validators import Validator
from geochat.models.location import Coordinates

logger = get_logger(__name__)


class GeolocationProvider(ABC):
    """위치 제공자 인터페이스"""

    @abstractmethod
    async def get_location(self) -> Coordinates:
        """
        현재 위치 1회 조회

        Raises:
            UnavailableException: 위치를 확인할 수 없음
            PermissionDeniedException: 위치 접근이 거부됨
            LocationTimeoutException: 시간 초과
        """


class StaticGeolocationProvider(GeolocationProvider):
    """고정 좌표를 반환하는 위치 제공자 (설정된 위치, 서버 측 호출 등)"""

    def __init__(self, latitude: Optional[float], longitude: Optional[float]):
        self._latitude = latitude
        self._longitude = longitude

    async def get_location(self) -> Coordinates:
        if self._latitude is None or self._longitude is None:
            raise UnavailableException("No location configured")
        lat, lon = Validator.validate_coordinates(self._latitude, self._longitude)
        return Coordinates(latitude=lat, longitude=lon)


async def locate(provider: GeolocationProvider, timeout: Optional[float] = None) -> Coordinates:
    """
    제한 시간 내에 위치 조회

    Args:
        provider: 위치 제공자
        timeout: 제한 시간 (초), 기본값은 설정값 (5초)

    Returns:
        Coordinates: 조회된 좌표

    Raises:
        LocationTimeoutException: 제한 시간 초과
    """
    timeout = settings.geolocation_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(provider.get_location(), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"Geolocation timed out after {timeout}s")
        raise LocationTimeoutException(details={"timeout_seconds": timeout}) from e
