"""
시간 관련 유틸리티 함수

저장소 문서는 타임스탬프를 epoch 밀리초 정수로 보관하고,
모델은 UTC datetime으로 노출합니다.
"""
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], float]


def system_clock() -> float:
    """현재 시각 (epoch 초)"""
    return time.time()


def now_millis(clock: Clock = system_clock) -> int:
    """clock 기준 현재 시각을 epoch 밀리초로 반환합니다."""
    return int(round(clock() * 1000))


def to_millis(dt: datetime) -> int:
    """datetime을 epoch 밀리초로 변환합니다. naive datetime은 UTC로 간주합니다."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def from_millis(value: Any) -> Optional[datetime]:
    """
    epoch 밀리초를 UTC datetime으로 변환합니다.

    Args:
        value: epoch 밀리초 (int/float) 또는 None

    Returns:
        datetime: tz-aware UTC datetime, 값이 없거나 해석할 수 없으면 None
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
