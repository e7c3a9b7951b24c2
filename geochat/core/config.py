"""
geochat 설정

환경 변수(.env 포함)를 통한 설정 관리
"""

from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """실시간 채팅방 동기화 엔진 설정"""

    # Application
    app_name: str = "geochat"
    debug: bool = False

    # Redis (문서 저장소 백엔드)
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 20
    redis_retry_on_timeout: bool = True
    redis_socket_keepalive: bool = True
    store_key_prefix: str = "geochat"

    # Message Channel
    message_window: int = 100  # 구독 스냅샷당 최대 메시지 수

    # Typing Tracker
    typing_ttl_seconds: float = 5.0  # 이 시간이 지난 입력 중 표시는 만료로 간주
    typing_idle_seconds: float = 2.0  # 마지막 키 입력 후 입력 중 해제까지 대기 시간

    # Geospatial Discovery
    default_room_radius_km: float = 10.0
    default_discovery_radius_km: float = 50.0
    geolocation_timeout_seconds: float = 5.0

    # Subscriptions / Transactions
    subscription_poll_interval: float = 1.0
    transaction_max_retries: int = 50

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    class Config:
        env_file = ".env"
        env_prefix = "GEOCHAT_"
        case_sensitive = False
        extra = "ignore"  # 추가 환경변수 무시


settings = Settings()
