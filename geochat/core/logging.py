"""
구조화된 로깅 시스템

JSON 형식의 구조화된 로그를 제공하여 구독/저장소 이벤트 분석을 용이하게 합니다.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from geochat.core.config import Settings, settings as default_settings

# 컨텍스트 변수로 채팅방/사용자 추적 정보 저장
room_id_var: ContextVar[Optional[str]] = ContextVar('room_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime',
}


class StructuredFormatter(logging.Formatter):
    """구조화된 JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        room_id = room_id_var.get()
        if room_id:
            log_data["room_id"] = room_id

        user_id = user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        # 추가 데이터 (extra 필드)
        extra_data = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith('_')
        }
        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config: Optional[Settings] = None):
    """로깅 시스템 초기화"""
    config = config or default_settings
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 기존 핸들러 제거
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if config.debug:
        # 개발 환경: 사람이 읽기 쉬운 형식
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    else:
        # 프로덕션 환경: 구조화된 JSON 형식
        console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    # 파일 핸들러 (log_dir 설정 시에만, 항상 구조화된 형식)
    if config.log_dir:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "app.log", encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(log_dir / "error.log", encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(error_handler)

    # 외부 라이브러리 로그 레벨 조정
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """구조화된 로거 인스턴스 반환"""
    return logging.getLogger(name)


def set_room_context(room_id: str, user_id: Optional[str] = None):
    """채팅방 컨텍스트 설정"""
    room_id_var.set(room_id)
    if user_id:
        user_id_var.set(user_id)


def clear_room_context():
    """채팅방 컨텍스트 초기화"""
    room_id_var.set(None)
    user_id_var.set(None)


def log_store_operation(
    logger: logging.Logger,
    operation: str,
    collection: str,
    doc_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **extra
):
    """문서 저장소 작업 로그"""
    logger.debug(
        f"Store {operation} on {collection}",
        extra={
            "event_type": "store_operation",
            "operation": operation,
            "collection": collection,
            "doc_id": doc_id,
            "duration_ms": duration_ms,
            **extra
        }
    )


def log_subscription_event(
    logger: logging.Logger,
    event: str,
    subscription: str,
    **extra
):
    """구독 이벤트 로그"""
    logger.info(
        f"Subscription {event} - {subscription}",
        extra={
            "event_type": "subscription",
            "event": event,
            "subscription": subscription,
            **extra
        }
    )


def log_performance_metric(
    logger: logging.Logger,
    metric_name: str,
    value: float,
    unit: str = "ms",
    **extra
):
    """성능 메트릭 로그"""
    logger.info(
        f"Performance {metric_name}: {value}{unit}",
        extra={
            "event_type": "performance_metric",
            "metric_name": metric_name,
            "value": value,
            "unit": unit,
            **extra
        }
    )
