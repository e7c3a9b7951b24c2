"""
Redis 연결 설정 및 관리

문서 저장소 백엔드로 사용할 Redis 연결을 제공합니다.
클라이언트는 전역으로 보관하지 않으며, 생성한 쪽(ChatEngine)이 수명을 관리합니다.
"""

import asyncio
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import ConnectionPool
from redis.exceptions import ConnectionError

from geochat.core.config import Settings, settings as default_settings
from geochat.core.logging import get_logger

logger = get_logger(__name__)


def create_redis_pool(config: Optional[Settings] = None) -> ConnectionPool:
    """Redis 연결 풀 생성"""
    config = config or default_settings
    try:
        pool = ConnectionPool.from_url(
            config.redis_url,
            max_connections=config.redis_max_connections,
            retry_on_timeout=config.redis_retry_on_timeout,
            socket_keepalive=config.redis_socket_keepalive,
            decode_responses=True,  # 자동으로 bytes를 string으로 디코딩
            encoding='utf-8'
        )

        logger.info(f"Redis connection pool created with max {config.redis_max_connections} connections")
        return pool

    except Exception as e:
        logger.error(f"Failed to create Redis connection pool: {e}")
        raise


async def create_redis_client(config: Optional[Settings] = None) -> redis.Redis:
    """Redis 클라이언트 생성 및 연결 확인"""
    pool = create_redis_pool(config)
    client = redis.Redis(connection_pool=pool)

    try:
        # 연결 테스트
        await client.ping()
        logger.info("Redis connection initialized successfully")

        info = await client.info()
        logger.info(f"Redis server version: {info.get('redis_version', 'unknown')}")

    except ConnectionError as e:
        logger.error(f"Redis connection failed: {e}")
        await close_redis(client)
        raise
    except Exception as e:
        logger.error(f"Redis initialization failed: {e}")
        await close_redis(client)
        raise

    return client


async def close_redis(client: Optional[redis.Redis]):
    """Redis 연결 종료"""
    if client is None:
        return

    try:
        pool = client.connection_pool
        await client.aclose()
        await pool.aclose()
        logger.info("Redis client closed")
    except Exception as e:
        logger.error(f"Error closing Redis connections: {e}")


async def health_check(client: redis.Redis) -> dict:
    """Redis 헬스 체크"""
    try:
        # 연결 테스트
        start_time = asyncio.get_running_loop().time()
        await client.ping()
        ping_time = (asyncio.get_running_loop().time() - start_time) * 1000

        info = await client.info()

        return {
            "status": "healthy",
            "ping_ms": round(ping_time, 2),
            "version": info.get("redis_version", "unknown"),
            "used_memory": info.get("used_memory_human", "unknown"),
            "connected_clients": info.get("connected_clients", 0),
        }

    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }
