from .redis import create_redis_pool, create_redis_client, close_redis, health_check

__all__ = [
    "create_redis_pool",
    "create_redis_client",
    "close_redis",
    "health_check",
]
