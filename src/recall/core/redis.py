"""Redis client factory."""

import redis.asyncio as redis

from recall.core.config import RedisSettings, get_settings


def create_redis_client(settings: RedisSettings | None = None) -> redis.Redis:
    settings = settings or get_settings().redis
    return redis.Redis(
        host=settings.host,
        port=settings.port,
        password=settings.password,
        decode_responses=True,
        socket_timeout=settings.socket_timeout,
    )
