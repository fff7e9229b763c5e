import logging
import time

import redis.asyncio as redis

from recall.core.metrics import metrics

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window request limit per client, kept in a Redis sorted set.

    Fails open: if Redis errors, the request is allowed.
    """

    def __init__(self, client, max_requests: int, window_seconds: int):
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    def _build_key(self, identifier: str) -> str:
        return f"rate:{identifier}"

    async def is_allowed(self, identifier: str) -> bool:
        try:
            key = self._build_key(identifier)
            now = time.time()
            window_start = now - self.window_seconds
            await self.client.zremrangebyscore(key, 0, window_start)
            count = await self.client.zcount(key, window_start, now)
            if count >= self.max_requests:
                metrics.increment("rate_limit_rejections")
                return False
            await self.client.zadd(key, {str(now): now})
            await self.client.expire(key, self.window_seconds)
            return True
        except redis.RedisError as e:
            logger.error("Error checking rate limit for %s: %s", identifier, e)
            return True

