"""Redis-backed hot cache: exact question text -> answer, with a TTL."""

import logging

import redis.asyncio as redis

from recall.core.metrics import metrics, recall_metrics
from recall.domain.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

KEY_PREFIX = "answer:"


class CacheService:
    def __init__(self, client, default_ttl: int = 3600):
        self.client = client
        self.default_ttl = default_ttl

    def generate_key(self, question: str) -> str:
        """Key for a question. The text is used verbatim: case or whitespace changes miss."""
        return f"{KEY_PREFIX}{question}"

    async def get(self, question: str) -> str | None:
        """Return the cached answer, or None on miss.

        Raises:
            CacheUnavailableError: if Redis cannot be reached.
        """
        try:
            value = await self.client.get(self.generate_key(question))
        except redis.RedisError as e:
            metrics.increment("cache_failures")
            raise CacheUnavailableError(f"Hot cache read failed: {e}") from e
        if value:
            metrics.increment("hot_cache_hits")
            recall_metrics.record_hot_cache_hit()
            return value
        metrics.increment("hot_cache_misses")
        recall_metrics.record_hot_cache_miss()
        return None

    async def set(self, question: str, answer: str, ttl: int | None = None) -> None:
        """Store `answer` under the question for `ttl` seconds (default TTL otherwise).

        Raises:
            CacheUnavailableError: if Redis cannot be reached.
        """
        ttl = ttl or self.default_ttl
        try:
            await self.client.set(self.generate_key(question), answer, ex=ttl)
        except redis.RedisError as e:
            metrics.increment("cache_failures")
            raise CacheUnavailableError(f"Hot cache write failed: {e}") from e
