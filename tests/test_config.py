"""Tests for settings loading, brand context and the rate limiter."""

import os
import sys
import pytest
from unittest.mock import AsyncMock
import redis.asyncio as redis

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from recall.core.config import BrandSettings, CacheSettings, RedisSettings, Settings
from recall.core.metrics import metrics
from recall.core.rate_limiter import RateLimiter
from recall.services.brand_context import build_system_context


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "ADMIN_API_KEY", "GENERATION_MODEL", "PORT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.openai_api_key is None
        assert settings.admin_api_key is None
        assert settings.port == 3000
        assert settings.generation_model == "gpt-4"
        assert settings.generation_max_tokens == 300
        assert settings.generation_temperature == 0.7
        assert settings.embedding_model == "text-embedding-ada-002"
        assert settings.rate_limit_max_requests == 100
        assert settings.rate_limit_window_seconds == 900

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "from-env")
        monkeypatch.setenv("GENERATION_MODEL", "gpt-4o")

        settings = Settings(_env_file=None)

        assert settings.admin_api_key == "from-env"
        assert settings.generation_model == "gpt-4o"

    def test_cache_settings_use_prefix(self, monkeypatch):
        monkeypatch.setenv("CACHE_SIMILARITY_THRESHOLD", "0.9")
        monkeypatch.setenv("CACHE_LEXICAL_FALLBACK", "false")
        monkeypatch.setenv("CACHE_COALESCE_REQUESTS", "true")

        cache = CacheSettings()

        assert cache.similarity_threshold == 0.9
        assert cache.lexical_threshold == 0.4
        assert cache.hot_ttl_seconds == 3600
        assert cache.lexical_fallback is False
        assert cache.coalesce_requests is True

    def test_redis_settings_use_prefix(self, monkeypatch):
        monkeypatch.setenv("REDIS_PORT", "6380")
        assert RedisSettings().port == 6380


class TestBrandContext:
    def test_default_product(self):
        context = build_system_context(BrandSettings())

        assert "perfume specialist" in context
        assert "**Name:** Reflections of You" in context
        assert "**Brand:** Coloring with Gray" in context
        assert "  - Gender-neutral." in context
        assert 'Compare "Reflections of You"' in context
        assert '"Reflections of You" is the inaugural fragrance from Coloring with Gray.' in context
        assert "{product}" not in context

    def test_custom_product(self):
        brand = BrandSettings(
            product_name="Quiet Hours",
            brand_name="Lamplight",
            key_features=["Soft.", "Woody."],
        )

        context = build_system_context(brand)

        assert "**Name:** Quiet Hours" in context
        assert "**Brand:** Lamplight" in context
        assert "  - Soft.\n  - Woody." in context
        assert '"Quiet Hours" is the inaugural fragrance from Lamplight.' in context
        assert "Reflections of You" not in context
        assert "Coloring with Gray" not in context


class TestRateLimiter:
    @pytest.fixture
    def mock_redis_client(self):
        return AsyncMock()

    @pytest.mark.anyio
    async def test_allows_under_limit(self, mock_redis_client):
        mock_redis_client.zcount.return_value = 3
        limiter = RateLimiter(mock_redis_client, max_requests=100, window_seconds=900)

        assert await limiter.is_allowed("10.0.0.1") is True
        mock_redis_client.zadd.assert_awaited_once()
        mock_redis_client.expire.assert_awaited_once_with("rate:10.0.0.1", 900)

    @pytest.mark.anyio
    async def test_rejects_at_limit(self, mock_redis_client):
        mock_redis_client.zcount.return_value = 100
        limiter = RateLimiter(mock_redis_client, max_requests=100, window_seconds=900)

        assert await limiter.is_allowed("10.0.0.1") is False
        mock_redis_client.zadd.assert_not_called()
        assert metrics.counter("rate_limit_rejections") == 1

    @pytest.mark.anyio
    async def test_fails_open_on_redis_error(self, mock_redis_client):
        mock_redis_client.zremrangebyscore.side_effect = redis.ConnectionError("refused")
        limiter = RateLimiter(mock_redis_client, max_requests=1, window_seconds=60)

        assert await limiter.is_allowed("10.0.0.1") is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
