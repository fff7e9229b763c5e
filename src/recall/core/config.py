from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CACHE_", extra="ignore")
    # Cosine similarity: higher is better, accept when score >= threshold.
    similarity_threshold: float = 0.8
    # Normalized edit distance: lower is better, accept when score <= threshold.
    lexical_threshold: float = 0.4
    hot_ttl_seconds: int = 3600
    lexical_fallback: bool = True
    coalesce_requests: bool = False


class RetrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RETRY_", extra="ignore")
    max_attempts: int = 2
    base_delay: float = 0.5
    max_delay: float = 10.0


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")
    host: str = "localhost"
    port: int = 6379
    password: str | None = None
    socket_timeout: float = 5.0


class BrandSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BRAND_", extra="ignore")
    product_name: str = "Reflections of You"
    brand_name: str = "Coloring with Gray"
    # {product} and {brand} are replaced with the names above.
    description: str = (
        '"{product}" is the inaugural fragrance from {brand}. '
        "It's a second-skin scent designed to amplify the wearer's natural essence. "
        "The fragrance adapts to the individual's chemistry, creating a unique and "
        "personalized aroma that embodies the brand's philosophy of collaboration "
        "and individuality."
    )
    key_features: list[str] = [
        "Long-lasting scent.",
        "Gender-neutral.",
        "Elegant and modern packaging inspired by reflective puddles.",
    ]
    ingredients: str = "Apple, Ambroxan, Exaltone. (Full formula is proprietary.)"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"

    generation_model: str = "gpt-4"
    generation_max_tokens: int = 300
    generation_temperature: float = 0.7
    generation_timeout_seconds: float = 60.0

    embedding_model: str = "text-embedding-ada-002"
    embedding_timeout_seconds: float = 10.0

    history_path: Path = Path("chatHistory.json")
    admin_api_key: str | None = None

    # Nested settings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    brand: BrandSettings = Field(default_factory=BrandSettings)

    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
