"""Health and operational response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class RedisHealthCheck(BaseModel):
    """Redis health check result."""

    status: Literal["healthy", "unhealthy", "disabled"]
    latency_ms: float


class CircuitBreakerCheck(BaseModel):
    """Circuit breaker state for one external provider."""

    state: Literal["CLOSED", "OPEN", "HALF_OPEN"]
    failure_count: int
    last_failure: datetime | None = None


class StoreHealthCheck(BaseModel):
    backend: str
    records: int


class HealthChecks(BaseModel):
    """Container for all health checks."""

    redis: RedisHealthCheck
    circuit_breakers: dict[str, CircuitBreakerCheck]
    store: StoreHealthCheck | None = None


class HealthResponse(BaseModel):
    """Full health check response with subsystem checks."""

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    timestamp: datetime
    uptime_seconds: float
    checks: HealthChecks
