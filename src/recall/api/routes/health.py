"""
Health check endpoint.

Returns the overall system health including subsystem checks
for Redis connectivity, provider circuit breakers and the history store.
"""

import logging
import time
from datetime import UTC, datetime

from fastapi import APIRouter, Request
from redis.exceptions import RedisError

from recall.api.schemas.health import (
    CircuitBreakerCheck,
    HealthChecks,
    HealthResponse,
    RedisHealthCheck,
    StoreHealthCheck,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Operations"])

VERSION = "0.1.0"


@router.get("/health", summary="System health check")
async def health_check(request: Request) -> HealthResponse:
    """Return overall system health with subsystem checks.

    Status logic:
    - Redis down AND any circuit breaker OPEN -> unhealthy
    - Redis down OR any circuit breaker OPEN  -> degraded
    - Otherwise                               -> healthy
    """
    # --- Redis health check ---
    redis_status = "disabled"
    redis_latency_ms = 0.0
    redis_client = getattr(request.app.state, "redis", None)

    if redis_client is not None:
        start = time.perf_counter()
        try:
            await redis_client.ping()
            redis_status = "healthy"
        except (RedisError, OSError) as e:
            logger.warning("Redis health check failed: %s", e)
            redis_status = "unhealthy"
        redis_latency_ms = round((time.perf_counter() - start) * 1000, 2)

    # --- Circuit breakers and store ---
    circuit_breakers: dict[str, CircuitBreakerCheck] = {}
    store_check = None
    resolver = getattr(request.app.state, "resolver", None)

    if resolver is not None:
        for client in (resolver.embedder, resolver.generator):
            if client is None:
                continue
            cb = client.circuit_breaker
            last_failure = None
            if cb.last_failure_time > 0:
                last_failure = datetime.fromtimestamp(cb.last_failure_time, tz=UTC)
            circuit_breakers[client.name] = CircuitBreakerCheck(
                state=cb.state.value.upper(),
                failure_count=cb.failure_count,
                last_failure=last_failure,
            )
        store_check = StoreHealthCheck(
            backend=type(resolver.store).__name__,
            records=await resolver.store.count(),
        )

    # --- Determine overall status ---
    redis_down = redis_status != "healthy"
    any_breaker_open = any(cb.state == "OPEN" for cb in circuit_breakers.values())

    if redis_down and any_breaker_open:
        status = "unhealthy"
    elif redis_down or any_breaker_open:
        status = "degraded"
    else:
        status = "healthy"

    start_time = getattr(request.app.state, "start_time", time.time())

    return HealthResponse(
        status=status,
        version=VERSION,
        timestamp=datetime.now(UTC),
        uptime_seconds=round(time.time() - start_time, 1),
        checks=HealthChecks(
            redis=RedisHealthCheck(status=redis_status, latency_ms=redis_latency_ms),
            circuit_breakers=circuit_breakers,
            store=store_check,
        ),
    )
