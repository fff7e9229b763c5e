"""
Metrics endpoint.

Returns the in-memory counters as a JSON snapshot: request counts,
response time percentiles, hot cache and reuse stats, failure counters.
"""

import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Request

from recall.api.dependencies import require_admin
from recall.core.metrics import get_metrics, metrics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Operations"])


@router.post(
    "/metrics/reset",
    summary="Reset all stats",
    dependencies=[Depends(require_admin)],
)
async def reset_stats(request: Request) -> dict[str, str]:
    """Reset counters, provider circuit breakers and uptime."""
    metrics.reset()
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is not None:
        for client in (resolver.embedder, resolver.generator):
            if client is not None:
                client.circuit_breaker.reset()
    request.app.state.start_time = time.time()
    logger.info("Metrics and circuit breakers reset")
    return {"status": "ok", "message": "Stats reset"}


@router.get("/metrics", summary="Operational metrics")
async def metrics_endpoint() -> dict[str, Any]:
    """Return all collected metrics as a JSON snapshot.

    Includes:
    - Request counts (total, by status, by endpoint, active)
    - Performance percentiles (avg, p50, p95, p99)
    - Hot cache hits/misses, similarity and lexical hits, generations
    - Failures (generation, embedding, persistence, hot cache, rate limits)
    """
    return get_metrics()
