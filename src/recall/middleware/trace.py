"""
Request tracing and metrics middleware.

Assigns a request ID to every request, measures response time and
tracks request metrics. The request ID flows through the async call
chain via contextvars, so every log line carries it.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from recall.core.context import set_request_id
from recall.core.metrics import metrics, recall_metrics

logger = logging.getLogger(__name__)


class TraceMiddleware(BaseHTTPMiddleware):
    """Tracing and metrics for every request.

    - Reuses the caller's X-Request-ID or generates one.
    - Tracks total and active requests, per endpoint and per status.
    - Adds X-Request-ID and X-Response-Time to the response.
    """

    async def dispatch(self, request: Request, call_next: ...) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)

        metrics.increment("active_requests")
        metrics.increment("requests_total")
        metrics.increment_dict("requests_by_endpoint", request.url.path)
        recall_metrics.increment_active_requests()

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            metrics.decrement("active_requests")
            recall_metrics.decrement_active_requests()

        elapsed = time.perf_counter() - start
        elapsed_ms = round(elapsed * 1000, 2)

        metrics.observe("response_time_seconds", elapsed)
        metrics.increment_dict("requests_by_status", str(response.status_code))

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms}ms"

        logger.info(
            "%s %s -> %d (%.2fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

        return response
