"""
Structured logging for resolution telemetry.

Logs METADATA only - never log question or answer content.
"""

import structlog

from recall.core.context import get_request_id
from recall.domain.exceptions import RecallError
from recall.domain.models import Resolution


structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger("recall.telemetry")


def log_resolution_started(question: str) -> None:
    """Log when a question enters the resolver. No content logged."""
    logger.info(
        "resolution_started",
        request_id=get_request_id(),
        question_chars=len(question),
    )


def log_resolution_completed(resolution: Resolution, latency_ms: float) -> None:
    """Log a successful resolution. No content logged."""
    logger.info(
        "resolution_completed",
        request_id=get_request_id(),
        source=resolution.source.value,
        strategy=resolution.strategy,
        score=round(resolution.score, 4) if resolution.score is not None else None,
        answer_chars=len(resolution.answer),
        latency_ms=round(latency_ms, 2),
    )


def log_resolution_failed(error: Exception, latency_ms: float) -> None:
    """Log a failed resolution with error details."""
    log_data = {
        "request_id": get_request_id(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "latency_ms": round(latency_ms, 2),
    }

    if isinstance(error, RecallError):
        log_data["error_details"] = error.details

    logger.error("resolution_failed", **log_data)
