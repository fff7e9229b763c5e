"""Shared FastAPI dependencies: resolver lookup, admin auth, rate limiting."""

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from recall.core.config import Settings, get_settings
from recall.services.resolver import AnswerResolver

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = "Forbidden: Invalid API Key"


def get_resolver(request: Request) -> AnswerResolver:
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return resolver


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request unless X-API-Key matches ADMIN_API_KEY.

    With no ADMIN_API_KEY configured every request is rejected.
    """
    expected = settings.admin_api_key
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        logger.warning("Rejected admin request with missing or invalid API key")
        raise HTTPException(status_code=403, detail=FORBIDDEN_MESSAGE)


async def enforce_rate_limit(request: Request) -> None:
    rate_limiter = getattr(request.app.state, "rate_limiter", None)
    if rate_limiter is None:
        return
    client_ip = request.client.host if request.client else "unknown"
    if not await rate_limiter.is_allowed(client_ip):
        logger.warning("Rate limit exceeded for %s", client_ip)
        raise HTTPException(
            status_code=429,
            detail="Too many requests, please try again later.",
            headers={"Retry-After": str(rate_limiter.window_seconds)},
        )
