"""Abstract base class for generation providers."""

from abc import ABC, abstractmethod

import httpx

from recall.core.circuit_breaker import CircuitBreaker
from recall.core.retry import RetryPolicy
from recall.domain.exceptions import (
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from recall.domain.models import ChatRequest, ChatResponse


def raise_for_provider_status(response: httpx.Response, provider: str) -> None:
    """Map a non-200 provider response onto the provider exception hierarchy."""
    if response.status_code == 200:
        return
    if response.status_code == 429:
        raise ProviderRateLimitError(
            "Rate limit exceeded",
            provider,
            429,
            {"retry_after": response.headers.get("retry-after", "unknown")},
        )
    if response.status_code >= 500:
        raise ProviderUnavailableError(
            f"{provider} service unavailable", provider, response.status_code
        )
    raise ProviderError(
        f"Request failed with status {response.status_code}",
        provider,
        response.status_code,
        {"response": response.text},
    )


class LLMProvider(ABC):
    """Base class for all generation providers."""

    def __init__(self, circuit_breaker: CircuitBreaker, retry_policy: RetryPolicy):
        self._circuit_breaker = circuit_breaker
        self._retry_policy = retry_policy

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of the provider."""
        ...

    @abstractmethod
    async def complete(self, request: ChatRequest) -> ChatResponse: ...

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Expose circuit breaker for health/metrics (read-only)."""
        return self._circuit_breaker
