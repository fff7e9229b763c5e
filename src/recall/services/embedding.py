"""Fingerprint generator backed by a remote embedding endpoint.

The vector comes back exactly as the provider returned it. Normalization
is left to the similarity matcher.
"""

import logging
import math

import httpx

from recall.core.circuit_breaker import CircuitBreaker
from recall.core.config import get_settings
from recall.core.metrics import metrics, recall_metrics
from recall.core.retry import RetryPolicy
from recall.domain.exceptions import EmbeddingUnavailableError, ProviderError
from recall.providers.base import raise_for_provider_status

logger = logging.getLogger(__name__)


class EmbeddingService:
    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        retry_policy: RetryPolicy,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is not set")
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url.rstrip("/")
        self._model = settings.embedding_model
        self._timeout = settings.embedding_timeout_seconds
        self._circuit_breaker = circuit_breaker
        self._retry_policy = retry_policy
        self._client = client or httpx.AsyncClient()

    @property
    def name(self) -> str:
        return "embeddings"

    @property
    def model(self) -> str:
        return self._model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _do_embed(self, text: str) -> list[float]:
        response = await self._client.post(
            f"{self._base_url}/embeddings",
            json={"model": self._model, "input": text},
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._timeout,
        )
        raise_for_provider_status(response, self.name)
        try:
            vector = response.json()["data"][0]["embedding"]
            fingerprint = [float(v) for v in vector]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("Malformed embedding payload", self.name, 200) from e
        if not fingerprint or not all(math.isfinite(v) for v in fingerprint):
            raise ProviderError("Embedding payload has no usable vector", self.name, 200)
        return fingerprint

    async def embed(self, text: str) -> list[float]:
        """Return the fingerprint of `text`.

        Raises:
            EmbeddingUnavailableError: on any provider failure (timeout,
                transport error, error status, malformed payload, open circuit).
        """
        if not text:
            raise EmbeddingUnavailableError("Cannot fingerprint empty text")
        if not self._circuit_breaker.can_execute():
            raise EmbeddingUnavailableError(
                "Embedding provider circuit is open",
                details={"provider": self.name},
            )

        try:
            fingerprint = await self._retry_policy.execute_with_retry(self._do_embed, text)
        except (ProviderError, httpx.HTTPError) as e:
            self._circuit_breaker.record_failure()
            metrics.increment("embedding_failures")
            recall_metrics.record_provider_failure(self.name, type(e).__name__)
            logger.warning("Embedding request failed: %s", e)
            raise EmbeddingUnavailableError(
                f"Embedding provider failed: {e}",
                details={"provider": self.name, "model": self._model},
            ) from e

        self._circuit_breaker.record_success()
        return fingerprint
