"""Tests for the embedding and chat completion HTTP clients."""

import os
import sys
import json
import pytest
from unittest.mock import patch

import httpx

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from recall.core.circuit_breaker import CircuitBreaker, CircuitBreakerState
from recall.core.config import Settings
from recall.core.metrics import metrics
from recall.core.retry import RetryPolicy
from recall.domain.exceptions import (
    CircuitOpenError,
    EmbeddingUnavailableError,
    ProviderError,
    ProviderUnavailableError,
)
from recall.domain.models import ChatRequest, FinishReason, Message, ModelParameters, Role
from recall.providers.openai import OpenAIProvider
from recall.services.embedding import EmbeddingService

BASE_URL = "https://llm.test/v1"


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key", openai_base_url=BASE_URL)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def fast_retry(max_attempts: int = 2) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, base_delay=0.001, max_delay=0.01)


# =============================================================================
# EMBEDDINGS
# =============================================================================

class TestEmbeddingService:
    def make_service(self, settings, handler, **kwargs) -> EmbeddingService:
        with patch("recall.services.embedding.get_settings", return_value=settings):
            return EmbeddingService(
                circuit_breaker=kwargs.get("circuit_breaker", CircuitBreaker(name="embeddings")),
                retry_policy=kwargs.get("retry_policy", fast_retry()),
                client=mock_client(handler),
            )

    @pytest.mark.anyio
    async def test_returns_vector_unchanged(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"embedding": [3.0, 4.0]}]})

        service = self.make_service(settings, handler)

        assert await service.embed("What is it?") == [3.0, 4.0]
        assert seen["url"] == f"{BASE_URL}/embeddings"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"] == {"model": "text-embedding-ada-002", "input": "What is it?"}

    @pytest.mark.anyio
    async def test_server_error_is_retried(self, settings):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

        service = self.make_service(settings, handler)

        assert await service.embed("Q") == [1.0]
        assert calls == 2

    @pytest.mark.anyio
    @pytest.mark.parametrize("response", [
        httpx.Response(401, json={"error": "bad key"}),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json={"data": [{"embedding": []}]}),
        httpx.Response(200, json={"data": [{"embedding": ["a", "b"]}]}),
        httpx.Response(200, text="not json"),
    ])
    async def test_failures_raise_embedding_unavailable(self, settings, response):
        service = self.make_service(settings, lambda request: response)

        with pytest.raises(EmbeddingUnavailableError):
            await service.embed("Q")
        assert metrics.counter("embedding_failures") == 1

    @pytest.mark.anyio
    async def test_transport_error_raises_embedding_unavailable(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        service = self.make_service(settings, handler)

        with pytest.raises(EmbeddingUnavailableError):
            await service.embed("Q")

    @pytest.mark.anyio
    async def test_open_circuit_short_circuits(self, settings):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        cb = CircuitBreaker(name="embeddings", failure_threshold=1, recovery_timeout=60.0)
        service = self.make_service(settings, handler, circuit_breaker=cb, retry_policy=fast_retry(1))

        with pytest.raises(EmbeddingUnavailableError):
            await service.embed("Q")
        assert cb.state == CircuitBreakerState.Open

        with pytest.raises(EmbeddingUnavailableError, match="circuit is open"):
            await service.embed("Q")
        assert calls == 1

    @pytest.mark.anyio
    async def test_empty_text_is_rejected_without_a_call(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        service = self.make_service(settings, handler)

        with pytest.raises(EmbeddingUnavailableError):
            await service.embed("")

    def test_requires_api_key(self):
        with patch("recall.services.embedding.get_settings", return_value=Settings(openai_api_key=None)):
            with pytest.raises(ValueError, match="OPENAI_API_KEY"):
                EmbeddingService(CircuitBreaker(), RetryPolicy())


# =============================================================================
# CHAT COMPLETIONS
# =============================================================================

def chat_request() -> ChatRequest:
    return ChatRequest(
        model="gpt-4",
        messages=[
            Message(role=Role.SYSTEM, content="You are a perfume specialist."),
            Message(role=Role.USER, content="Is it long lasting?"),
        ],
        parameters=ModelParameters(temperature=0.7, max_tokens=300),
    )


def completion(content: str = "Yes, it lasts all day.", finish_reason: str = "stop") -> dict:
    return {
        "model": "gpt-4-0613",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 42, "completion_tokens": 7},
    }


class TestOpenAIProvider:
    def make_provider(self, settings, handler, **kwargs) -> OpenAIProvider:
        with patch("recall.providers.openai.get_settings", return_value=settings):
            return OpenAIProvider(
                circuit_breaker=kwargs.get("circuit_breaker", CircuitBreaker(name="openai")),
                retry_policy=kwargs.get("retry_policy", fast_retry()),
                client=mock_client(handler),
            )

    @pytest.mark.anyio
    async def test_complete_sends_messages_and_parameters(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion())

        provider = self.make_provider(settings, handler)
        response = await provider.complete(chat_request())

        assert seen["url"] == f"{BASE_URL}/chat/completions"
        assert seen["body"] == {
            "model": "gpt-4",
            "messages": [
                {"role": "system", "content": "You are a perfume specialist."},
                {"role": "user", "content": "Is it long lasting?"},
            ],
            "max_tokens": 300,
            "temperature": 0.7,
        }
        assert response.message.content == "Yes, it lasts all day."
        assert response.message.role == Role.ASSISTANT
        assert response.provider == "openai"
        assert response.model == "gpt-4-0613"
        assert response.finish_reason == FinishReason.STOP
        assert response.usage.total_tokens == 49

    @pytest.mark.anyio
    async def test_unknown_finish_reason_maps_to_error(self, settings):
        provider = self.make_provider(
            settings, lambda request: httpx.Response(200, json=completion(finish_reason="tool_calls"))
        )

        response = await provider.complete(chat_request())

        assert response.finish_reason == FinishReason.ERROR

    @pytest.mark.anyio
    async def test_malformed_payload_raises_provider_error(self, settings):
        provider = self.make_provider(settings, lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(ProviderError, match="Malformed"):
            await provider.complete(chat_request())

    @pytest.mark.anyio
    async def test_server_error_exhausts_retries(self, settings):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(502)

        cb = CircuitBreaker(name="openai")
        provider = self.make_provider(settings, handler, circuit_breaker=cb)

        with pytest.raises(ProviderUnavailableError):
            await provider.complete(chat_request())
        assert calls == 2
        assert cb.failure_count == 1

    @pytest.mark.anyio
    async def test_open_circuit_raises_circuit_open(self, settings):
        cb = CircuitBreaker(name="openai", failure_threshold=1, recovery_timeout=60.0)
        cb.record_failure()
        provider = self.make_provider(settings, lambda request: httpx.Response(200, json=completion()), circuit_breaker=cb)

        with pytest.raises(CircuitOpenError):
            await provider.complete(chat_request())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
