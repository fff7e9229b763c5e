import time
from datetime import UTC, datetime

import httpx

from recall.core.circuit_breaker import CircuitBreaker
from recall.core.config import get_settings
from recall.core.retry import RetryPolicy
from recall.domain.exceptions import CircuitOpenError, ProviderError
from recall.domain.models import (
    ChatRequest,
    ChatResponse,
    FinishReason,
    Message,
    Role,
    TokenUsage,
)
from recall.providers.base import LLMProvider, raise_for_provider_status


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        retry_policy: RetryPolicy,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(circuit_breaker, retry_policy)
        settings = get_settings()
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is not set")
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url.rstrip("/")
        self._timeout = settings.generation_timeout_seconds
        self._client = client or httpx.AsyncClient()

    @property
    def name(self) -> str:
        return "openai"

    def _map_finish_reason(self, finish_reason: str | None) -> FinishReason:
        try:
            return FinishReason(finish_reason)
        except ValueError:
            return FinishReason.ERROR

    def _build_payload(self, request: ChatRequest) -> dict:
        payload = {
            "model": request.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in request.messages
            ],
        }
        if request.parameters.max_tokens:
            payload["max_tokens"] = request.parameters.max_tokens
        if request.parameters.temperature is not None:
            payload["temperature"] = request.parameters.temperature
        return payload

    async def _do_completion(self, request: ChatRequest) -> ChatResponse:
        started = time.perf_counter()
        response = await self._client.post(
            f"{self._base_url}/chat/completions",
            json=self._build_payload(request),
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._timeout,
        )
        raise_for_provider_status(response, self.name)

        try:
            data = response.json()
            choice = data["choices"][0]
            content = choice["message"]["content"]
            usage = data.get("usage") or {}
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("Malformed completion payload", self.name, 200) from e

        return ChatResponse(
            request_id=request.id,
            message=Message(role=Role.ASSISTANT, content=content or ""),
            model=data.get("model", request.model),
            provider=self.name,
            finish_reason=self._map_finish_reason(choice.get("finish_reason")),
            usage=TokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
            ),
            latency_ms=(time.perf_counter() - started) * 1000,
            created_at=datetime.now(UTC),
        )

    async def complete(self, request: ChatRequest) -> ChatResponse:
        if not self._circuit_breaker.can_execute():
            raise CircuitOpenError(
                message="Circuit breaker is open - provider unavailable",
                details={"provider": self.name},
            )

        try:
            result = await self._retry_policy.execute_with_retry(
                lambda: self._do_completion(request)
            )
            self._circuit_breaker.record_success()
            return result
        except Exception:
            self._circuit_breaker.record_failure()
            raise
