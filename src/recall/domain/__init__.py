"""Recall Domain Layer."""

from recall.domain.models import (
    Role,
    FinishReason,
    Message,
    ModelParameters,
    ChatRequest,
    TokenUsage,
    ChatResponse,
    AnswerSource,
    Fingerprint,
    QARecord,
    Resolution,
)

from recall.domain.exceptions import (
    RecallError,
    InvalidInputError,
    ProviderError,
    ProviderUnavailableError,
    ProviderRateLimitError,
    CircuitOpenError,
    EmbeddingUnavailableError,
    GenerationUnavailableError,
    CacheUnavailableError,
    PersistenceError,
)

__all__ = [
    # Models
    "Role",
    "FinishReason",
    "Message",
    "ModelParameters",
    "ChatRequest",
    "TokenUsage",
    "ChatResponse",
    "AnswerSource",
    "Fingerprint",
    "QARecord",
    "Resolution",
    # Exceptions
    "RecallError",
    "InvalidInputError",
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderRateLimitError",
    "CircuitOpenError",
    "EmbeddingUnavailableError",
    "GenerationUnavailableError",
    "CacheUnavailableError",
    "PersistenceError",
]
