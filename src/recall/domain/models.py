"""
Provider-agnostic domain models.

These represent the internal truth of the system.
No external dependencies - only Python standard library.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid


Fingerprint = tuple[float, ...]


class Role(str, Enum):
    """Message roles in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Why the model stopped generating."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


class AnswerSource(str, Enum):
    """Where a resolved answer came from."""
    HOT_CACHE = "hot_cache"
    SIMILAR = "similar"
    GENERATED = "generated"


def _utc_now() -> datetime:
    """Helper function for UTC now."""
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T10:00:00.000Z."""
    moment = moment or _utc_now()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Message:
    """A single message. Frozen to prevent modification after creation."""
    role: Role
    content: str


@dataclass(frozen=True)
class ModelParameters:
    """Generation parameters. Frozen for consistency."""
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass
class ChatRequest:
    """Internal representation of a generation request."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    messages: list[Message] = field(default_factory=list)
    model: str = ""
    parameters: ModelParameters = field(default_factory=ModelParameters)
    created_at: datetime = field(default_factory=_utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenUsage:
    """Token consumption for a request."""
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class ChatResponse:
    """Internal representation of a generation response."""
    request_id: str
    message: Message
    model: str
    provider: str
    finish_reason: FinishReason
    usage: TokenUsage
    latency_ms: float
    created_at: datetime = field(default_factory=_utc_now)


# =============================================================================
# CACHE MODELS
# =============================================================================

@dataclass(frozen=True)
class QARecord:
    """
    One resolved question/answer pair.

    Append-only: once persisted the only permitted change is attaching a
    fingerprint that was missing, which produces a new record via
    `with_fingerprint`.
    """
    question: str
    answer: str
    timestamp: str
    fingerprint: Fingerprint | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.question, str) or not self.question:
            raise ValueError("QARecord.question must be a non-empty string")
        if not isinstance(self.answer, str) or not self.answer:
            raise ValueError("QARecord.answer must be a non-empty string")
        if self.fingerprint is not None:
            object.__setattr__(self, "fingerprint", tuple(float(v) for v in self.fingerprint))

    @classmethod
    def create(
        cls, question: str, answer: str, fingerprint: Fingerprint | list[float] | None = None
    ) -> "QARecord":
        return cls(
            question=question,
            answer=answer,
            timestamp=iso_timestamp(),
            fingerprint=tuple(fingerprint) if fingerprint is not None else None,
        )

    def with_fingerprint(self, fingerprint: Fingerprint | list[float]) -> "QARecord":
        """Return a copy carrying `fingerprint`; a record that already has one is returned as is."""
        if self.fingerprint is not None:
            return self
        return QARecord(self.question, self.answer, self.timestamp, tuple(fingerprint))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "question": self.question,
            "answer": self.answer,
            "timestamp": self.timestamp,
        }
        if self.fingerprint is not None:
            data["fingerprint"] = list(self.fingerprint)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QARecord":
        if not isinstance(data, dict):
            raise TypeError(f"history record must be an object, got {type(data).__name__}")
        # Older history files stored the vector under "embedding".
        fingerprint = data.get("fingerprint", data.get("embedding"))
        return cls(
            question=data["question"],
            answer=data["answer"],
            timestamp=data.get("timestamp") or iso_timestamp(),
            fingerprint=fingerprint,
        )


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one question."""
    answer: str
    source: AnswerSource
    score: float | None = None
    strategy: str | None = None
