"""
Domain-level exceptions.

Hierarchical exceptions allow catching at different granularities.
"""


class RecallError(Exception):
    """Base exception for all recall errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "message": self.message,
            "details": self.details,
            "type": type(self).__name__
        }


class InvalidInputError(RecallError):
    """The question was missing, not a string, or blank."""
    pass


# =============================================================================
# PROVIDER EXCEPTIONS
# =============================================================================

class ProviderError(RecallError):
    """Error from an external embedding or generation provider."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        details: dict | None = None
    ):
        super().__init__(message, details)
        self.provider = provider
        self.status_code = status_code


class ProviderUnavailableError(ProviderError):
    """Provider is temporarily unavailable (timeout, 5xx, connection error)."""
    pass


class ProviderRateLimitError(ProviderError):
    """Provider rate limit exceeded (429)."""
    pass


class CircuitOpenError(RecallError):
    """Circuit breaker is open."""
    pass


class EmbeddingUnavailableError(RecallError):
    """
    No fingerprint could be computed for the text.

    Never fatal: the resolver degrades to lexical matching or generation.
    """
    pass


class GenerationUnavailableError(RecallError):
    """The generation provider failed; surfaced to the caller, nothing persisted."""
    pass


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class CacheUnavailableError(RecallError):
    """Hot cache operation failed. Should not block requests."""
    pass


class PersistenceError(RecallError):
    """The vector store could not be written. Best-effort, not on the response path."""
    pass
