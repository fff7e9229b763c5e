"""
Request context variables for cross-cutting concerns.

The trace ID of the request being served is kept in a ContextVar so log
lines deep inside the resolver can carry it without explicit passing.
"""

from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("recall_request_id", default="-")


def get_request_id() -> str:
    """Get the current request's trace ID."""
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    """Set the trace ID for the current request."""
    request_id_var.set(request_id)
