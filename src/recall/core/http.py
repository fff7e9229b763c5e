import httpx

from recall.core.config import get_settings


def create_http_client(read_timeout: float | None = None) -> httpx.AsyncClient:
    """Shared outbound client for the embedding and generation providers."""
    settings = get_settings()
    read = read_timeout if read_timeout is not None else settings.generation_timeout_seconds
    timeout = httpx.Timeout(connect=5.0, read=read, write=10.0, pool=5.0)
    limits = httpx.Limits(max_connections=100, max_keepalive_connections=20, keepalive_expiry=30.0)
    return httpx.AsyncClient(timeout=timeout, limits=limits)
