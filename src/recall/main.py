"""
Recall: semantic response cache in front of a brand assistant.

Application entry point. Configures middleware, registers routes and
exception handlers, and manages the application lifespan.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from recall.api.routes.ask import router as ask_router
from recall.api.routes.health import VERSION
from recall.api.routes.health import router as health_router
from recall.api.routes.history import router as history_router
from recall.api.routes.metrics import router as metrics_router
from recall.core.circuit_breaker import CircuitBreaker
from recall.core.config import get_settings
from recall.core.http import create_http_client
from recall.core.logging_config import configure_logging
from recall.core.rate_limiter import RateLimiter
from recall.core.redis import create_redis_client
from recall.core.retry import RetryPolicy
from recall.domain.exceptions import (
    GenerationUnavailableError,
    InvalidInputError,
    PersistenceError,
    RecallError,
)
from recall.middleware.trace import TraceMiddleware
from recall.providers.openai import OpenAIProvider
from recall.services.cache import CacheService
from recall.services.embedding import EmbeddingService
from recall.services.resolver import AnswerResolver
from recall.services.vector_store import JsonFileVectorStore

configure_logging(get_settings().log_level)

logger = logging.getLogger(__name__)


async def _run_backfill(resolver: AnswerResolver) -> None:
    """Background task: fingerprint history records saved without one."""
    try:
        await resolver.backfill_fingerprints()
    except asyncio.CancelledError:
        logger.info("Fingerprint backfill cancelled")
        raise
    except Exception:
        logger.exception("Fingerprint backfill failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    app.state.start_time = time.time()
    settings = get_settings()

    # --- History store ---
    store = JsonFileVectorStore(settings.history_path)
    await store.load()

    # --- Providers ---
    app.state.http_client = create_http_client()
    retry_policy = RetryPolicy(
        max_attempts=settings.retry.max_attempts,
        base_delay=settings.retry.base_delay,
        max_delay=settings.retry.max_delay,
    )
    embedder = None
    generator = None
    if settings.openai_api_key:
        embedder = EmbeddingService(
            circuit_breaker=CircuitBreaker(name="embeddings"),
            retry_policy=retry_policy,
            client=app.state.http_client,
        )
        generator = OpenAIProvider(
            circuit_breaker=CircuitBreaker(name="openai"),
            retry_policy=retry_policy,
            client=app.state.http_client,
        )
    else:
        logger.warning(
            "OPENAI_API_KEY is not set; only previously stored answers can be served"
        )

    # --- Redis + Hot Cache + Rate Limiter ---
    hot_cache = None
    try:
        app.state.redis = create_redis_client(settings.redis)
        await app.state.redis.ping()
        hot_cache = CacheService(app.state.redis, default_ttl=settings.cache.hot_ttl_seconds)
        app.state.rate_limiter = RateLimiter(
            app.state.redis,
            settings.rate_limit_max_requests,
            settings.rate_limit_window_seconds,
        )
        logger.info("Redis connected successfully")
    except (RedisError, OSError) as e:
        logger.warning("Redis unreachable (%s); running without hot cache and rate limiting", e)
        if getattr(app.state, "redis", None) is not None:
            await app.state.redis.aclose()
        app.state.redis = None
        app.state.rate_limiter = None

    # --- Resolver ---
    app.state.resolver = AnswerResolver.from_settings(
        settings,
        store,
        generator,
        embedder=embedder,
        hot_cache=hot_cache,
    )
    app.state.backfill_task = None
    if embedder is not None:
        app.state.backfill_task = asyncio.create_task(_run_backfill(app.state.resolver))

    logger.info("Recall started (version %s)", VERSION)
    yield

    # --- Cleanup ---
    task = app.state.backfill_task
    if task is not None and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    if app.state.redis is not None:
        await app.state.redis.aclose()
    await app.state.http_client.aclose()
    logger.info("Recall shutdown complete")


app = FastAPI(
    title="Recall",
    description=(
        "Answers customer questions about the product, reusing answers to earlier "
        "questions with the same meaning before asking the language model."
    ),
    version=VERSION,
    openapi_tags=[
        {"name": "Ask", "description": "Answer a customer question."},
        {"name": "History", "description": "Stored questions and answers (admin only)."},
        {"name": "Operations", "description": "Health checks and metrics."},
    ],
    lifespan=lifespan,
)


# --- Error rendering: every error body is {"error": message} ---


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Question is required."})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Question is required."})


@app.exception_handler(GenerationUnavailableError)
async def generation_error_handler(
    request: Request, exc: GenerationUnavailableError
) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "An error occurred while processing your request."},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("History store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Failed to clear chat history."})


@app.exception_handler(RecallError)
async def recall_error_handler(request: Request, exc: RecallError) -> JSONResponse:
    logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": exc.message})


# Middleware: last added = outermost (first to execute on request)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TraceMiddleware)

app.include_router(ask_router)
app.include_router(history_router)
app.include_router(health_router)
app.include_router(metrics_router)

metrics_app = make_asgi_app()
app.mount("/prometheus", metrics_app)


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
