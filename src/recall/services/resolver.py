"""Answer resolution: hot cache, then similar past answers, then generation.

Per question:

    CheckHotCache --hit--> Respond
        | miss
    ComputeFingerprint (failure degrades to a lexical query)
        |
    SearchSimilar --match--> PopulateHotCache -> Respond
        | no match
    InvokeGeneration --failure--> GenerationUnavailableError
        |
    PersistRecord -> PopulateHotCache -> Respond

The resolver is the only writer to the vector store and the hot cache.
Hot cache and persistence failures are logged and never fail the request.

Two concurrent identical questions can both miss, both generate and both
append a record (at-least-once generation). Set ``coalesce=True`` to have
them share one in-flight resolution instead.
"""

import asyncio
import logging
import time
from typing import Any

from recall.core.config import Settings
from recall.core.metrics import metrics, recall_metrics
from recall.core.telemetry import (
    log_resolution_completed,
    log_resolution_failed,
    log_resolution_started,
)
from recall.domain.exceptions import (
    CacheUnavailableError,
    EmbeddingUnavailableError,
    GenerationUnavailableError,
    InvalidInputError,
    PersistenceError,
)
from recall.domain.models import (
    AnswerSource,
    ChatRequest,
    Fingerprint,
    Message,
    ModelParameters,
    QARecord,
    Resolution,
    Role,
)
from recall.providers.base import LLMProvider
from recall.services.brand_context import build_system_context
from recall.services.cache import CacheService
from recall.services.embedding import EmbeddingService
from recall.services.matcher import (
    FingerprintMatcher,
    LexicalMatcher,
    Matcher,
    MatchQuery,
    MatchResult,
    MatchStrategy,
    SimilarityMatcher,
)
from recall.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


class AnswerResolver:
    def __init__(
        self,
        store: VectorStore,
        generator: LLMProvider | None,
        matcher: SimilarityMatcher,
        system_context: str,
        *,
        embedder: EmbeddingService | None = None,
        hot_cache: CacheService | None = None,
        model: str = "gpt-4",
        parameters: ModelParameters | None = None,
        hot_ttl_seconds: int | None = None,
        coalesce: bool = False,
    ):
        self._store = store
        self._generator = generator
        self._matcher = matcher
        self._system_context = system_context
        self._embedder = embedder
        self._hot_cache = hot_cache
        self._model = model
        self._parameters = parameters or ModelParameters(temperature=0.7, max_tokens=300)
        self._hot_ttl_seconds = hot_ttl_seconds
        self._coalesce = coalesce
        self._inflight: dict[str, asyncio.Future] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: VectorStore,
        generator: LLMProvider | None,
        *,
        embedder: EmbeddingService | None = None,
        hot_cache: CacheService | None = None,
    ) -> "AnswerResolver":
        matchers: list[Matcher] = [FingerprintMatcher(settings.cache.similarity_threshold)]
        if settings.cache.lexical_fallback:
            matchers.append(LexicalMatcher(settings.cache.lexical_threshold))
        return cls(
            store,
            generator,
            SimilarityMatcher(matchers),
            build_system_context(settings.brand),
            embedder=embedder,
            hot_cache=hot_cache,
            model=settings.generation_model,
            parameters=ModelParameters(
                temperature=settings.generation_temperature,
                max_tokens=settings.generation_max_tokens,
            ),
            hot_ttl_seconds=settings.cache.hot_ttl_seconds,
            coalesce=settings.cache.coalesce_requests,
        )

    @property
    def store(self) -> VectorStore:
        return self._store

    @property
    def embedder(self) -> EmbeddingService | None:
        return self._embedder

    @property
    def generator(self) -> LLMProvider | None:
        return self._generator

    @staticmethod
    def validate_question(question: Any) -> str:
        if not isinstance(question, str) or not question.strip():
            raise InvalidInputError(
                "Question is required and must be a non-empty string.",
                details={"received_type": type(question).__name__},
            )
        return question

    async def resolve(self, question: Any) -> Resolution:
        """Answer `question`, reusing a previous answer whenever possible.

        Raises:
            InvalidInputError: the question is not a non-blank string.
            GenerationUnavailableError: no reusable answer and generation failed.
        """
        question = self.validate_question(question)
        log_resolution_started(question)
        started = time.perf_counter()
        try:
            if self._coalesce:
                resolution = await self._resolve_coalesced(question)
            else:
                resolution = await self._resolve(question)
        except GenerationUnavailableError as e:
            log_resolution_failed(e, (time.perf_counter() - started) * 1000)
            raise

        elapsed = time.perf_counter() - started
        recall_metrics.record_resolution(resolution.source.value, elapsed)
        log_resolution_completed(resolution, elapsed * 1000)
        return resolution

    async def _resolve_coalesced(self, question: str) -> Resolution:
        task = self._inflight.get(question)
        if task is None:
            task = asyncio.ensure_future(self._resolve(question))
            self._inflight[question] = task
            task.add_done_callback(lambda done: self._forget_inflight(question, done))
        else:
            logger.info("Joining in-flight resolution of an identical question")
        # Shielded so one cancelled caller does not cancel the others.
        return await asyncio.shield(task)

    def _forget_inflight(self, question: str, task: asyncio.Future) -> None:
        if self._inflight.get(question) is task:
            del self._inflight[question]

    async def _resolve(self, question: str) -> Resolution:
        cached = await self._read_hot_cache(question)
        if cached is not None:
            logger.info("Answer served from hot cache")
            return Resolution(answer=cached, source=AnswerSource.HOT_CACHE)

        fingerprint = await self._compute_fingerprint(question)
        result = await self._search_similar(MatchQuery(question, fingerprint))
        if result is not None and result.is_match:
            metrics.increment(
                "similarity_hits" if result.strategy == MatchStrategy.FINGERPRINT else "lexical_hits"
            )
            logger.info(
                "Reusing answer of a similar question (%s score %.3f)",
                result.strategy.value,
                result.score,
            )
            answer = result.record.answer
            await self._write_hot_cache(question, answer)
            return Resolution(
                answer=answer,
                source=AnswerSource.SIMILAR,
                score=result.score,
                strategy=result.strategy.value,
            )

        logger.info("No similar question found; invoking generation")
        answer = await self._generate(question)
        await self._persist(QARecord.create(question, answer, fingerprint))
        await self._write_hot_cache(question, answer)
        return Resolution(answer=answer, source=AnswerSource.GENERATED)

    async def _read_hot_cache(self, question: str) -> str | None:
        if self._hot_cache is None:
            return None
        try:
            return await self._hot_cache.get(question)
        except CacheUnavailableError as e:
            logger.warning("Hot cache unavailable, treating as miss: %s", e)
            return None

    async def _write_hot_cache(self, question: str, answer: str) -> None:
        if self._hot_cache is None:
            return
        try:
            await self._hot_cache.set(question, answer, ttl=self._hot_ttl_seconds)
        except CacheUnavailableError as e:
            logger.warning("Hot cache unavailable, answer not cached: %s", e)

    async def _compute_fingerprint(self, question: str) -> Fingerprint | None:
        if self._embedder is None:
            return None
        try:
            return tuple(await self._embedder.embed(question))
        except EmbeddingUnavailableError as e:
            logger.warning("No fingerprint for question, degrading to lexical match: %s", e)
            return None

    async def _search_similar(self, query: MatchQuery) -> MatchResult | None:
        if not self._matcher.supports(query.strategy):
            logger.info("No %s matcher configured; skipping similarity search", query.strategy.value)
            return None
        corpus = await self._store.list()
        result = self._score(self._matcher.match(query, corpus), len(corpus))
        if (result is None or not result.is_match) and query.fingerprint is not None:
            # Records saved during an embedding outage have no fingerprint yet.
            unfingerprinted = [record for record in corpus if record.fingerprint is None]
            if unfingerprinted and self._matcher.supports(MatchStrategy.LEXICAL):
                fallback = self._score(
                    self._matcher.match(MatchQuery(query.text), unfingerprinted),
                    len(unfingerprinted),
                )
                if fallback is not None and fallback.is_match:
                    return fallback
        return result

    def _score(self, result: MatchResult | None, corpus_size: int) -> MatchResult | None:
        if result is not None and result.score is not None:
            recall_metrics.record_similarity_score(result.strategy.value, result.score)
            logger.debug(
                "Best %s candidate score %.3f (accepted=%s) over %d record(s)",
                result.strategy.value,
                result.score,
                result.accepted,
                corpus_size,
            )
        return result

    async def _generate(self, question: str) -> str:
        if self._generator is None:
            metrics.increment("generation_failures")
            raise GenerationUnavailableError("No generation provider is configured.")
        request = ChatRequest(
            model=self._model,
            messages=[
                Message(role=Role.SYSTEM, content=self._system_context),
                Message(role=Role.USER, content=question),
            ],
            parameters=self._parameters,
        )
        try:
            response = await self._generator.complete(request)
        except Exception as e:
            metrics.increment("generation_failures")
            recall_metrics.record_provider_failure(self._generator.name, type(e).__name__)
            logger.error("Generation failed: %s", e)
            raise GenerationUnavailableError(
                "Failed to generate an answer.",
                details={"provider": self._generator.name, "error_type": type(e).__name__},
            ) from e

        answer = (response.message.content or "").strip()
        if not answer:
            metrics.increment("generation_failures")
            raise GenerationUnavailableError(
                "Generation returned an empty answer.",
                details={"provider": response.provider, "finish_reason": response.finish_reason.value},
            )
        metrics.increment("generations")
        return answer

    async def _persist(self, record: QARecord) -> None:
        try:
            position = await self._store.append(record)
        except PersistenceError as e:
            metrics.increment("persistence_failures")
            logger.error("Could not persist new answer; it will not be reused: %s", e)
            return
        logger.info("New answer saved at position %d", position)

    async def backfill_fingerprints(self) -> int:
        """Attach fingerprints to stored records that lack one. Returns how many were attached."""
        if self._embedder is None:
            return 0
        attached = 0
        for position, record in enumerate(await self._store.list()):
            if record.fingerprint is not None:
                continue
            try:
                fingerprint = await self._embedder.embed(record.question)
            except EmbeddingUnavailableError as e:
                logger.warning("Backfill skipped record %d: %s", position, e)
                continue
            try:
                if await self._store.attach_fingerprint(position, fingerprint, expected=record):
                    attached += 1
            except PersistenceError as e:
                metrics.increment("persistence_failures")
                logger.error("Backfill could not save record %d: %s", position, e)
        if attached:
            logger.info("Backfilled fingerprints for %d record(s)", attached)
        else:
            logger.info("All history records already have fingerprints")
        return attached

    async def history(self) -> list[QARecord]:
        return list(await self._store.list())

    async def clear_history(self) -> None:
        """Drop every stored record. The hot cache is left to expire on its own."""
        await self._store.clear()
        logger.info("Chat history cleared")
