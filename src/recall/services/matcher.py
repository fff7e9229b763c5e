"""Similarity matching of a question against stored records.

A `MatchQuery` is tagged with the strategy its data supports: a query that
carries a fingerprint is matched by cosine similarity, one without is
matched lexically on the question text. `SimilarityMatcher` dispatches on
that tag to whichever matcher is registered for it.

Both matchers scan the whole corpus (O(n) per query, no index). That is
fine for the few thousand records a single history file holds; past that
an ANN index is needed.

Score directions differ between strategies:

- fingerprint: cosine similarity, HIGHER is better, accepted when
  ``score >= threshold`` (default 0.8).
- lexical: normalized edit distance, LOWER is better (0.0 means identical),
  accepted when ``score <= threshold`` (default 0.4).
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

import numpy as np
from rapidfuzz.distance import Levenshtein
from rapidfuzz.utils import default_process

from recall.domain.models import Fingerprint, QARecord

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.8
DEFAULT_LEXICAL_THRESHOLD = 0.4


class MatchStrategy(str, Enum):
    FINGERPRINT = "fingerprint"
    LEXICAL = "lexical"


@dataclass(frozen=True)
class MatchQuery:
    text: str
    fingerprint: Fingerprint | None = None

    @property
    def strategy(self) -> MatchStrategy:
        if self.fingerprint is not None:
            return MatchStrategy.FINGERPRINT
        return MatchStrategy.LEXICAL


@dataclass(frozen=True)
class MatchResult:
    """Best candidate found by a matcher.

    `record` and `score` are None when nothing in the corpus was comparable.
    A best candidate that misses the threshold has `accepted=False`.
    """
    strategy: MatchStrategy
    record: QARecord | None = None
    score: float | None = None
    accepted: bool = False

    @property
    def is_match(self) -> bool:
        return self.accepted and self.record is not None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Fingerprint dimensions differ: {va.shape} vs {vb.shape}")
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def lexical_distance(a: str, b: str) -> float:
    """Normalized Levenshtein distance in [0, 1] after case folding and punctuation stripping."""
    return Levenshtein.normalized_distance(a, b, processor=default_process)


class Matcher(ABC):
    strategy: MatchStrategy

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold

    @abstractmethod
    def find_best_match(self, query: MatchQuery, corpus: Iterable[QARecord]) -> MatchResult: ...


class FingerprintMatcher(Matcher):
    """Cosine similarity over fingerprints. Higher is better.

    Records without a fingerprint, or with one of another dimension, are
    skipped. The first record reaching the maximum score wins.
    """

    strategy = MatchStrategy.FINGERPRINT

    def __init__(self, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> None:
        super().__init__(threshold)

    def find_best_match(self, query: MatchQuery, corpus: Iterable[QARecord]) -> MatchResult:
        if query.fingerprint is None:
            raise ValueError("FingerprintMatcher needs a query with a fingerprint")

        query_vector = np.asarray(query.fingerprint, dtype=np.float64)
        best_record: QARecord | None = None
        best_score: float | None = None
        skipped = 0
        for record in corpus:
            if record.fingerprint is None or len(record.fingerprint) != len(query_vector):
                skipped += 1
                continue
            score = cosine_similarity(query_vector, record.fingerprint)
            if best_score is None or score > best_score:
                best_record, best_score = record, score

        if skipped:
            logger.debug("Skipped %d record(s) without a comparable fingerprint", skipped)
        return MatchResult(
            strategy=self.strategy,
            record=best_record,
            score=best_score,
            accepted=best_score is not None and best_score >= self.threshold,
        )


class LexicalMatcher(Matcher):
    """Edit-distance match on the question text. LOWER is better.

    The threshold is a maximum distance, the inverse of the cosine
    threshold: a candidate is accepted when ``score <= threshold``.
    The first record reaching the minimum distance wins.
    """

    strategy = MatchStrategy.LEXICAL

    def __init__(self, threshold: float = DEFAULT_LEXICAL_THRESHOLD) -> None:
        super().__init__(threshold)

    def find_best_match(self, query: MatchQuery, corpus: Iterable[QARecord]) -> MatchResult:
        best_record: QARecord | None = None
        best_score: float | None = None
        for record in corpus:
            score = lexical_distance(query.text, record.question)
            if best_score is None or score < best_score:
                best_record, best_score = record, score
                if score == 0.0:
                    break

        return MatchResult(
            strategy=self.strategy,
            record=best_record,
            score=best_score,
            accepted=best_score is not None and best_score <= self.threshold,
        )


class SimilarityMatcher:
    """Dispatches a query to the matcher registered for its strategy."""

    def __init__(self, matchers: Iterable[Matcher]) -> None:
        self._matchers: dict[MatchStrategy, Matcher] = {m.strategy: m for m in matchers}

    def supports(self, strategy: MatchStrategy) -> bool:
        return strategy in self._matchers

    @property
    def strategies(self) -> list[MatchStrategy]:
        return list(self._matchers)

    def match(self, query: MatchQuery, corpus: Iterable[QARecord]) -> MatchResult | None:
        """Best match for `query`, or None if no matcher handles its strategy."""
        matcher = self._matchers.get(query.strategy)
        if matcher is None:
            return None
        return matcher.find_best_match(query, corpus)
