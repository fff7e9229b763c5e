"""Tests for domain models and the exception hierarchy."""

import os
import sys
import pytest
from datetime import datetime, timezone

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from recall.domain.models import AnswerSource, QARecord, Resolution, iso_timestamp
from recall.domain.exceptions import (
    CacheUnavailableError,
    EmbeddingUnavailableError,
    GenerationUnavailableError,
    InvalidInputError,
    PersistenceError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
    RecallError,
)


# =============================================================================
# QARecord
# =============================================================================

class TestQARecord:
    def test_create_stamps_utc_millisecond_timestamp(self):
        record = QARecord.create("Q", "A")
        assert record.timestamp.endswith("Z")
        # 2024-05-01T10:00:00.000Z
        assert len(record.timestamp) == 24
        assert record.fingerprint is None

    def test_iso_timestamp_format(self):
        moment = datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert iso_timestamp(moment) == "2024-05-01T10:00:00.123Z"

    @pytest.mark.parametrize("question,answer", [("", "A"), ("Q", ""), (None, "A")])
    def test_rejects_empty_fields(self, question, answer):
        with pytest.raises(ValueError):
            QARecord(question=question, answer=answer, timestamp="2024-05-01T10:00:00.000Z")

    def test_fingerprint_is_stored_as_tuple_of_floats(self):
        record = QARecord.create("Q", "A", [1, 0, 2])
        assert record.fingerprint == (1.0, 0.0, 2.0)

    def test_record_is_immutable(self):
        record = QARecord.create("Q", "A")
        with pytest.raises(AttributeError):
            record.answer = "changed"

    def test_with_fingerprint_attaches_missing_vector(self):
        record = QARecord.create("Q", "A")
        updated = record.with_fingerprint([0.5, 0.5])
        assert updated.fingerprint == (0.5, 0.5)
        assert updated.timestamp == record.timestamp
        assert record.fingerprint is None

    def test_with_fingerprint_keeps_existing_vector(self):
        record = QARecord.create("Q", "A", [1.0, 0.0])
        assert record.with_fingerprint([0.0, 1.0]) is record

    def test_to_dict_omits_missing_fingerprint(self):
        record = QARecord("Q", "A", "2024-05-01T10:00:00.000Z")
        assert record.to_dict() == {
            "question": "Q",
            "answer": "A",
            "timestamp": "2024-05-01T10:00:00.000Z",
        }

    def test_from_dict_reads_legacy_embedding_key(self):
        record = QARecord.from_dict({
            "question": "Q",
            "answer": "A",
            "timestamp": "2024-05-01T10:00:00.000Z",
            "embedding": [0.1, 0.2],
        })
        assert record.fingerprint == (0.1, 0.2)
        assert record.to_dict()["fingerprint"] == [0.1, 0.2]
        assert "embedding" not in record.to_dict()

    def test_from_dict_requires_question(self):
        with pytest.raises(KeyError):
            QARecord.from_dict({"answer": "A"})

    @pytest.mark.parametrize("data", ["x", 42, None, ["Q", "A"]])
    def test_from_dict_rejects_non_objects(self, data):
        with pytest.raises(TypeError):
            QARecord.from_dict(data)


class TestResolution:
    def test_source_equals_string(self):
        resolution = Resolution(answer="A", source=AnswerSource.SIMILAR, score=0.93, strategy="fingerprint")
        assert resolution.source == "similar"
        assert AnswerSource.HOT_CACHE == "hot_cache"
        assert AnswerSource.GENERATED == "generated"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class TestExceptionHierarchy:
    @pytest.mark.parametrize("exc_type", [
        InvalidInputError,
        EmbeddingUnavailableError,
        GenerationUnavailableError,
        CacheUnavailableError,
        PersistenceError,
    ])
    def test_all_derive_from_recall_error(self, exc_type):
        assert issubclass(exc_type, RecallError)

    def test_provider_errors_carry_provider_and_status(self):
        error = ProviderRateLimitError("slow down", provider="openai", status_code=429)
        assert isinstance(error, ProviderError)
        assert error.provider == "openai"
        assert error.status_code == 429
        assert issubclass(ProviderUnavailableError, ProviderError)

    def test_to_dict(self):
        error = PersistenceError("disk full", details={"path": "chatHistory.json"})
        assert error.to_dict() == {
            "message": "disk full",
            "details": {"path": "chatHistory.json"},
            "type": "PersistenceError",
        }

    def test_details_default_to_empty_dict(self):
        assert InvalidInputError("bad").details == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
