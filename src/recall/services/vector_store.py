"""Append-only stores of resolved question/answer records.

`VectorStore` is the interface the resolver depends on. Two backends:

- `InMemoryVectorStore`: process-local, used in tests and when no history
  file is wanted.
- `JsonFileVectorStore`: the whole history as a JSON array on disk,
  rewritten atomically (temp file + replace) on every mutation.

Both serialize mutations under an asyncio lock, so concurrent appends keep
a single total insertion order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

import aiofiles

from recall.domain.exceptions import PersistenceError
from recall.domain.models import Fingerprint, QARecord

logger = logging.getLogger(__name__)


class VectorStore(ABC):
    """Ordered, append-only sequence of `QARecord`."""

    @abstractmethod
    async def append(self, record: QARecord) -> int:
        """Append a record and return its position."""
        ...

    @abstractmethod
    async def list(self) -> Sequence[QARecord]:
        """Snapshot of every record in insertion order."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record at once."""
        ...

    @abstractmethod
    async def attach_fingerprint(
        self, position: int, fingerprint: Fingerprint, *, expected: QARecord | None = None
    ) -> bool:
        """Set the fingerprint of the record at `position` if it has none.

        When `expected` is given the record at `position` must still equal it;
        this keeps a backfill from writing onto a store cleared meanwhile.
        Returns True only when the record changed.
        """
        ...

    async def count(self) -> int:
        return len(await self.list())


def _attach_target(
    records: Sequence[QARecord], position: int, expected: QARecord | None
) -> QARecord | None:
    """The record at `position` if a fingerprint may be attached to it."""
    if not 0 <= position < len(records):
        return None
    current = records[position]
    if current.fingerprint is not None:
        return None
    if expected is not None and current != expected:
        return None
    return current


class InMemoryVectorStore(VectorStore):
    def __init__(self, records: Sequence[QARecord] = ()) -> None:
        self._records: list[QARecord] = list(records)
        self._lock = asyncio.Lock()

    async def append(self, record: QARecord) -> int:
        async with self._lock:
            self._records.append(record)
            return len(self._records) - 1

    async def list(self) -> Sequence[QARecord]:
        return tuple(self._records)

    async def clear(self) -> None:
        async with self._lock:
            self._records = []

    async def attach_fingerprint(
        self, position: int, fingerprint: Fingerprint, *, expected: QARecord | None = None
    ) -> bool:
        async with self._lock:
            current = _attach_target(self._records, position, expected)
            if current is None:
                return False
            self._records[position] = current.with_fingerprint(fingerprint)
            return True


class JsonFileVectorStore(VectorStore):
    """History persisted as a JSON array of `{question, answer, timestamp, fingerprint?}`.

    The in-memory list only changes after the file write succeeded, so a
    failed write leaves memory and disk in agreement.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._records: list[QARecord] = []
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> int:
        """Read the history file, creating an empty one if missing. Returns the record count.

        An unreadable file is moved aside to `<name>.corrupt` and the store
        starts empty.
        """
        async with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                logger.info("%s does not exist; creating a new one", self._path)
                await self._write([])
                self._records = []
                return 0

            try:
                async with aiofiles.open(self._path, encoding="utf-8") as f:
                    raw = await f.read()
                data = json.loads(raw) if raw.strip() else []
                if not isinstance(data, list):
                    raise ValueError("history file must contain a JSON array")
                records = [QARecord.from_dict(item) for item in data]
            except (ValueError, KeyError, TypeError) as e:
                backup = self._path.with_name(self._path.name + ".corrupt")
                logger.error("Could not read %s (%s); moving it to %s", self._path, e, backup)
                self._path.replace(backup)
                await self._write([])
                records = []

            self._records = records
            logger.info("Loaded %d history record(s) from %s", len(records), self._path)
            return len(records)

    async def _write(self, records: Sequence[QARecord]) -> None:
        payload = json.dumps([record.to_dict() for record in records], indent=2)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            tmp_path.replace(self._path)
        except OSError as e:
            raise PersistenceError(
                f"Could not write history to {self._path}: {e}",
                details={"path": str(self._path)},
            ) from e

    async def append(self, record: QARecord) -> int:
        async with self._lock:
            updated = [*self._records, record]
            await self._write(updated)
            self._records = updated
            return len(updated) - 1

    async def list(self) -> Sequence[QARecord]:
        return tuple(self._records)

    async def clear(self) -> None:
        async with self._lock:
            await self._write([])
            self._records = []

    async def attach_fingerprint(
        self, position: int, fingerprint: Fingerprint, *, expected: QARecord | None = None
    ) -> bool:
        async with self._lock:
            current = _attach_target(self._records, position, expected)
            if current is None:
                return False
            updated = list(self._records)
            updated[position] = current.with_fingerprint(fingerprint)
            await self._write(updated)
            self._records = updated
            return True
