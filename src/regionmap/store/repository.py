"""Record repositories for regionmap stores.

Centralizes persistence for users and regions so store logic stays free of
storage details. Two implementations:

- InMemoryRepository: dict-backed, used by default and in tests
- JsonFileRepository: same dict plus an atomic JSON snapshot on disk,
  rewritten after every mutation and loaded at construction
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Repository(Protocol[ModelT]):
    """Async key/value persistence for immutable records."""

    async def get(self, key: str) -> ModelT | None:
        """Return the record stored under ``key``, or None."""
        ...

    async def put(self, key: str, record: ModelT) -> None:
        """Insert or replace the record stored under ``key``."""
        ...

    async def delete(self, key: str) -> ModelT | None:
        """Remove and return the record under ``key``, or None if absent."""
        ...

    async def values(self) -> list[ModelT]:
        """Return a snapshot of every stored record."""
        ...


class InMemoryRepository(Generic[ModelT]):
    """Dict-backed repository."""

    def __init__(self) -> None:
        self._records: dict[str, ModelT] = {}

    def __len__(self) -> int:
        return len(self._records)

    def snapshot(self) -> list[ModelT]:
        """Synchronous copy of every stored record."""
        return list(self._records.values())

    async def get(self, key: str) -> ModelT | None:
        return self._records.get(key)

    async def put(self, key: str, record: ModelT) -> None:
        self._records[key] = record

    async def delete(self, key: str) -> ModelT | None:
        return self._records.pop(key, None)

    async def values(self) -> list[ModelT]:
        return list(self._records.values())


class JsonFileRepository(InMemoryRepository[ModelT]):
    """Repository persisted as one JSON document per collection.

    Usage:
        users = JsonFileRepository(Path("data/users.json"), User)
        await users.put(user.id, user)  # snapshot rewritten atomically
    """

    def __init__(self, path: Path | str, model_type: type[ModelT]) -> None:
        """Load an existing snapshot if present.

        Args:
            path: Snapshot file location. Parent directories are created.
            model_type: Pydantic model used to validate loaded records.

        Raises:
            ValueError: If the snapshot exists but cannot be parsed.
        """
        super().__init__()
        self.path = Path(path)
        self.model_type = model_type
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._records = {
                key: self.model_type.model_validate(value)
                for key, value in data.items()
            }
        except (json.JSONDecodeError, ValueError, AttributeError) as e:
            raise ValueError(f"Corrupt snapshot {self.path}: {e}") from e
        logger.info("Loaded %d records from %s", len(self._records), self.path)

    def _write(self, payload: str) -> None:
        # Write atomically via temp file (replace() is atomic on both POSIX and Windows)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(payload, encoding="utf-8")
        temp_path.replace(self.path)

    async def _flush(self) -> None:
        async with self._write_lock:
            data = {
                key: record.model_dump(mode="json")
                for key, record in self._records.items()
            }
            await asyncio.to_thread(self._write, json.dumps(data, indent=2))
        logger.debug("Snapshot saved: %d records to %s", len(data), self.path)

    async def put(self, key: str, record: ModelT) -> None:
        previous = self._records.get(key)
        await super().put(key, record)
        try:
            await self._flush()
        except OSError:
            # Memory must not run ahead of the snapshot
            if previous is None:
                self._records.pop(key, None)
            else:
                self._records[key] = previous
            raise

    async def delete(self, key: str) -> ModelT | None:
        removed = await super().delete(key)
        if removed is not None:
            try:
                await self._flush()
            except OSError:
                self._records[key] = removed
                raise
        return removed
