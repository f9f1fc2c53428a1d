"""Keyed asyncio locks.

A `KeyedLock` hands out one `asyncio.Lock` per key, so work on different
keys never contends. Entries are dropped as soon as no coroutine holds or
waits on them.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    """Registry of per-key asyncio locks.

    Usage:
        owner_locks = KeyedLock()

        async with owner_locks.hold(user_id):
            ...  # read-modify-write of that user's record
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refcounts: dict[str, int] = {}

    def __len__(self) -> int:
        """Number of keys currently held or awaited."""
        return len(self._locks)

    def is_locked(self, key: str) -> bool:
        """Check whether ``key`` is currently held."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Acquire the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._refcounts[key] = self._refcounts.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refcounts[key] -= 1
            if self._refcounts[key] == 0:
                del self._refcounts[key]
                del self._locks[key]
