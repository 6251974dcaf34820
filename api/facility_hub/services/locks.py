# facility_hub/services/locks.py
"""
In-process single-writer-per-key serialization.

Read-then-write operations (FIFO distribution, sequence-based id
generation, purchase order delivery) hold the lock for their key for the
whole read/compute/write cycle. On PostgreSQL the row locks taken with
SELECT ... FOR UPDATE cover multiple worker processes; these locks cover
concurrent requests inside one process and the SQLite test setup.
"""
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable
import asyncio
import weakref


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        async with lock:
            yield


distribution_locks = KeyedLocks()
identifier_locks = KeyedLocks()
order_locks = KeyedLocks()
