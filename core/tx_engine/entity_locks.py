"""Per-entity write serialization.

Two submissions against the same NFT id never overlap: the second one
waits until the first has been confirmed (or has failed). Writes on
different ids run concurrently. Locks are created on demand and dropped
once no caller holds or waits for them.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

from core.logger import StructuredLogger

LOG = StructuredLogger("entity_locks")


class EntityLockManager:
    """Hand out one ``asyncio.Lock`` per entity key."""

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable, *, action: str = "") -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        if lock.locked():
            LOG.log("lock_wait", nft_id=str(key), action=action, risk_level="low")
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)
