import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

logger = logging.getLogger(__name__)


class KeyedLockRegistry:
    """
    Process-wide registry of asyncio locks, one per key.

    Callers holding different keys never wait on each other. A lock is only
    dropped through `discard` while nobody holds it, so a waiter can never end
    up holding a lock that was already replaced for the same key.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}

    def get(self, key: Hashable) -> asyncio.Lock:
        # setdefault is atomic on the event loop thread
        return self._locks.setdefault(key, asyncio.Lock())

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        lock = self.get(key)
        if lock.locked():
            logger.debug(f"Waiting for lock {key}")
        async with lock:
            yield

    def discard(self, key: Hashable) -> bool:
        """Forget the lock of `key` unless it is held; returns whether it was removed"""
        lock = self._locks.get(key)
        if lock is None:
            return False
        if lock.locked():
            logger.debug(f"Lock {key} is held, keeping it")
            return False
        del self._locks[key]
        return True

    def __len__(self) -> int:
        return len(self._locks)
