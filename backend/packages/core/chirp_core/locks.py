"""
Per-key mutual exclusion.

Writers to one feed, and handshakes for one subscription key, are serialized
through a lock keyed by that identity. Locks exist only while in use.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class LockKeys:
    """Lock key templates."""

    @staticmethod
    def feed(feed_id: str) -> str:
        """
        Get the writer lock key for a feed.

        Args:
            feed_id: Feed identifier.

        Returns:
            Lock key string.
        """
        return f"feed:{feed_id}"

    @staticmethod
    def subscription(feed_id: str, topic: str, hub: str) -> str:
        """
        Get the handshake lock key for a subscription.

        Args:
            feed_id: Local feed identifier.
            topic: Remote topic URL.
            hub: Hub URL.

        Returns:
            Lock key string.
        """
        return f"subscription:{feed_id}:{topic}:{hub}"

    @staticmethod
    def mirror(topic: str) -> str:
        """Get the creation lock key for the local mirror of a remote topic."""
        return f"mirror:{topic}"


class KeyedLock:
    """Registry of asyncio locks, one per key, dropped when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        Hold the lock for a key for the duration of the block.

        The lock is released on every exit path, including exceptions.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        """Check whether a key is currently held."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
