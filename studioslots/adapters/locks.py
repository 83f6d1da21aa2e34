"""
Per-studio commit locks shared by the booking store adapters.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class StudioLocks:
    """
    One ``asyncio.Lock`` per studio.

    Locks live in a ``WeakValueDictionary``, so an entry disappears once no
    commit holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __contains__(self, studio_id: str) -> bool:
        return studio_id in self._locks

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, studio_id: str) -> AsyncIterator[None]:
        # Strong reference for as long as this commit holds or awaits the lock
        lock = self._locks.get(studio_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[studio_id] = lock

        async with lock:
            yield
