"""Per-lead single-writer discipline and non-blocking sweep guards."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable
from weakref import WeakValueDictionary

logger = logging.getLogger(__name__)


class LeadLocks:
    """asyncio.Lock per lead id.

    Scoring, journey tracking and workflow lead mutations all go through
    ``hold(lead_id)`` so a touchpoint's score update cannot interleave with a
    workflow's read-modify-write of the same lead. Locks are not reentrant.
    """

    def __init__(self) -> None:
        self._locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def _lock_for(self, lead_id: Hashable) -> asyncio.Lock:
        key = str(lead_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, lead_id: Hashable) -> AsyncIterator[None]:
        lock = self._lock_for(lead_id)
        async with lock:
            yield

    def locked(self, lead_id: Hashable) -> bool:
        lock = self._locks.get(str(lead_id))
        return lock is not None and lock.locked()


class SweepGuard:
    """Skip-if-running guard for periodic jobs."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def try_acquire(self, name: str) -> AsyncIterator[bool]:
        """Yield True if the sweep may run, False if another run is in progress."""
        lock = self._locks.setdefault(name, asyncio.Lock())
        if lock.locked():
            logger.warning("Sweep %s still running; skipping overlapping run", name)
            yield False
            return
        async with lock:
            yield True
