"""Named in-process locks for per-team and per-game critical sections."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class LockClient:
    """Hand out one ``asyncio.Lock`` per lock name.

    One process owns a game's live state, so in-process locks are enough to
    serialize check-then-write sequences. Database unique constraints remain
    the backstop if two processes ever write the same game.
    """

    def __init__(self, default_timeout: float = 10.0):
        self.default_timeout = default_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, name: str, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the named lock for the duration of the block.

        Raises:
            TimeoutError: If the lock could not be acquired within ``timeout`` seconds.
        """
        timeout = self.default_timeout if timeout is None else timeout
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._waiters[name] = self._waiters.get(name, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out after {timeout}s waiting for lock {name}")
                raise TimeoutError(f"Could not acquire lock {name}") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[name] -= 1
            if self._waiters[name] == 0:
                # Nobody holds or waits on it any more
                self._waiters.pop(name, None)
                self._locks.pop(name, None)

    def is_locked(self, name: str) -> bool:
        lock = self._locks.get(name)
        return lock.locked() if lock else False

    def active_lock_count(self) -> int:
        return len(self._locks)
