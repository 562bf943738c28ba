"""Short-lived in-memory cache for leaderboard payloads."""
import time
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class LeaderboardCache:
    """
    A per-game TTL cache keyed by game slug.

    The TTL absorbs request storms between scans; writers call
    :meth:`invalidate` so a scan is never hidden behind a stale entry.
    """

    def __init__(self, default_ttl: float = 5.0):
        self.default_ttl = default_ttl
        self._cache: Dict[str, tuple[Any, float]] = {}
        self._last_cleanup = time.time()
        self._cleanup_interval = 60.0
        # Bumped on every set/invalidate so a slow compute cannot overwrite a newer entry
        self._generations: Dict[str, int] = {}
        self._clears = 0

    def _cleanup_expired(self):
        """Remove expired entries from cache."""
        current_time = time.time()
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        expired_keys = [key for key, (_, expires_at) in self._cache.items() if current_time > expires_at]
        for key in expired_keys:
            self._cache.pop(key, None)

        self._last_cleanup = current_time

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired leaderboard entries")

    def get(self, slug: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        self._cleanup_expired()

        if slug not in self._cache:
            return None

        value, expires_at = self._cache[slug]
        if time.time() > expires_at:
            self._cache.pop(slug, None)
            return None

        return value

    def set(self, slug: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set value in cache with TTL."""
        if ttl is None:
            ttl = self.default_ttl

        self._cache[slug] = (value, time.time() + ttl)
        self._bump(slug)

    def invalidate(self, slug: str) -> None:
        """Drop the cached leaderboard for a game."""
        self._bump(slug)
        if self._cache.pop(slug, None) is not None:
            logger.debug(f"Invalidated leaderboard cache for {slug=}")

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()
        self._generations.clear()
        self._clears += 1

    async def get_or_compute(self, slug: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        """Return the fresh cached value or compute, store, and return a new one.

        ``None`` results are not cached so unknown games are re-checked.
        """
        cached = self.get(slug)
        if cached is not None:
            return cached

        generation = self._generation(slug)
        value = await compute()
        if value is not None and self._generation(slug) == generation:
            self.set(slug, value)
        elif value is not None:
            logger.debug(f"Leaderboard for {slug=} changed while computing; not caching stale result")
        return value

    def _bump(self, slug: str) -> None:
        self._generations[slug] = self._generations.get(slug, 0) + 1

    def _generation(self, slug: str) -> tuple[int, int]:
        return self._clears, self._generations.get(slug, 0)
