"""Utilities module - caching, locking, and time helpers."""
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.lock_client import LockClient
from qrhunt.utils.datetime_helpers import ensure_utc

__all__ = ["LeaderboardCache", "LockClient", "ensure_utc"]
