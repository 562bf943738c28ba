"""Retry helper for transient store failures at the request boundary."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_error(exc: BaseException) -> bool:
    """Return True for store errors worth retrying (lost connection, locked database)."""
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.1,
    on_retry: Optional[Callable[[], Awaitable[None]]] = None,
) -> T:
    """Run ``operation``, retrying transient store errors with linear backoff.

    ``on_retry`` runs before each new attempt, typically a session rollback.
    The last error is re-raised once attempts are exhausted; non-transient
    errors propagate immediately.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except DBAPIError as exc:
            if not is_transient_error(exc) or attempt == attempts:
                raise
            logger.warning(f"Transient store error (attempt {attempt}/{attempts}): {exc}")
            if on_retry is not None:
                await on_retry()
            await asyncio.sleep(backoff_seconds * attempt)

    raise RuntimeError("retry_transient called with attempts < 1")
