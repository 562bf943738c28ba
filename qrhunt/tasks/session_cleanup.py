"""Background task that deletes expired team sessions."""
import asyncio
import logging

from qrhunt.database import AsyncSessionLocal
from qrhunt.services.session_service import TeamSessionService

logger = logging.getLogger(__name__)


async def run_session_cleanup(session_factory=AsyncSessionLocal) -> int:
    """Delete expired team sessions. Returns how many were removed."""
    async with session_factory() as db:
        return await TeamSessionService(db).cleanup_expired_sessions()


async def schedule_session_cleanup(interval_seconds: float = 3600) -> None:
    """Run the session cleanup every ``interval_seconds`` until cancelled."""
    logger.info(f"Starting session cleanup scheduler (interval: {interval_seconds}s)")

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await run_session_cleanup()
        except asyncio.CancelledError:
            logger.info("Session cleanup scheduler cancelled")
            break
        except Exception as e:
            logger.error(f"Unexpected error in session cleanup: {e}", exc_info=True)
