"""Background task that expires silent teams."""
import asyncio
import logging

from qrhunt.services.presence_tracker import PresenceTracker

logger = logging.getLogger(__name__)


def run_presence_sweep(presence: PresenceTracker) -> int:
    """Mark teams whose heartbeat timed out as disconnected."""
    changed = presence.sweep()
    if changed:
        logger.info(f"Presence sweep disconnected {changed} team(s)")
    return changed


async def schedule_presence_sweep(presence: PresenceTracker, interval_seconds: float = 10) -> None:
    """Run the presence sweep every ``interval_seconds`` until cancelled."""
    logger.info(f"Starting presence sweep scheduler (interval: {interval_seconds}s)")

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            run_presence_sweep(presence)
        except asyncio.CancelledError:
            logger.info("Presence sweep scheduler cancelled")
            break
        except Exception as e:
            logger.error(f"Unexpected error in presence sweep: {e}", exc_info=True)
