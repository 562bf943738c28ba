"""Health check endpoint."""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from qrhunt.database import engine
from qrhunt.version import APP_VERSION

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "detail": "Database connection failed"},
        )

    event_bus = getattr(request.app.state, "event_bus", None)
    return {
        "status": "ok",
        "database": "connected",
        "version": APP_VERSION,
        "liveGames": event_bus.game_count() if event_bus else 0,
    }
