"""FastAPI application entry point."""
import os

# Force UTC before anything caches timezone information
os.environ['TZ'] = 'UTC'

import asyncio
import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from qrhunt.config import get_settings
from qrhunt.version import APP_VERSION
from qrhunt.routers import admin, auth, feedback, games, health, scans
from qrhunt.services.event_bus import EventBus
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.tasks.presence_sweep import schedule_presence_sweep
from qrhunt.tasks.session_cleanup import schedule_session_cleanup
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.lock_client import LockClient

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SQLTransactionFilter(logging.Filter):
    """Drop transaction bookkeeping from the SQL log and keep one line per statement."""

    def filter(self, record):
        if record.levelno != logging.INFO:
            return True

        message = record.getMessage()
        if any(keyword in message for keyword in ('ROLLBACK', 'BEGIN', 'COMMIT', 'generated in', 'cached since')):
            return False

        if any(keyword in message for keyword in ('SELECT', 'DELETE', 'INSERT', 'UPDATE')):
            record.msg = ' '.join(message.split())
            record.args = ()
        return True


def _rotating_handler(path: Path, max_bytes: int = 1024 * 1024, fmt: str = LOG_FORMAT) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=5, encoding='utf-8')
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure_logging(log_dir: str) -> logging.Logger:
    """Route app, request and SQL logs to their own rotating files.

    Returns the request logger used by the HTTP middleware.
    """
    logs_dir = Path(log_dir)
    logs_dir.mkdir(exist_ok=True)

    app_handler = _rotating_handler(logs_dir / "qrhunt.log")

    # force=True overrides uvicorn's configuration
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=[logging.StreamHandler(), app_handler], force=True)

    uvicorn_access_logger = logging.getLogger("uvicorn.access")
    if app_handler not in uvicorn_access_logger.handlers:
        uvicorn_access_logger.addHandler(app_handler)

    request_logger = logging.getLogger("qrhunt.api")
    request_logger.handlers.clear()
    request_logger.addHandler(
        _rotating_handler(logs_dir / "qrhunt_api.log", max_bytes=2 * 1024 * 1024, fmt='%(asctime)s - %(levelname)s - %(message)s')
    )
    request_logger.setLevel(logging.INFO)
    request_logger.propagate = False

    sql_logger = logging.getLogger("sqlalchemy.engine.Engine")
    sql_logger.handlers.clear()
    sql_logger.addHandler(_rotating_handler(logs_dir / "qrhunt_sql.log"))
    sql_logger.addFilter(SQLTransactionFilter())
    sql_logger.setLevel(logging.INFO)
    sql_logger.propagate = False

    return request_logger


settings = get_settings()
api_logger = configure_logging(settings.log_dir)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Create the shared live state and run the presence sweep and session cleanup."""
    logger.info("=" * 60)
    logger.info("QR Hunt API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info("=" * 60)

    event_bus = EventBus(max_queue_size=settings.event_queue_size)
    app_instance.state.event_bus = event_bus
    app_instance.state.leaderboard_cache = LeaderboardCache(default_ttl=settings.leaderboard_cache_ttl_seconds)
    app_instance.state.lock_client = LockClient(default_timeout=settings.lock_timeout_seconds)
    app_instance.state.presence_tracker = PresenceTracker(
        event_bus, timeout_seconds=settings.presence_timeout_seconds
    )

    presence_task = None
    try:
        presence_task = asyncio.create_task(
            schedule_presence_sweep(
                app_instance.state.presence_tracker,
                interval_seconds=settings.presence_sweep_interval_seconds,
            )
        )
        logger.info(f"Presence sweep task started (runs every {settings.presence_sweep_interval_seconds}s)")
    except Exception as e:
        logger.error(f"Failed to start presence sweep: {e}")

    cleanup_task = None
    try:
        cleanup_task = asyncio.create_task(
            schedule_session_cleanup(interval_seconds=settings.session_cleanup_interval_seconds)
        )
        logger.info(f"Session cleanup task started (runs every {settings.session_cleanup_interval_seconds}s)")
    except Exception as e:
        logger.error(f"Failed to start session cleanup: {e}")

    try:
        yield
    finally:
        logger.info("Shutting down background tasks...")
        if presence_task:
            presence_task.cancel()
            try:
                await asyncio.wait_for(presence_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Presence sweep task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Presence sweep task did not cancel within timeout, forcing shutdown")

        if cleanup_task:
            cleanup_task.cancel()
            try:
                await asyncio.wait_for(cleanup_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Session cleanup task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Session cleanup task did not cancel within timeout, forcing shutdown")

        logger.info("QR Hunt API Shutting Down... Goodbye!")


app = FastAPI(
    title="QR Hunt API",
    description="Scavenger hunt game progression engine",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors
        }
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with status and timing to the API log."""
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"
    method = request.method
    path = request.url.path
    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"

    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip}")

    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | Time: {time.time() - start_time:.3f}s"
        )
        raise

    api_logger.info(
        f"<< {request_id} | COMPLETE | {method} {path} | "
        f"Status: {response.status_code} | Time: {time.time() - start_time:.3f}s"
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(scans.router)
app.include_router(feedback.router)
app.include_router(games.router)
app.include_router(admin.router)
app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "QR Hunt API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
