"""FastAPI dependencies and error translation helpers."""
import logging
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.config import get_settings
from qrhunt.database import get_db
from qrhunt.models.team import Team
from qrhunt.services.event_bus import EventBus
from qrhunt.services.lifecycle_service import GameLifecycleService
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.services.scan_service import ScanService
from qrhunt.services.session_service import TeamSessionService
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.exceptions import (
    BusinessRuleError,
    GameValidationError,
    InvalidTransitionError,
    NotFoundError,
    QRHuntException,
)
from qrhunt.utils.lock_client import LockClient
from qrhunt.utils.retry import is_transient_error, retry_transient

logger = logging.getLogger(__name__)

settings = get_settings()

T = TypeVar("T")


# Shared application state, created in the lifespan

def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_leaderboard_cache(request: Request) -> LeaderboardCache:
    return request.app.state.leaderboard_cache


def get_lock_client(request: Request) -> LockClient:
    return request.app.state.lock_client


def get_presence_tracker(request: Request) -> PresenceTracker:
    return request.app.state.presence_tracker


def get_scan_service(
    db: AsyncSession = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
    cache: LeaderboardCache = Depends(get_leaderboard_cache),
    lock_client: LockClient = Depends(get_lock_client),
) -> ScanService:
    return ScanService(db, event_bus, cache, lock_client)


def get_lifecycle_service(
    db: AsyncSession = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
    cache: LeaderboardCache = Depends(get_leaderboard_cache),
    presence: PresenceTracker = Depends(get_presence_tracker),
) -> GameLifecycleService:
    return GameLifecycleService(db, event_bus, cache, presence)


async def require_admin(x_admin_code: str | None = Header(default=None, alias="X-Admin-Code")) -> None:
    """Guard admin endpoints with the configured admin code."""
    if not x_admin_code:
        raise HTTPException(status_code=401, detail="missing_admin_code")
    if x_admin_code != get_settings().admin_code:
        logger.warning("Rejected admin request with invalid admin code")
        raise HTTPException(status_code=403, detail="invalid_admin_code")


def _mask_identifier(identifier: str) -> str:
    """Mask a sensitive identifier for logging (e.g., team_id, token)."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


def read_session_token(request: Request, authorization: str | None) -> tuple[str | None, str]:
    """Return the session token and where it came from.

    Checks for the token in the following order:
    1. HTTP-only cookie set on join
    2. ``Authorization: Bearer`` header
    """
    token = request.cookies.get(settings.team_session_cookie_name)
    if token:
        return token, "cookie"

    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail="invalid_authorization_header")
        return token, "header"

    return None, "none"


async def get_current_team(
        request: Request,
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> Team:
    """Resolve the team behind the session token and extend its session."""
    token, token_source = read_session_token(request, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="authentication_required")

    team = await TeamSessionService(db).validate_session(token)
    if team is None:
        logger.info(f"Rejected team session from {token_source}: {_mask_identifier(token)}")
        raise HTTPException(status_code=401, detail="invalid_session")
    return team


def ensure_same_team(team: Team, team_id: UUID) -> None:
    """Reject requests that act on a team other than the signed-in one."""
    if team.team_id != team_id:
        logger.warning(f"Team {team.team_id} tried to act as {_mask_identifier(str(team_id))}")
        raise HTTPException(status_code=403, detail="team_mismatch")


def get_client_ip(request: Request) -> str | None:
    """Client IP, proxy-aware."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def to_http_exception(exc: QRHuntException) -> HTTPException:
    """Map a domain error onto an HTTP error whose detail is the stable code."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.code)
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=exc.code)
    if isinstance(exc, GameValidationError):
        return HTTPException(status_code=400, detail={"code": exc.code, "missing": exc.missing, "message": exc.message})
    if isinstance(exc, BusinessRuleError):
        return HTTPException(status_code=400, detail=exc.code)
    return HTTPException(status_code=500, detail=exc.code)


async def run_service_call(db: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
    """Run a service call, retrying transient store errors and translating failures.

    Raises:
        HTTPException: 4xx for domain errors, 503 once retries are exhausted.
    """
    try:
        return await retry_transient(
            operation,
            attempts=settings.transient_retry_attempts,
            backoff_seconds=settings.transient_retry_backoff_seconds,
            on_retry=db.rollback,
        )
    except QRHuntException as exc:
        raise to_http_exception(exc) from exc
    except TimeoutError as exc:
        logger.error(f"Lock wait timed out: {exc}")
        raise HTTPException(status_code=503, detail="busy") from exc
    except DBAPIError as exc:
        if not is_transient_error(exc):
            raise
        logger.error(f"Store unavailable after {settings.transient_retry_attempts} attempts: {exc}")
        raise HTTPException(status_code=503, detail="store_unavailable") from exc
