"""Team sessions: bearer tokens issued on join."""
import hashlib
import logging
import secrets
import uuid
from datetime import datetime, UTC, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.config import get_settings
from qrhunt.models.team import Team
from qrhunt.models.team_session import TeamSession

logger = logging.getLogger(__name__)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class TeamSessionService:
    """Issue, validate and expire team sessions.

    Sessions slide: every successful validation pushes the expiry out by
    another ``team_session_hours``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(hours=self.settings.team_session_hours)

    async def create_session(self, team: Team, now: Optional[datetime] = None) -> tuple[str, TeamSession]:
        """Issue a new session for ``team``. Returns the raw token and the stored row."""
        now = now or datetime.now(UTC)
        raw_token = secrets.token_urlsafe(32)
        session = TeamSession(
            session_id=uuid.uuid4(),
            team_id=team.team_id,
            token_hash=hash_token(raw_token),
            expires_at=now + self.session_lifetime,
            created_at=now,
        )
        self.db.add(session)
        await self.db.commit()
        logger.info(f"Issued session for team {team.name} ({team.team_id})")
        return raw_token, session

    async def _get_session(self, raw_token: str) -> Optional[TeamSession]:
        result = await self.db.execute(
            select(TeamSession).where(TeamSession.token_hash == hash_token(raw_token))
        )
        return result.scalar_one_or_none()

    async def validate_session(self, raw_token: str, now: Optional[datetime] = None) -> Optional[Team]:
        """Return the team behind an active token and extend its session, else None."""
        if not raw_token:
            return None

        now = now or datetime.now(UTC)
        session = await self._get_session(raw_token)
        if session is None or not session.is_active(now):
            return None

        team = await self.db.get(Team, session.team_id)
        if team is None:
            return None

        session.expires_at = now + self.session_lifetime
        await self.db.commit()
        return team

    async def end_session(self, raw_token: str) -> bool:
        """Delete the session behind ``raw_token``. Returns False if there was none."""
        session = await self._get_session(raw_token)
        if session is None:
            return False
        await self.db.delete(session)
        await self.db.commit()
        return True

    async def cleanup_expired_sessions(self, now: Optional[datetime] = None) -> int:
        """Delete every expired session. Returns how many were removed."""
        now = now or datetime.now(UTC)
        result = await self.db.execute(delete(TeamSession).where(TeamSession.expires_at <= now))
        await self.db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info(f"Removed {removed} expired team session(s)")
        return removed
