"""Team session model."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column


class TeamSession(Base):
    """Bearer session issued when a team joins a game.

    Only the SHA-256 digest of the token is stored.
    """
    __tablename__ = "team_sessions"

    session_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    team_id = get_uuid_column(
        ForeignKey("teams.team_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def is_active(self, now: datetime | None = None) -> bool:
        """Return True if the session has not expired."""
        current_time = now or datetime.now(UTC)
        expires_at = self.expires_at
        # SQLite hands back naive datetimes
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        if current_time.tzinfo is None:
            current_time = current_time.replace(tzinfo=UTC)
        return expires_at > current_time

    def __repr__(self):
        return f"<TeamSession(session_id={self.session_id}, team_id={self.team_id})>"
