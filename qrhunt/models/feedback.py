"""Team feedback model."""
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Index, UniqueConstraint
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column


class TeamFeedback(Base):
    """A team's rating of a game; one row per team, overwritten on resubmit."""
    __tablename__ = "team_feedback"

    feedback_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False)
    team_id = get_uuid_column(ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False)
    team_name = Column(String(100), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("game_id", "team_id", name="uq_team_feedback_game_team"),
        Index("ix_team_feedback_game_id", "game_id"),
    )

    def __repr__(self):
        return f"<TeamFeedback(team_id={self.team_id}, rating={self.rating})>"
