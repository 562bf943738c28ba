"""Game model."""
from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column, GameStatus, RankingMode


class Game(Base):
    """A hunt: its lifecycle status plus the scoring and ranking settings."""
    __tablename__ = "games"

    game_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default=GameStatus.DRAFT.value)
    logo_url = Column(String(500), nullable=True)

    # Scoring and ranking settings
    ranking_mode = Column(String(20), nullable=False, default=RankingMode.POINTS.value)
    base_points = Column(Integer, nullable=False, default=100)
    time_bonus_enabled = Column(Boolean, nullable=False, default=False)
    time_bonus_multiplier = Column(Float, nullable=False, default=1.5)
    time_bonus_window_minutes = Column(Integer, nullable=False, default=5)
    random_mode = Column(Boolean, nullable=False, default=False)

    # Auto start once enough teams are connected
    auto_start_enabled = Column(Boolean, nullable=False, default=False)
    expected_team_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    nodes = relationship("Node", back_populates="game", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="game", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Game(game_id={self.game_id}, slug={self.slug}, status={self.status})>"
