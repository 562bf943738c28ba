"""Team model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column


class Team(Base):
    """A team with its own progress trajectory through a game's graph."""
    __tablename__ = "teams"

    team_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(
        ForeignKey("games.game_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    logo_url = Column(String(500), nullable=True)
    start_node_id = get_uuid_column(ForeignKey("nodes.node_id", ondelete="SET NULL"), nullable=True)

    # Set once, on the team's first end-node scan; cleared by a game reset
    finished_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("game_id", "code", name="uq_teams_game_code"),
    )

    game = relationship("Game", back_populates="teams")

    def __repr__(self):
        return f"<Team(team_id={self.team_id}, name={self.name}, game_id={self.game_id})>"
