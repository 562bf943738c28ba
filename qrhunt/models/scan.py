"""Scan log, hint usage, and winner models."""
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Index, UniqueConstraint
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column


class Scan(Base):
    """Append-only record of a team completing a node."""
    __tablename__ = "scans"

    scan_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False)
    team_id = get_uuid_column(ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False)
    node_id = get_uuid_column(ForeignKey("nodes.node_id", ondelete="CASCADE"), nullable=False)
    scanned_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    points_awarded = Column(Integer, nullable=False, default=0)
    client_ip = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    __table_args__ = (
        UniqueConstraint("team_id", "node_id", name="uq_scans_team_node"),
        Index("ix_scans_game_scanned_at", "game_id", "scanned_at"),
    )

    def __repr__(self):
        return f"<Scan(team_id={self.team_id}, node_id={self.node_id}, points={self.points_awarded})>"


class HintUsage(Base):
    """Point deduction charged the first time a team opens a node's hint."""
    __tablename__ = "hint_usages"

    hint_usage_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False)
    team_id = get_uuid_column(ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False)
    node_id = get_uuid_column(ForeignKey("nodes.node_id", ondelete="CASCADE"), nullable=False)
    points_deducted = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("team_id", "node_id", name="uq_hint_usages_team_node"),
        Index("ix_hint_usages_game_id", "game_id"),
    )

    def __repr__(self):
        return f"<HintUsage(team_id={self.team_id}, node_id={self.node_id}, points={self.points_deducted})>"


class GameWinner(Base):
    """The first team to finish a game. The primary key allows one per game."""
    __tablename__ = "game_winners"

    game_id = get_uuid_column(ForeignKey("games.game_id", ondelete="CASCADE"), primary_key=True)
    team_id = get_uuid_column(ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False)
    scan_id = get_uuid_column(ForeignKey("scans.scan_id", ondelete="CASCADE"), nullable=False)
    won_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def __repr__(self):
        return f"<GameWinner(game_id={self.game_id}, team_id={self.team_id})>"
