"""Leaderboard response schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from qrhunt.schemas.base import BaseSchema


class LeaderboardGame(BaseSchema):
    id: UUID
    name: str
    slug: str
    status: str
    logo_url: Optional[str] = None


class LeaderboardRow(BaseSchema):
    rank: int
    team_name: str
    team_logo_url: Optional[str] = None
    nodes_found: int
    total_points: int
    is_finished: bool
    current_clue: Optional[str] = None


class LeaderboardResponse(BaseSchema):
    game: LeaderboardGame
    leaderboard: list[LeaderboardRow]
    updated_at: datetime
