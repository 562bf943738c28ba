"""Post-game analytics schemas. Durations are milliseconds."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from qrhunt.schemas.base import BaseSchema


class NodeTiming(BaseSchema):
    node_id: UUID
    node_title: str
    time_spent_ms: int
    timestamp: datetime


class TeamAnalytics(BaseSchema):
    team_id: UUID
    team_name: str
    team_logo_url: Optional[str] = None
    total_time: int
    node_timings: list[NodeTiming]
    is_finished: bool
    rank: int


class NodeStats(BaseSchema):
    node_id: UUID
    node_title: str
    average_time_ms: int
    min_time_ms: int
    max_time_ms: int
    completion_count: int


class Bottleneck(BaseSchema):
    node_id: UUID
    node_title: str
    average_time_ms: int


class GameAnalytics(BaseSchema):
    teams: list[TeamAnalytics]
    node_stats: list[NodeStats]
    bottlenecks: list[Bottleneck]
