"""Payload schemas for live event channels and heartbeats."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from qrhunt.schemas.base import BaseSchema


class ScanEventPayload(BaseSchema):
    team_name: str
    node_name: str
    points: int
    timestamp: datetime


class GameStatusPayload(BaseSchema):
    status: str
    timestamp: datetime


class TeamJoinedPayload(BaseSchema):
    id: UUID
    name: str
    logo_url: Optional[str] = None
    joined_at: datetime


class TeamConnectionPayload(BaseSchema):
    team_id: str
    team_name: str
    is_connected: bool
    timestamp: datetime


class HeartbeatRequest(BaseSchema):
    team_id: UUID
    team_name: Optional[str] = None  # Ignored; the registered name is used


class HeartbeatResponse(BaseSchema):
    ok: bool = True
