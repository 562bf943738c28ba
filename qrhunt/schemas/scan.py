"""Schemas for scans, hints, and team progress."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from qrhunt.schemas.base import BaseSchema


class NodeSummary(BaseSchema):
    """Client-safe view of a node. Never carries the password hash."""

    node_id: UUID
    node_key: str
    title: str
    content: Optional[str] = None
    is_start: bool
    is_end: bool
    points: int
    password_required: bool
    has_hint: bool = False

    @classmethod
    def from_node(cls, node) -> "NodeSummary":
        return cls(
            node_id=node.node_id,
            node_key=node.node_key,
            title=node.title,
            content=node.content,
            is_start=node.is_start,
            is_end=node.is_end,
            points=node.points,
            password_required=node.password_hash is not None,
            has_hint=bool(node.hint),
        )


class ScanRequest(BaseSchema):
    team_id: UUID
    node_key: str = Field(min_length=1, max_length=100)
    password: Optional[str] = Field(default=None, max_length=200)


class ScanResult(BaseSchema):
    """Outcome of a scan. Rule violations are reported here, not raised."""

    success: bool
    message: str
    error_code: Optional[str] = None
    node: Optional[NodeSummary] = None
    password_required: bool = False
    is_game_complete: bool = False
    is_winner: bool = False
    points_awarded: Optional[int] = None
    next_nodes: list[NodeSummary] = []


class HintResult(BaseSchema):
    hint: str
    points_deducted: int
    already_used: bool


class WinnerStatus(BaseSchema):
    is_winner: bool
    winner_team_id: Optional[UUID] = None


class ScanRecord(BaseSchema):
    node_id: UUID
    node_title: str
    points_awarded: int
    scanned_at: datetime
    is_end: bool


class TeamProgress(BaseSchema):
    team_id: UUID
    team_name: str
    nodes_found: int
    total_nodes: int
    total_points: int
    is_finished: bool
    is_winner: bool
    current_node: Optional[NodeSummary] = None
    next_clue: Optional[NodeSummary] = None
    next_nodes: list[NodeSummary] = []
    scans: list[ScanRecord] = []
