"""Schemas for lifecycle, team join, and chat endpoints."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from qrhunt.schemas.base import BaseSchema


class GameSummary(BaseSchema):
    game_id: UUID
    name: str
    slug: str
    status: str
    ranking_mode: str
    logo_url: Optional[str] = None


class JoinGameRequest(BaseSchema):
    team_code: str = Field(min_length=1, max_length=20)


class TeamSummary(BaseSchema):
    team_id: UUID
    name: str
    code: str
    logo_url: Optional[str] = None
    start_node_id: Optional[UUID] = None


class JoinGameResponse(BaseSchema):
    success: bool = True
    team: TeamSummary
    game: GameSummary
    token: str
    expires_at: datetime


class CurrentTeamResponse(BaseSchema):
    team: TeamSummary
    game_id: UUID


class ChatMessageSchema(BaseSchema):
    message_id: UUID
    sender_type: str
    sender_id: Optional[UUID] = None
    sender_name: str
    recipient_type: str
    recipient_id: Optional[UUID] = None
    message: str
    created_at: datetime


class SendChatMessageRequest(BaseSchema):
    team_id: Optional[UUID] = None  # Defaults to the signed-in team
    message: str = Field(min_length=1, max_length=1000)


class ChatMessagesResponse(BaseSchema):
    messages: list[ChatMessageSchema]


class AdminChatMessageRequest(BaseSchema):
    message: str = Field(min_length=1, max_length=1000)
    sender_name: str = Field(default="Admin", min_length=1, max_length=100)
    recipient_team_id: Optional[UUID] = None


class CreateTeamRequest(BaseSchema):
    name: str = Field(min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    start_node_id: Optional[UUID] = None
    logo_url: Optional[str] = Field(default=None, max_length=500)


class GameStatusResponse(BaseSchema):
    game_id: UUID
    slug: str
    status: str
