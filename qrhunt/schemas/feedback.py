"""Team feedback schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from qrhunt.schemas.base import BaseSchema


class SubmitFeedbackRequest(BaseSchema):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


class FeedbackSchema(BaseSchema):
    feedback_id: UUID
    game_id: UUID
    team_id: UUID
    team_name: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TeamFeedbackResponse(BaseSchema):
    feedback: Optional[FeedbackSchema] = None


class GameFeedbackSummary(BaseSchema):
    feedback: list[FeedbackSchema]
    average_rating: Optional[float] = None
    count: int
