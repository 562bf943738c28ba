"""Team feedback endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.database import get_db
from qrhunt.dependencies import get_current_team, run_service_call
from qrhunt.models.team import Team
from qrhunt.schemas.feedback import FeedbackSchema, SubmitFeedbackRequest, TeamFeedbackResponse
from qrhunt.services.feedback_service import FeedbackService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackSchema)
async def submit_feedback(
    feedback_request: SubmitFeedbackRequest,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
):
    """Rate the signed-in team's game; resubmitting overwrites the earlier rating."""
    feedback_service = FeedbackService(db)
    team_id = team.team_id
    feedback = await run_service_call(
        db,
        lambda: feedback_service.submit_feedback(team_id, feedback_request.rating, feedback_request.comment),
    )
    return FeedbackSchema.model_validate(feedback)


@router.get("", response_model=TeamFeedbackResponse)
async def get_my_feedback(
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
):
    feedback = await FeedbackService(db).get_team_feedback(team)
    return TeamFeedbackResponse(feedback=FeedbackSchema.model_validate(feedback) if feedback else None)
