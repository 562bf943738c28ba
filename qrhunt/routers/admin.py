"""Admin routes: game lifecycle, team registration, organiser chat, feedback and analytics."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.database import get_db
from qrhunt.dependencies import get_event_bus, get_lifecycle_service, require_admin, run_service_call
from qrhunt.schemas.analytics import GameAnalytics
from qrhunt.schemas.feedback import GameFeedbackSummary
from qrhunt.schemas.game import (
    AdminChatMessageRequest,
    ChatMessageSchema,
    ChatMessagesResponse,
    CreateTeamRequest,
    GameStatusResponse,
    TeamSummary,
)
from qrhunt.services.analytics_service import GameAnalyticsService
from qrhunt.services.chat_service import ChatService
from qrhunt.services.event_bus import EventBus
from qrhunt.services.feedback_service import FeedbackService
from qrhunt.services.lifecycle_service import GameLifecycleService
from qrhunt.services.team_service import TeamService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _status_response(game) -> GameStatusResponse:
    return GameStatusResponse(game_id=game.game_id, slug=game.slug, status=game.status)


@router.post("/games/{game_id}/open", response_model=GameStatusResponse)
async def open_game(
    game_id: UUID,
    db: AsyncSession = Depends(get_db),
    lifecycle: GameLifecycleService = Depends(get_lifecycle_service),
):
    """Open a draft game for team registration."""
    game = await run_service_call(db, lambda: lifecycle.open_game(game_id))
    return _status_response(game)


@router.post("/games/{game_id}/activate", response_model=GameStatusResponse)
async def activate_game(
    game_id: UUID,
    db: AsyncSession = Depends(get_db),
    lifecycle: GameLifecycleService = Depends(get_lifecycle_service),
):
    game = await run_service_call(db, lambda: lifecycle.activate_game(game_id))
    return _status_response(game)


@router.post("/games/{game_id}/complete", response_model=GameStatusResponse)
async def complete_game(
    game_id: UUID,
    db: AsyncSession = Depends(get_db),
    lifecycle: GameLifecycleService = Depends(get_lifecycle_service),
):
    game = await run_service_call(db, lambda: lifecycle.complete_game(game_id))
    return _status_response(game)


@router.post("/games/{game_id}/reset", response_model=GameStatusResponse)
async def reset_game(
    game_id: UUID,
    db: AsyncSession = Depends(get_db),
    lifecycle: GameLifecycleService = Depends(get_lifecycle_service),
):
    """Put the game back in draft and delete all of its progress."""
    game = await run_service_call(db, lambda: lifecycle.reset_game(game_id))
    return _status_response(game)


@router.post("/games/{game_id}/teams", response_model=TeamSummary, status_code=201)
async def create_team(
    game_id: UUID,
    team_request: CreateTeamRequest,
    db: AsyncSession = Depends(get_db),
):
    team_service = TeamService(db)
    team = await run_service_call(
        db,
        lambda: team_service.create_team(
            game_id,
            name=team_request.name,
            code=team_request.code,
            start_node_id=team_request.start_node_id,
            logo_url=team_request.logo_url,
        ),
    )
    return TeamSummary.model_validate(team)


@router.get("/games/{game_id}/messages", response_model=ChatMessagesResponse)
async def list_game_messages(game_id: UUID, db: AsyncSession = Depends(get_db)):
    messages = await ChatService(db).list_for_game(game_id)
    return ChatMessagesResponse(messages=[ChatMessageSchema.model_validate(m) for m in messages])


@router.post("/games/{game_id}/messages", response_model=ChatMessageSchema, status_code=201)
async def send_admin_message(
    game_id: UUID,
    message_request: AdminChatMessageRequest,
    db: AsyncSession = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
):
    """Broadcast to every team, or address one team with ``recipientTeamId``."""
    chat_service = ChatService(db, event_bus)
    recipient_id = message_request.recipient_team_id
    message = await run_service_call(
        db,
        lambda: chat_service.post_message(
            game_id=game_id,
            sender_type="admin",
            sender_name=message_request.sender_name,
            message=message_request.message,
            recipient_type="team" if recipient_id else "all",
            recipient_id=recipient_id,
        ),
    )
    return ChatMessageSchema.model_validate(message)


@router.get("/games/{game_id}/feedback", response_model=GameFeedbackSummary)
async def list_game_feedback(game_id: UUID, db: AsyncSession = Depends(get_db)):
    return await FeedbackService(db).summarize_game_feedback(game_id)


@router.delete("/feedback/{feedback_id}", status_code=204)
async def delete_feedback(feedback_id: UUID, db: AsyncSession = Depends(get_db)) -> None:
    feedback_service = FeedbackService(db)
    await run_service_call(db, lambda: feedback_service.delete_feedback(feedback_id))


@router.get("/games/{game_id}/analytics", response_model=GameAnalytics)
async def get_game_analytics(game_id: UUID, db: AsyncSession = Depends(get_db)):
    """Split times per team, per-node statistics and the slowest nodes."""
    analytics_service = GameAnalyticsService(db)
    return await run_service_call(db, lambda: analytics_service.get_game_analytics(game_id))
