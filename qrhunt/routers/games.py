"""Public game endpoints: join, leaderboard, presence, chat and the live stream."""
import asyncio
import logging
from datetime import datetime, UTC
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.database import AsyncSessionLocal, get_db
from qrhunt.dependencies import (
    ensure_same_team,
    get_current_team,
    get_event_bus,
    get_leaderboard_cache,
    get_lifecycle_service,
    get_presence_tracker,
    run_service_call,
)
from qrhunt.models.team import Team
from qrhunt.schemas.events import HeartbeatRequest, HeartbeatResponse
from qrhunt.schemas.feedback import GameFeedbackSummary
from qrhunt.schemas.game import (
    ChatMessageSchema,
    ChatMessagesResponse,
    GameSummary,
    JoinGameRequest,
    JoinGameResponse,
    SendChatMessageRequest,
    TeamSummary,
)
from qrhunt.schemas.leaderboard import LeaderboardResponse
from qrhunt.services.chat_service import ChatService
from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.feedback_service import FeedbackService
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.leaderboard_service import LeaderboardService
from qrhunt.services.lifecycle_service import GameLifecycleService
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.services.team_service import TeamService
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.cookies import set_team_session_cookie
from qrhunt.utils.datetime_helpers import isoformat_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games")


async def _require_game(db: AsyncSession, slug: str):
    game = await GraphStore(db).get_game_by_slug(slug)
    if game is None:
        raise HTTPException(status_code=404, detail="game_not_found")
    return game


async def _require_team_in_game(db: AsyncSession, game, team_id: UUID) -> Team:
    team = await GraphStore(db).get_team(team_id)
    if team is None or team.game_id != game.game_id:
        raise HTTPException(status_code=404, detail="team_not_found")
    return team


@router.post("/{slug}/join", response_model=JoinGameResponse)
async def join_game(
    slug: str,
    join_request: JoinGameRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
):
    """Join a game with a team code and open a team session.

    The session token is returned in the body and set as an HTTP-only cookie.
    """
    team_service = TeamService(db, event_bus)
    result = await run_service_call(db, lambda: team_service.join_game(slug, join_request.team_code))
    set_team_session_cookie(response, result.session_token)
    return JoinGameResponse(
        team=TeamSummary.model_validate(result.team),
        game=GameSummary.model_validate(result.game),
        token=result.session_token,
        expires_at=result.expires_at,
    )


@router.get("/{slug}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    slug: str,
    db: AsyncSession = Depends(get_db),
    cache: LeaderboardCache = Depends(get_leaderboard_cache),
):
    leaderboard_service = LeaderboardService(db, cache)
    return await run_service_call(db, lambda: leaderboard_service.get_leaderboard(slug))


@router.get("/{slug}/feedback", response_model=GameFeedbackSummary)
async def get_game_feedback(
    slug: str,
    db: AsyncSession = Depends(get_db),
):
    """Public rating summary for a game."""
    game = await _require_game(db, slug)
    return await FeedbackService(db).summarize_game_feedback(game.game_id)


@router.post("/{slug}/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(
    slug: str,
    heartbeat_request: HeartbeatRequest,
    db: AsyncSession = Depends(get_db),
    presence: PresenceTracker = Depends(get_presence_tracker),
    lifecycle: GameLifecycleService = Depends(get_lifecycle_service),
):
    """Mark a team as connected and start the game if everyone is here.

    Only registered teams of the game are tracked, under their stored name.
    """
    game = await _require_game(db, slug)
    team = await _require_team_in_game(db, game, heartbeat_request.team_id)
    presence.heartbeat(slug, str(team.team_id), team.name)
    await run_service_call(db, lambda: lifecycle.check_auto_start(slug))
    return HeartbeatResponse()


@router.get("/{slug}/teams/{team_id}/messages", response_model=ChatMessagesResponse)
async def list_team_messages(
    slug: str,
    team_id: UUID,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
):
    ensure_same_team(team, team_id)
    game = await _require_game(db, slug)
    await _require_team_in_game(db, game, team_id)
    messages = await ChatService(db).list_for_team(game.game_id, team_id)
    return ChatMessagesResponse(messages=[ChatMessageSchema.model_validate(m) for m in messages])


@router.post("/{slug}/messages", response_model=ChatMessageSchema, status_code=201)
async def send_team_message(
    slug: str,
    message_request: SendChatMessageRequest,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
):
    if message_request.team_id is not None:
        ensure_same_team(team, message_request.team_id)
    game = await _require_game(db, slug)
    team_id = team.team_id
    await _require_team_in_game(db, game, team_id)

    chat_service = ChatService(db, event_bus)
    message = await run_service_call(
        db, lambda: chat_service.post_team_message(team_id, message_request.message)
    )
    return ChatMessageSchema.model_validate(message)


@router.websocket("/{slug}/live")
async def live_updates(websocket: WebSocket, slug: str):
    """Stream every channel of a game as ``{channel, payload, publishedAt}`` frames.

    The first frame is the current leaderboard. The subscription is dropped
    as soon as the client disconnects.
    """
    event_bus: EventBus = websocket.app.state.event_bus
    cache: LeaderboardCache = websocket.app.state.leaderboard_cache

    async with AsyncSessionLocal() as db:
        game = await GraphStore(db).get_game_by_slug(slug)
        if game is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Game not found")
            logger.info(f"Live connection rejected: unknown game {slug}")
            return

        await websocket.accept()
        async with event_bus.subscribe(slug) as subscription:
            snapshot = await LeaderboardService(db, cache).get_leaderboard(slug)
            await db.close()
            await websocket.send_json({
                "channel": EventChannel.LEADERBOARD.value,
                "payload": snapshot,
                "publishedAt": isoformat_utc(datetime.now(UTC)),
            })
            logger.info(
                f"Live viewer connected to {slug} (subscribers={event_bus.subscriber_count(slug)})"
            )

            async def _forward_events():
                async for event in subscription:
                    await websocket.send_json(event.to_message())

            forward_task = asyncio.create_task(_forward_events())
            try:
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                pass
            except Exception as e:
                logger.error(f"Live connection error for {slug}: {e}")
            finally:
                forward_task.cancel()
                try:
                    await forward_task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.debug(f"Forwarding to closed live connection failed: {e}")

    logger.info(f"Live viewer disconnected from {slug}")
