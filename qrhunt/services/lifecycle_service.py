"""Game lifecycle state machine: draft -> pending -> active -> completed."""
import logging
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.models.base import GameStatus
from qrhunt.models.game import Game
from qrhunt.schemas.events import GameStatusPayload
from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.leaderboard_service import LeaderboardService
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.exceptions import (
    GameNotFoundError,
    GameValidationError,
    InvalidTransitionError,
    QRHuntException,
)

logger = logging.getLogger(__name__)


class GameLifecycleService:
    """Move games between lifecycle states and announce the change.

    Only ``active`` games accept scans. ``reset_game`` is the side lane back
    to ``draft`` from any state and wipes the game's progress.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        cache: LeaderboardCache,
        presence: Optional[PresenceTracker] = None,
    ):
        self.db = db
        self.event_bus = event_bus
        self.cache = cache
        self.presence = presence
        self.store = GraphStore(db)
        self.leaderboard = LeaderboardService(db, cache, event_bus)

    async def _get_game(self, game_id: UUID) -> Game:
        game = await self.store.get_game(game_id)
        if not game:
            raise GameNotFoundError()
        await self.db.refresh(game)
        return game

    async def _missing_preconditions(self, game: Game, require_activated: bool) -> list[str]:
        counts = await self.store.count_node_flags(game.game_id)
        missing = []
        if counts["total"] == 0:
            missing.append("no_nodes")
        if counts["start"] == 0:
            missing.append("no_start_node")
        if counts["end"] == 0:
            missing.append("no_end_node")
        if require_activated and counts["activated"] == 0:
            missing.append("no_activated_node")
        return missing

    async def open_game(self, game_id: UUID) -> Game:
        """Open a draft game for team registration.

        Raises:
            GameNotFoundError, InvalidTransitionError, GameValidationError
        """
        game = await self._get_game(game_id)
        if game.status != GameStatus.DRAFT.value:
            raise InvalidTransitionError(game.status, GameStatus.PENDING.value)

        missing = await self._missing_preconditions(game, require_activated=False)
        if missing:
            raise GameValidationError(missing)

        return await self._transition(game, GameStatus.PENDING)

    async def activate_game(self, game_id: UUID) -> Game:
        """Start a draft or pending game so teams can scan.

        Raises:
            GameNotFoundError, InvalidTransitionError, GameValidationError
        """
        game = await self._get_game(game_id)
        if game.status not in (GameStatus.DRAFT.value, GameStatus.PENDING.value):
            raise InvalidTransitionError(game.status, GameStatus.ACTIVE.value)

        missing = await self._missing_preconditions(game, require_activated=True)
        if missing:
            raise GameValidationError(missing)

        return await self._transition(game, GameStatus.ACTIVE)

    async def complete_game(self, game_id: UUID) -> Game:
        game = await self._get_game(game_id)
        if game.status != GameStatus.ACTIVE.value:
            raise InvalidTransitionError(game.status, GameStatus.COMPLETED.value)
        game = await self._transition(game, GameStatus.COMPLETED)
        self._forget_presence(game)
        return game

    async def reset_game(self, game_id: UUID) -> Game:
        """Return a game to draft and delete its scans, hints and winner."""
        game = await self._get_game(game_id)
        await self.store.clear_progress(game.game_id)
        game = await self._transition(game, GameStatus.DRAFT)
        self._forget_presence(game)
        return game

    def _forget_presence(self, game: Game) -> None:
        if self.presence is not None:
            self.presence.forget_game(game.slug)

    async def _transition(self, game: Game, target: GameStatus) -> Game:
        previous = game.status
        game.status = target.value
        game.updated_at = datetime.now(UTC)
        await self.db.commit()
        await self.db.refresh(game)

        logger.info(f"Game {game.slug} moved from {previous} to {target.value}")

        self.cache.invalidate(game.slug)
        payload = GameStatusPayload(status=target.value, timestamp=game.updated_at)
        self.event_bus.publish(game.slug, EventChannel.GAME_STATUS, payload.to_payload())
        try:
            await self.leaderboard.refresh_and_publish(game)
        except Exception as exc:
            logger.error(f"Failed to publish leaderboard for {game.slug}: {exc}", exc_info=True)
        return game

    async def check_auto_start(self, slug: str) -> bool:
        """Activate a pending game once every expected team is connected.

        Returns True if the game was started by this call.
        """
        game = await self.store.get_game_by_slug(slug)
        if game is None:
            return False
        await self.db.refresh(game)
        if game.status != GameStatus.PENDING.value or not game.auto_start_enabled:
            return False

        expected = game.expected_team_count
        if expected <= 0:
            return False

        registered = {str(team.team_id) for team in await self.store.list_teams(game.game_id)}
        if len(registered) < expected:
            return False

        # Heartbeats from ids that are not teams of this game never count
        connected_ids = self.presence.connected_team_ids(slug) if self.presence else set()
        connected = len(registered & connected_ids)
        if connected < expected:
            return False

        try:
            await self.activate_game(game.game_id)
        except QRHuntException as exc:
            logger.error(f"Failed to auto-start game {slug}: {exc}")
            return False

        logger.info(f"Auto-started game {slug}: all {expected} teams connected")
        return True
