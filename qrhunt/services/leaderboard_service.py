"""Leaderboard assembly, caching and publication."""
import logging
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.models.game import Game
from qrhunt.schemas.leaderboard import LeaderboardGame, LeaderboardResponse, LeaderboardRow
from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.leaderboard_ranker import rank
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.exceptions import GameNotFoundError

logger = logging.getLogger(__name__)


class LeaderboardService:
    """Build the per-game leaderboard payload and keep viewers in sync."""

    def __init__(self, db: AsyncSession, cache: LeaderboardCache, event_bus: Optional[EventBus] = None):
        self.db = db
        self.cache = cache
        self.event_bus = event_bus
        self.store = GraphStore(db)

    async def build_payload(self, game: Game) -> dict:
        """Rank the game's teams and return the wire payload."""
        snapshots = await self.store.get_team_snapshots(game)
        entries = rank(snapshots, game.ranking_mode)

        response = LeaderboardResponse(
            game=LeaderboardGame(
                id=game.game_id,
                name=game.name,
                slug=game.slug,
                status=game.status,
                logo_url=game.logo_url,
            ),
            leaderboard=[
                LeaderboardRow(
                    rank=entry.rank,
                    team_name=entry.team_name,
                    team_logo_url=entry.team_logo_url,
                    nodes_found=entry.nodes_found,
                    total_points=entry.total_points,
                    is_finished=entry.is_finished,
                    current_clue=entry.current_clue,
                )
                for entry in entries
            ],
            updated_at=datetime.now(UTC),
        )
        return response.to_payload()

    async def get_leaderboard(self, slug: str) -> dict:
        """Serve the leaderboard through the TTL cache.

        Raises:
            GameNotFoundError: If no game has this slug.
        """

        async def _compute() -> Optional[dict]:
            game = await self.store.get_game_by_slug(slug)
            if game is None:
                return None
            logger.debug(f"Leaderboard cache miss for {slug=}, recomputing")
            return await self.build_payload(game)

        payload = await self.cache.get_or_compute(slug, _compute)
        if payload is None:
            raise GameNotFoundError()
        return payload

    async def refresh_and_publish(self, game: Game) -> dict:
        """Invalidate, rebuild, re-cache and publish the leaderboard for ``game``."""
        self.cache.invalidate(game.slug)
        payload = await self.build_payload(game)
        self.cache.set(game.slug, payload)
        if self.event_bus is not None:
            self.event_bus.publish(game.slug, EventChannel.LEADERBOARD, payload)
        return payload
