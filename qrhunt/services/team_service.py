"""Team registration and joining."""
import logging
import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.config import get_settings
from qrhunt.models.base import GameStatus
from qrhunt.models.game import Game
from qrhunt.models.team import Team
from qrhunt.schemas.events import TeamJoinedPayload
from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.session_service import TeamSessionService
from qrhunt.utils.exceptions import (
    DuplicateTeamCodeError,
    GameNotFoundError,
    GameNotJoinableError,
    InvalidTeamCodeError,
    NodeNotFoundError,
    NodeNotInTeamGameError,
    TeamCodeGenerationError,
)

logger = logging.getLogger(__name__)

JOINABLE_STATUSES = (GameStatus.PENDING.value, GameStatus.ACTIVE.value)


@dataclass
class JoinResult:
    team: Team
    game: Game
    session_token: str
    expires_at: datetime


class TeamService:
    """Create teams and let them join a game by code."""

    def __init__(self, db: AsyncSession, event_bus: Optional[EventBus] = None):
        self.db = db
        self.event_bus = event_bus
        self.store = GraphStore(db)
        self.settings = get_settings()

    async def create_team(
        self,
        game_id: UUID,
        name: str,
        code: Optional[str] = None,
        start_node_id: Optional[UUID] = None,
        logo_url: Optional[str] = None,
    ) -> Team:
        """Register a team, generating its join code and start node if not given.

        Teams are spread across start nodes: a new team gets the start node
        with the fewest teams so far.

        Raises:
            GameNotFoundError: If the game does not exist.
            NodeNotFoundError: If ``start_node_id`` does not exist.
            NodeNotInTeamGameError: If ``start_node_id`` belongs to another game.
            DuplicateTeamCodeError: If ``code`` is already used in the game.
        """
        game = await self.store.get_game(game_id)
        if not game:
            raise GameNotFoundError()

        if start_node_id is not None:
            node = await self.store.get_node(start_node_id)
            if node is None:
                raise NodeNotFoundError()
            if node.game_id != game_id:
                raise NodeNotInTeamGameError()
        else:
            start_node_id = await self._find_least_used_start_node(game)

        code = code.strip().upper() if code else await self._generate_unique_team_code(game_id)

        team = Team(
            team_id=uuid.uuid4(),
            game_id=game_id,
            code=code,
            name=name,
            logo_url=logo_url,
            start_node_id=start_node_id,
            created_at=datetime.now(UTC),
        )
        self.db.add(team)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateTeamCodeError() from exc

        await self.db.refresh(team)
        logger.info(f"Created team {name} ({code}) in game {game.slug}")
        return team

    async def _find_least_used_start_node(self, game: Game) -> Optional[UUID]:
        start_nodes = [
            node for node in await self.store.list_nodes(game.game_id, activated_only=True) if node.is_start
        ]
        if not start_nodes:
            return None

        usage = Counter(team.start_node_id for team in await self.store.list_teams(game.game_id))
        # min() keeps the first node on ties, so assignment is round-robin in node order
        least_used = min(start_nodes, key=lambda node: usage.get(node.node_id, 0))
        return least_used.node_id

    async def _generate_unique_team_code(self, game_id: UUID, max_attempts: int = 5) -> str:
        """Generate a join code unique within the game.

        Raises:
            TeamCodeGenerationError: If every attempt collided.
        """
        charset = self.settings.team_code_charset
        length = self.settings.team_code_length

        for _ in range(max_attempts):
            code = "".join(random.choices(charset, k=length))
            if await self.store.get_team_by_code(game_id, code) is None:
                return code

        raise TeamCodeGenerationError()

    async def join_game(self, slug: str, team_code: str) -> JoinResult:
        """Resolve a team by its code, open a session for it and announce it on ``team-joined``.

        Raises:
            GameNotFoundError, GameNotJoinableError, InvalidTeamCodeError
        """
        game = await self.store.get_game_by_slug(slug)
        if not game:
            raise GameNotFoundError()
        if game.status not in JOINABLE_STATUSES:
            raise GameNotJoinableError()

        team = await self.store.get_team_by_code(game.game_id, team_code.strip().upper())
        if not team:
            logger.info(f"Rejected join to {slug} with unknown team code")
            raise InvalidTeamCodeError()

        token, session = await TeamSessionService(self.db).create_session(team)
        logger.info(f"Team {team.name} joined {slug}")
        if self.event_bus is not None:
            payload = TeamJoinedPayload(
                id=team.team_id,
                name=team.name,
                logo_url=team.logo_url,
                joined_at=datetime.now(UTC),
            )
            self.event_bus.publish(slug, EventChannel.TEAM_JOINED, payload.to_payload())
        return JoinResult(team=team, game=game, session_token=token, expires_at=session.expires_at)
