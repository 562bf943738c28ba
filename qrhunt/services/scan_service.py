"""Scan validation and recording, winner detection, hints and team progress."""
import logging
import random
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.config import get_settings
from qrhunt.models.base import GameStatus
from qrhunt.models.game import Game
from qrhunt.models.node import Node
from qrhunt.models.scan import GameWinner, HintUsage, Scan
from qrhunt.models.team import Team
from qrhunt.schemas.events import ScanEventPayload
from qrhunt.schemas.scan import (
    HintResult,
    NodeSummary,
    ScanRecord,
    ScanResult,
    TeamProgress,
    WinnerStatus,
)
from qrhunt.services import points_calculator
from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.leaderboard_service import LeaderboardService
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.exceptions import (
    AlreadyScannedError,
    GameNotActiveError,
    GameNotFoundError,
    IncorrectPasswordError,
    InvalidCodeError,
    MustStartAtStartNodeError,
    NodeNotFoundError,
    NodeNotInTeamGameError,
    NoHintAvailableError,
    PasswordRequiredError,
    ScanRuleViolation,
    TeamNotFoundError,
)
from qrhunt.utils.lock_client import LockClient
from qrhunt.utils.passwords import verify_password

logger = logging.getLogger(__name__)


def team_lock_name(team_id: UUID) -> str:
    return f"team:{team_id}"


def winner_lock_name(game_id: UUID) -> str:
    return f"winner:{game_id}"


class ScanService:
    """Service for recording scans and reading team progress.

    Scans and hint requests of one team run inside that team's lock so the
    duplicate checks and the writes are atomic. The unique constraints on
    ``scans`` and ``hint_usages`` back this up.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        cache: LeaderboardCache,
        lock_client: LockClient,
    ):
        self.db = db
        self.event_bus = event_bus
        self.cache = cache
        self.lock_client = lock_client
        self.store = GraphStore(db)
        self.leaderboard = LeaderboardService(db, cache, event_bus)
        self.settings = get_settings()

    async def _get_team(self, team_id: UUID) -> Team:
        team = await self.store.get_team(team_id)
        if not team:
            raise TeamNotFoundError()
        return team

    async def _get_game(self, game_id: UUID) -> Game:
        game = await self.store.get_game(game_id)
        if not game:
            raise GameNotFoundError()
        return game

    async def record_scan(
        self,
        team_id: UUID,
        node_key: str,
        password: Optional[str] = None,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        scan_id: Optional[UUID] = None,
    ) -> ScanResult:
        """Validate and record a team's scan of ``node_key``.

        Rule violations come back as a failed ``ScanResult``; only an unknown
        team raises. Passing the same ``scan_id`` on a retry replays the stored
        result instead of reporting ``already_scanned``.

        Raises:
            TeamNotFoundError: If the team does not exist.
        """
        team = await self._get_team(team_id)

        async with self.lock_client.lock(team_lock_name(team_id), timeout=self.settings.lock_timeout_seconds):
            try:
                return await self._record_scan_locked(team, node_key, password, client_ip, user_agent, scan_id)
            except ScanRuleViolation as exc:
                logger.info(f"Scan rejected for team {team_id} ({node_key=}): {exc.code}")
                return ScanResult(
                    success=False,
                    message=exc.message,
                    error_code=exc.code,
                    node=exc.node,
                    password_required=isinstance(exc, PasswordRequiredError),
                )

    async def _record_scan_locked(
        self,
        team: Team,
        node_key: str,
        password: Optional[str],
        client_ip: Optional[str],
        user_agent: Optional[str],
        scan_id: Optional[UUID],
    ) -> ScanResult:
        # Status and finish state may have changed while waiting for the lock
        await self.db.refresh(team)
        game = await self._get_game(team.game_id)
        await self.db.refresh(game)
        if game.status != GameStatus.ACTIVE.value:
            raise GameNotActiveError()

        node = await self.store.get_node_by_key(game.game_id, node_key)
        if node is None or not node.activated:
            raise InvalidCodeError()

        previous_scans = await self.store.list_team_scans(team.team_id)
        if not previous_scans:
            if team.start_node_id is not None and node.node_id != team.start_node_id:
                raise MustStartAtStartNodeError("This is not your starting QR code")
            if not node.is_start:
                raise MustStartAtStartNodeError()

        existing = next((scan for scan in previous_scans if scan.node_id == node.node_id), None)
        if existing is not None:
            if scan_id is not None and existing.scan_id == scan_id:
                return await self._replay_scan(game, team, node, existing)
            raise AlreadyScannedError()

        if node.password_required:
            if not password:
                raise PasswordRequiredError(node=NodeSummary.from_node(node).model_copy(update={"content": None}))
            if not verify_password(password, node.password_hash):
                raise IncorrectPasswordError()

        now = datetime.now(UTC)
        last_scan_at = previous_scans[-1].scanned_at if previous_scans else None
        points = points_calculator.calculate_scan_points(node, game, last_scan_at, now=now)

        # Everything the response needs, before commits expire anything
        node_summary = NodeSummary.from_node(node)
        team_id, team_name = team.team_id, team.name
        game_id, game_slug = game.game_id, game.slug
        is_end = node.is_end
        finishes_now = is_end and team.finished_at is None

        scan = Scan(
            scan_id=scan_id or uuid4(),
            game_id=game_id,
            team_id=team_id,
            node_id=node.node_id,
            scanned_at=now,
            points_awarded=points,
            client_ip=client_ip,
            user_agent=user_agent,
        )

        if finishes_now:
            # Lock before writing: no finisher may hold the store write lock while waiting here
            async with self.lock_client.lock(winner_lock_name(game_id), timeout=self.settings.lock_timeout_seconds):
                team.finished_at = now
                is_winner = await self._persist_scan(scan, claim_winner=True)
        else:
            is_winner = await self._persist_scan(scan)

        logger.info(
            f"Team {team_name} scanned {node_summary.title} in {game_slug} for {points} points"
            + (" and finished" if finishes_now else "")
        )
        if is_winner:
            logger.info(f"Team {team_name} won game {game_slug}")

        game = await self._get_game(game_id)
        await self._announce_scan(game, team_name, node_summary.title, points, now)

        remaining = await self._remaining_nodes(game_id, team_id)
        if is_end:
            message = "Congratulations! You reached the finish!"
        else:
            message = f"QR scanned! {len(remaining)} more to find."

        return ScanResult(
            success=True,
            message=message,
            node=node_summary,
            is_game_complete=is_end,
            is_winner=is_winner,
            points_awarded=points,
            next_nodes=[NodeSummary.from_node(n) for n in remaining],
        )

    async def _persist_scan(self, scan: Scan, claim_winner: bool = False) -> bool:
        """Write a scan, and for a finishing scan the winner row, in one commit.

        Returns True if this scan made its team the game's winner.

        Raises:
            AlreadyScannedError: If the unique (team, node) constraint fired.
        """
        self.store.add_scan(scan)
        try:
            await self.db.flush()
            is_winner = await self._claim_winner(scan) if claim_winner else False
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyScannedError() from None
        except Exception:
            await self.db.rollback()
            raise
        return is_winner

    async def _claim_winner(self, scan: Scan) -> bool:
        """Stage ``scan``'s team as winner unless another team already is.

        Must be called while holding the game's winner lock, before the
        finishing scan is committed.
        """
        existing = await self.store.get_winner(scan.game_id)
        if existing is not None:
            logger.info(f"Team {scan.team_id} finished game {scan.game_id}; {existing.team_id} already won")
            return existing.team_id == scan.team_id

        self.db.add(GameWinner(game_id=scan.game_id, team_id=scan.team_id, scan_id=scan.scan_id, won_at=scan.scanned_at))
        await self.db.flush()
        return True

    async def _replay_scan(self, game: Game, team: Team, node: Node, scan: Scan) -> ScanResult:
        """Rebuild the result of a scan whose commit landed before its request failed."""
        logger.info(f"Replaying stored scan {scan.scan_id} for team {team.team_id}")
        winner = await self.store.get_winner(game.game_id)
        self.cache.invalidate(game.slug)
        remaining = await self._remaining_nodes(game.game_id, team.team_id)
        return ScanResult(
            success=True,
            message="Congratulations! You reached the finish!" if node.is_end else f"QR scanned! {len(remaining)} more to find.",
            node=NodeSummary.from_node(node),
            is_game_complete=node.is_end,
            is_winner=winner is not None and winner.team_id == team.team_id,
            points_awarded=scan.points_awarded,
            next_nodes=[NodeSummary.from_node(n) for n in remaining],
        )

    async def _remaining_nodes(self, game_id: UUID, team_id: UUID) -> list[Node]:
        scanned = {scan.node_id for scan in await self.store.list_team_scans(team_id)}
        nodes = await self.store.list_nodes(game_id, activated_only=True)
        return [node for node in nodes if node.node_id not in scanned]

    async def _announce_scan(self, game: Game, team_name: str, node_title: str, points: int, at: datetime) -> None:
        """Invalidate the leaderboard and notify viewers. Failures are logged, never raised."""
        self.cache.invalidate(game.slug)
        payload = ScanEventPayload(team_name=team_name, node_name=node_title, points=points, timestamp=at)
        self.event_bus.publish(game.slug, EventChannel.SCAN, payload.to_payload())
        try:
            await self.leaderboard.refresh_and_publish(game)
        except Exception as exc:
            logger.error(f"Failed to publish leaderboard for {game.slug}: {exc}", exc_info=True)

    async def check_if_winner(self, team_id: UUID) -> WinnerStatus:
        """Report whether the team is its game's recorded winner."""
        team = await self._get_team(team_id)
        winner = await self.store.get_winner(team.game_id)
        if winner is None:
            return WinnerStatus(is_winner=False)
        return WinnerStatus(is_winner=winner.team_id == team.team_id, winner_team_id=winner.team_id)

    async def request_hint(self, team_id: UUID, node_id: UUID) -> HintResult:
        """Reveal a node's hint, charging the team on first use only.

        Raises:
            TeamNotFoundError, NodeNotFoundError, NodeNotInTeamGameError,
            GameNotActiveError, NoHintAvailableError
        """
        team = await self._get_team(team_id)
        node = await self.store.get_node(node_id)
        if node is None:
            raise NodeNotFoundError()
        if node.game_id != team.game_id:
            raise NodeNotInTeamGameError()

        game = await self._get_game(team.game_id)
        if game.status != GameStatus.ACTIVE.value:
            raise GameNotActiveError()
        if not node.hint:
            raise NoHintAvailableError()

        hint_text = node.hint
        async with self.lock_client.lock(team_lock_name(team_id), timeout=self.settings.lock_timeout_seconds):
            existing = await self.store.get_hint_usage(team_id, node_id)
            if existing is not None:
                return HintResult(hint=hint_text, points_deducted=existing.points_deducted, already_used=True)

            deduction = points_calculator.calculate_hint_deduction(node)
            self.db.add(
                HintUsage(
                    game_id=game.game_id,
                    team_id=team_id,
                    node_id=node_id,
                    points_deducted=deduction,
                    created_at=datetime.now(UTC),
                )
            )
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                existing = await self.store.get_hint_usage(team_id, node_id)
                if existing is None:
                    raise
                return HintResult(hint=hint_text, points_deducted=existing.points_deducted, already_used=True)

        logger.info(f"Team {team_id} opened hint for node {node_id} (-{deduction} points)")
        self.cache.invalidate(game.slug)
        try:
            await self.leaderboard.refresh_and_publish(game)
        except Exception as exc:
            logger.error(f"Failed to publish leaderboard for {game.slug}: {exc}", exc_info=True)

        return HintResult(hint=hint_text, points_deducted=deduction, already_used=False)

    async def get_team_progress(self, team_id: UUID) -> TeamProgress:
        """Summarize a team's scans, score and what to look for next."""
        team = await self._get_team(team_id)
        game = await self._get_game(team.game_id)

        scans = await self.store.list_team_scans(team_id)
        hint_usages = await self.store.list_team_hint_usages(team_id)
        all_nodes = await self.store.list_nodes(game.game_id)
        nodes_by_id = {node.node_id: node for node in all_nodes}
        activated = [node for node in all_nodes if node.activated]

        summary = points_calculator.get_points_summary(
            (scan.points_awarded for scan in scans),
            (usage.points_deducted for usage in hint_usages),
        )

        scanned_ids = {scan.node_id for scan in scans}
        remaining = [node for node in activated if node.node_id not in scanned_ids]
        is_finished = team.finished_at is not None

        current_node: Optional[Node] = None
        next_clue: Optional[Node] = None
        if scans:
            if not is_finished:
                current_node = nodes_by_id.get(scans[-1].node_id)
                next_clue = await self._pick_next_clue(game, current_node, remaining)
        else:
            next_clue = self._pick_start_clue(game, team, activated, nodes_by_id)
            remaining = [node for node in remaining if next_clue is None or node.node_id != next_clue.node_id]

        winner = await self.store.get_winner(game.game_id)

        return TeamProgress(
            team_id=team.team_id,
            team_name=team.name,
            nodes_found=len(scans),
            total_nodes=len(activated),
            total_points=summary.adjusted_points,
            is_finished=is_finished,
            is_winner=winner is not None and winner.team_id == team.team_id,
            current_node=NodeSummary.from_node(current_node) if current_node else None,
            next_clue=NodeSummary.from_node(next_clue) if next_clue else None,
            next_nodes=[] if is_finished else [NodeSummary.from_node(node) for node in remaining],
            scans=[
                ScanRecord(
                    node_id=scan.node_id,
                    node_title=nodes_by_id[scan.node_id].title,
                    points_awarded=scan.points_awarded,
                    scanned_at=scan.scanned_at,
                    is_end=nodes_by_id[scan.node_id].is_end,
                )
                for scan in scans
            ],
        )

    async def _pick_next_clue(self, game: Game, current_node: Optional[Node], remaining: list[Node]) -> Optional[Node]:
        if not remaining:
            return None
        if game.random_mode:
            return random.choice(remaining)

        if current_node is not None:
            remaining_by_id = {node.node_id: node for node in remaining}
            for next_id in await self.store.list_outgoing_node_ids(current_node.node_id):
                if next_id in remaining_by_id:
                    return remaining_by_id[next_id]
        return remaining[0]

    @staticmethod
    def _pick_start_clue(game: Game, team: Team, activated: list[Node], nodes_by_id: dict) -> Optional[Node]:
        if team.start_node_id is not None:
            return nodes_by_id.get(team.start_node_id)
        if game.random_mode:
            start_nodes = [node for node in activated if node.is_start]
            if start_nodes:
                return random.choice(start_nodes)
        return None
