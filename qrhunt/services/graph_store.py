"""Read and write access to games, graphs, teams and the scan log."""
import logging
from collections import defaultdict
from typing import Optional
from uuid import UUID

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.models.game import Game
from qrhunt.models.node import Edge, Node
from qrhunt.models.scan import GameWinner, HintUsage, Scan
from qrhunt.models.team import Team
from qrhunt.services.leaderboard_ranker import TeamSnapshot

logger = logging.getLogger(__name__)


class GraphStore:
    """Query helpers shared by the engine services.

    Methods only stage changes on the session; callers own the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # Games

    async def get_game(self, game_id: UUID) -> Optional[Game]:
        return await self.db.get(Game, game_id)

    async def get_game_by_slug(self, slug: str) -> Optional[Game]:
        result = await self.db.execute(select(Game).where(Game.slug == slug))
        return result.scalar_one_or_none()

    # Graph

    async def get_node(self, node_id: UUID) -> Optional[Node]:
        return await self.db.get(Node, node_id)

    async def get_node_by_key(self, game_id: UUID, node_key: str) -> Optional[Node]:
        result = await self.db.execute(
            select(Node).where(Node.game_id == game_id, Node.node_key == node_key)
        )
        return result.scalar_one_or_none()

    async def list_nodes(self, game_id: UUID, activated_only: bool = False) -> list[Node]:
        stmt = select(Node).where(Node.game_id == game_id)
        if activated_only:
            stmt = stmt.where(Node.activated.is_(True))
        result = await self.db.execute(stmt.order_by(Node.created_at, Node.node_key))
        return list(result.scalars().all())

    async def list_outgoing_node_ids(self, node_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(Edge.to_node_id).where(Edge.from_node_id == node_id).order_by(Edge.sort_order)
        )
        return list(result.scalars().all())

    async def count_node_flags(self, game_id: UUID) -> dict[str, int]:
        """Counts used by the activation preconditions."""
        result = await self.db.execute(
            select(
                func.count(Node.node_id),
                func.coalesce(func.sum(case((Node.is_start.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(case((Node.is_end.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(case((Node.activated.is_(True), 1), else_=0)), 0),
            ).where(Node.game_id == game_id)
        )
        total, starts, ends, activated = result.one()
        return {"total": total, "start": starts, "end": ends, "activated": activated}

    # Teams

    async def get_team(self, team_id: UUID) -> Optional[Team]:
        return await self.db.get(Team, team_id)

    async def get_team_by_code(self, game_id: UUID, code: str) -> Optional[Team]:
        result = await self.db.execute(
            select(Team).where(Team.game_id == game_id, Team.code == code)
        )
        return result.scalar_one_or_none()

    async def list_teams(self, game_id: UUID) -> list[Team]:
        result = await self.db.execute(
            select(Team).where(Team.game_id == game_id).order_by(Team.created_at)
        )
        return list(result.scalars().all())

    async def count_teams(self, game_id: UUID) -> int:
        result = await self.db.execute(select(func.count(Team.team_id)).where(Team.game_id == game_id))
        return result.scalar_one()

    # Scan log

    async def list_team_scans(self, team_id: UUID) -> list[Scan]:
        """Scans of a team, oldest first."""
        result = await self.db.execute(
            select(Scan).where(Scan.team_id == team_id).order_by(Scan.scanned_at, Scan.scan_id)
        )
        return list(result.scalars().all())

    async def list_game_scans(self, game_id: UUID) -> list[Scan]:
        """Every scan of a game, oldest first."""
        result = await self.db.execute(
            select(Scan).where(Scan.game_id == game_id).order_by(Scan.scanned_at, Scan.scan_id)
        )
        return list(result.scalars().all())

    def add_scan(self, scan: Scan) -> Scan:
        self.db.add(scan)
        return scan

    # Hints

    async def get_hint_usage(self, team_id: UUID, node_id: UUID) -> Optional[HintUsage]:
        result = await self.db.execute(
            select(HintUsage).where(HintUsage.team_id == team_id, HintUsage.node_id == node_id)
        )
        return result.scalar_one_or_none()

    async def list_team_hint_usages(self, team_id: UUID) -> list[HintUsage]:
        result = await self.db.execute(select(HintUsage).where(HintUsage.team_id == team_id))
        return list(result.scalars().all())

    # Winner

    async def get_winner(self, game_id: UUID) -> Optional[GameWinner]:
        return await self.db.get(GameWinner, game_id)

    # Aggregates

    async def get_team_snapshots(self, game: Game) -> list[TeamSnapshot]:
        """Build ranker input for every team of ``game`` in four queries."""
        teams = await self.list_teams(game.game_id)
        if not teams:
            return []

        node_titles = {
            node.node_id: node.title for node in await self.list_nodes(game.game_id)
        }

        scans_by_team: dict[UUID, list[Scan]] = defaultdict(list)
        for scan in await self.list_game_scans(game.game_id):
            scans_by_team[scan.team_id].append(scan)

        hint_result = await self.db.execute(
            select(HintUsage.team_id, func.coalesce(func.sum(HintUsage.points_deducted), 0))
            .where(HintUsage.game_id == game.game_id)
            .group_by(HintUsage.team_id)
        )
        deductions = {team_id: total for team_id, total in hint_result.all()}

        snapshots = []
        for team in teams:
            scans = scans_by_team.get(team.team_id, [])
            last_scan = scans[-1] if scans else None
            snapshots.append(
                TeamSnapshot(
                    team_id=team.team_id,
                    team_name=team.name,
                    team_logo_url=team.logo_url,
                    nodes_found=len(scans),
                    total_points=sum(scan.points_awarded for scan in scans) - deductions.get(team.team_id, 0),
                    finished_at=team.finished_at,
                    first_scan_at=scans[0].scanned_at if scans else None,
                    last_scan_at=last_scan.scanned_at if last_scan else None,
                    current_node_title=node_titles.get(last_scan.node_id) if last_scan else None,
                    start_node_title=node_titles.get(team.start_node_id) if team.start_node_id else None,
                )
            )
        return snapshots

    async def clear_progress(self, game_id: UUID) -> None:
        """Delete the scan log, hint usages and winner of a game."""
        await self.db.execute(delete(GameWinner).where(GameWinner.game_id == game_id))
        await self.db.execute(delete(HintUsage).where(HintUsage.game_id == game_id))
        await self.db.execute(delete(Scan).where(Scan.game_id == game_id))
        await self.db.execute(
            update(Team).where(Team.game_id == game_id).values(finished_at=None)
        )
        logger.info(f"Cleared scans, hints and winner for game {game_id}")
