"""Post-game analytics: per-team split times, per-node statistics and bottlenecks."""
import logging
from collections import defaultdict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.schemas.analytics import Bottleneck, GameAnalytics, NodeStats, NodeTiming, TeamAnalytics
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.leaderboard_ranker import rank
from qrhunt.utils.datetime_helpers import ensure_utc
from qrhunt.utils.exceptions import GameNotFoundError

logger = logging.getLogger(__name__)

BOTTLENECK_LIMIT = 5
UNKNOWN_NODE_TITLE = "Unknown"


def _elapsed_ms(earlier, later) -> int:
    return round((ensure_utc(later) - ensure_utc(earlier)).total_seconds() * 1000)


class GameAnalyticsService:
    """Read-only analytics over a game's scan log."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = GraphStore(db)

    async def get_game_analytics(self, game_id: UUID) -> GameAnalytics:
        """Summarize how long teams spent reaching each node.

        A scan's time is measured from the team's previous scan; a team's
        first scan counts as zero and is left out of the node statistics.
        Node statistics cover activated nodes only. Bottlenecks are the five
        slowest nodes on average among those any team has reached.

        Raises:
            GameNotFoundError: If the game does not exist.
        """
        game = await self.store.get_game(game_id)
        if game is None:
            raise GameNotFoundError()

        teams = await self.store.list_teams(game_id)
        nodes = await self.store.list_nodes(game_id)
        node_titles = {node.node_id: node.title for node in nodes}
        entries = {entry.team_id: entry for entry in rank(await self.store.get_team_snapshots(game), game.ranking_mode)}

        scans_by_team = defaultdict(list)
        for scan in await self.store.list_game_scans(game_id):
            scans_by_team[scan.team_id].append(scan)

        team_rows = []
        times_by_node: dict[UUID, list[int]] = defaultdict(list)
        for team in teams:
            timings = []
            previous = None
            for scan in scans_by_team.get(team.team_id, []):
                spent = _elapsed_ms(previous.scanned_at, scan.scanned_at) if previous else 0
                timings.append(
                    NodeTiming(
                        node_id=scan.node_id,
                        node_title=node_titles.get(scan.node_id, UNKNOWN_NODE_TITLE),
                        time_spent_ms=spent,
                        timestamp=scan.scanned_at,
                    )
                )
                if spent > 0:
                    times_by_node[scan.node_id].append(spent)
                previous = scan

            entry = entries.get(team.team_id)
            team_rows.append(
                TeamAnalytics(
                    team_id=team.team_id,
                    team_name=team.name,
                    team_logo_url=team.logo_url,
                    total_time=sum(timing.time_spent_ms for timing in timings),
                    node_timings=timings,
                    is_finished=entry.is_finished if entry else False,
                    rank=entry.rank if entry else 0,
                )
            )

        node_stats = []
        for node in nodes:
            if not node.activated:
                continue
            times = times_by_node.get(node.node_id, [])
            node_stats.append(
                NodeStats(
                    node_id=node.node_id,
                    node_title=node.title,
                    average_time_ms=round(sum(times) / len(times)) if times else 0,
                    min_time_ms=min(times, default=0),
                    max_time_ms=max(times, default=0),
                    completion_count=len(times),
                )
            )

        # sorted() is stable, so equal averages keep node order
        slowest = sorted(
            (stats for stats in node_stats if stats.completion_count > 0),
            key=lambda stats: stats.average_time_ms,
            reverse=True,
        )[:BOTTLENECK_LIMIT]
        bottlenecks = [
            Bottleneck(node_id=stats.node_id, node_title=stats.node_title, average_time_ms=stats.average_time_ms)
            for stats in slowest
        ]

        logger.info(f"Built analytics for game {game.slug}: {len(team_rows)} teams, {len(bottlenecks)} bottlenecks")
        return GameAnalytics(teams=team_rows, node_stats=node_stats, bottlenecks=bottlenecks)
