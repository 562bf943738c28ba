"""Pure leaderboard ordering for the three ranking modes.

Ranks are dense and 1-based: teams whose ranking keys are identical share a
rank and the next distinct team gets the previous rank plus one, so ranks
line up with panel rows (1, 1, 2 rather than 1, 1, 3).
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from qrhunt.models.base import RankingMode
from qrhunt.utils.datetime_helpers import ensure_utc

FINISHED_CLUE = "Finished!"


@dataclass(frozen=True)
class TeamSnapshot:
    """Everything the ranker needs to know about one team."""

    team_id: UUID
    team_name: str
    nodes_found: int
    total_points: int
    team_logo_url: Optional[str] = None
    finished_at: Optional[datetime] = None
    first_scan_at: Optional[datetime] = None
    last_scan_at: Optional[datetime] = None
    current_node_title: Optional[str] = None
    start_node_title: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    @property
    def elapsed_seconds(self) -> Optional[float]:
        if self.first_scan_at is None or self.last_scan_at is None:
            return None
        return (ensure_utc(self.last_scan_at) - ensure_utc(self.first_scan_at)).total_seconds()

    @property
    def current_clue(self) -> Optional[str]:
        if self.is_finished:
            return FINISHED_CLUE
        return self.current_node_title or self.start_node_title


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    team_id: UUID
    team_name: str
    team_logo_url: Optional[str]
    nodes_found: int
    total_points: int
    is_finished: bool
    current_clue: Optional[str]


def _finish_key(snapshot: TeamSnapshot) -> tuple:
    # Unfinished teams sort after every finished team
    if snapshot.finished_at is None:
        return (1, 0.0)
    return (0, ensure_utc(snapshot.finished_at).timestamp())


def ranking_key(snapshot: TeamSnapshot, mode: RankingMode | str) -> tuple:
    """Sort key for ``mode``; equal keys mean equal rank."""
    mode = RankingMode(mode)

    if mode == RankingMode.POINTS:
        return (-snapshot.total_points, *_finish_key(snapshot), -snapshot.nodes_found)

    if mode == RankingMode.NODES:
        return (-snapshot.nodes_found, *_finish_key(snapshot))

    # TIME: finished teams by elapsed time, then unfinished by progress
    if snapshot.is_finished:
        return (0, snapshot.elapsed_seconds or 0.0, 0)
    return (1, 0.0, -snapshot.nodes_found)


def rank(snapshots: Iterable[TeamSnapshot], mode: RankingMode | str) -> list[RankedEntry]:
    """Order teams for the leaderboard and assign dense ranks."""
    ordered = sorted(
        snapshots,
        key=lambda snap: (ranking_key(snap, mode), snap.team_name, str(snap.team_id)),
    )

    entries: list[RankedEntry] = []
    previous_key = None
    current_rank = 0
    for snapshot in ordered:
        key = ranking_key(snapshot, mode)
        if key != previous_key:
            current_rank += 1
            previous_key = key
        entries.append(
            RankedEntry(
                rank=current_rank,
                team_id=snapshot.team_id,
                team_name=snapshot.team_name,
                team_logo_url=snapshot.team_logo_url,
                nodes_found=snapshot.nodes_found,
                total_points=snapshot.total_points,
                is_finished=snapshot.is_finished,
                current_clue=snapshot.current_clue,
            )
        )
    return entries
