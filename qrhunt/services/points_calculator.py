"""Point arithmetic for scans and hints."""
import math
from dataclasses import dataclass
from datetime import datetime, UTC, timedelta
from typing import Iterable, Optional

from qrhunt.models.game import Game
from qrhunt.models.node import Node
from qrhunt.utils.datetime_helpers import ensure_utc


@dataclass(frozen=True)
class PointsSummary:
    raw_points: int
    hint_deduction: int

    @property
    def adjusted_points(self) -> int:
        return self.raw_points - self.hint_deduction


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_within_bonus_window(game: Game, last_scan_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when the team's previous scan is younger than the game's bonus window."""
    if not game.time_bonus_enabled or last_scan_at is None:
        return False
    now = now or datetime.now(UTC)
    window = timedelta(minutes=game.time_bonus_window_minutes)
    return now - ensure_utc(last_scan_at) < window


def calculate_scan_points(
    node: Node,
    game: Game,
    last_scan_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> int:
    """Points for scanning ``node``.

    The time bonus multiplies the node's points when the previous scan of the
    same team landed within the bonus window. A team's first scan never gets a
    bonus.
    """
    points = node.points
    if is_within_bonus_window(game, last_scan_at, now):
        points = round_half_up(points * game.time_bonus_multiplier)
    return points


def calculate_hint_deduction(node: Node) -> int:
    """Opening a hint costs half the node's points, rounded down."""
    return node.points // 2


def get_points_summary(scan_points: Iterable[int], hint_deductions: Iterable[int]) -> PointsSummary:
    return PointsSummary(raw_points=sum(scan_points), hint_deduction=sum(hint_deductions))
