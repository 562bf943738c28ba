"""Tests for leaderboard ordering in each ranking mode."""
import random
from datetime import datetime, timedelta, UTC
from uuid import uuid4

import pytest

from qrhunt.models.base import RankingMode
from qrhunt.services.leaderboard_ranker import FINISHED_CLUE, TeamSnapshot, rank

T0 = datetime(2026, 5, 1, 12, 0, 0, tzinfo=UTC)


def snapshot(name, nodes=0, points=0, first=None, last=None, finished=None, **kwargs):
    return TeamSnapshot(
        team_id=uuid4(),
        team_name=name,
        nodes_found=nodes,
        total_points=points,
        first_scan_at=first,
        last_scan_at=last,
        finished_at=finished,
        **kwargs,
    )


def names(entries):
    return [entry.team_name for entry in entries]


def test_points_mode_orders_by_points_then_finish_time():
    early = snapshot("Early", nodes=3, points=300, finished=T0 + timedelta(minutes=10))
    late = snapshot("Late", nodes=3, points=300, finished=T0 + timedelta(minutes=20))
    leader = snapshot("Leader", nodes=2, points=400)
    trailing = snapshot("Trailing", nodes=1, points=100)

    entries = rank([trailing, late, leader, early], RankingMode.POINTS)

    assert names(entries) == ["Leader", "Early", "Late", "Trailing"]
    assert [entry.rank for entry in entries] == [1, 2, 3, 4]


def test_points_mode_prefers_finished_team_on_equal_points():
    finished = snapshot("Finished", nodes=2, points=200, finished=T0)
    unfinished = snapshot("Unfinished", nodes=3, points=200)

    assert names(rank([unfinished, finished], "points")) == ["Finished", "Unfinished"]


def test_full_ties_share_a_dense_rank():
    a = snapshot("Alpha", nodes=2, points=200)
    b = snapshot("Bravo", nodes=2, points=200)
    c = snapshot("Charlie", nodes=1, points=100)

    entries = rank([c, b, a], RankingMode.POINTS)

    assert names(entries) == ["Alpha", "Bravo", "Charlie"]
    assert [entry.rank for entry in entries] == [1, 1, 2]


def test_nodes_mode_ignores_points():
    many = snapshot("Many", nodes=4, points=100)
    few = snapshot("Few", nodes=2, points=900)

    assert names(rank([few, many], RankingMode.NODES)) == ["Many", "Few"]


def test_nodes_mode_breaks_ties_on_finish_time():
    slow = snapshot("Slow", nodes=3, finished=T0 + timedelta(minutes=30))
    fast = snapshot("Fast", nodes=3, finished=T0 + timedelta(minutes=5))

    assert names(rank([slow, fast], RankingMode.NODES)) == ["Fast", "Slow"]


def test_time_mode_ranks_finished_by_elapsed_then_unfinished_by_progress():
    quick = snapshot(
        "Quick", nodes=3, first=T0, last=T0 + timedelta(minutes=12), finished=T0 + timedelta(minutes=12)
    )
    steady = snapshot(
        "Steady",
        nodes=3,
        first=T0 - timedelta(minutes=30),
        last=T0 + timedelta(minutes=5),
        finished=T0 + timedelta(minutes=5),
    )
    close = snapshot("Close", nodes=2, first=T0, last=T0 + timedelta(minutes=1))
    starting = snapshot("Starting", nodes=0)

    entries = rank([starting, steady, close, quick], RankingMode.TIME)

    assert names(entries) == ["Quick", "Steady", "Close", "Starting"]
    assert [entry.rank for entry in entries] == [1, 2, 3, 4]


def test_naive_timestamps_rank_like_aware_ones():
    naive = snapshot("Naive", nodes=2, points=200, finished=(T0 + timedelta(minutes=1)).replace(tzinfo=None))
    aware = snapshot("Aware", nodes=2, points=200, finished=T0 + timedelta(minutes=2))

    assert names(rank([aware, naive], RankingMode.POINTS)) == ["Naive", "Aware"]


def test_current_clue_reflects_progress():
    finished = snapshot("Done", finished=T0, current_node_title="Clock Tower")
    moving = snapshot("Moving", current_node_title="Fountain", start_node_title="Old Oak")
    waiting = snapshot("Waiting", start_node_title="Old Oak")
    unassigned = snapshot("Unassigned")

    assert finished.current_clue == FINISHED_CLUE
    assert moving.current_clue == "Fountain"
    assert waiting.current_clue == "Old Oak"
    assert unassigned.current_clue is None


def test_rank_of_empty_game_is_empty():
    assert rank([], RankingMode.POINTS) == []


@pytest.mark.parametrize("mode", list(RankingMode))
def test_rank_is_deterministic_for_any_input_order(mode):
    teams = [
        snapshot("Alpha", nodes=2, points=200),
        snapshot("Bravo", nodes=2, points=200),
        snapshot("Twin", nodes=1, points=100),
        snapshot("Twin", nodes=1, points=100),
        snapshot("Done", nodes=3, points=250, first=T0, last=T0 + timedelta(minutes=30), finished=T0 + timedelta(minutes=30)),
        snapshot("Quick", nodes=3, points=250, first=T0, last=T0 + timedelta(minutes=12), finished=T0 + timedelta(minutes=12)),
        snapshot("Idle"),
    ]
    expected = [(entry.rank, entry.team_id) for entry in rank(teams, mode)]

    shuffler = random.Random(1234)
    for _ in range(20):
        shuffled = teams[:]
        shuffler.shuffle(shuffled)
        first = [(entry.rank, entry.team_id) for entry in rank(shuffled, mode)]
        second = [(entry.rank, entry.team_id) for entry in rank(shuffled, mode)]

        assert first == second == expected
