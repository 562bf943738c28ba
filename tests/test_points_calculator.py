"""Tests for scan point and hint deduction arithmetic."""
from datetime import datetime, timedelta, UTC
from types import SimpleNamespace

import pytest

from qrhunt.services import points_calculator
from qrhunt.services.points_calculator import (
    calculate_hint_deduction,
    calculate_scan_points,
    get_points_summary,
    round_half_up,
)

NOW = datetime(2026, 5, 1, 12, 0, 0, tzinfo=UTC)


def make_game(enabled=True, multiplier=1.5, window_minutes=5):
    return SimpleNamespace(
        time_bonus_enabled=enabled,
        time_bonus_multiplier=multiplier,
        time_bonus_window_minutes=window_minutes,
    )


def make_node(points=100):
    return SimpleNamespace(points=points)


def test_first_scan_never_gets_bonus():
    assert calculate_scan_points(make_node(100), make_game(), last_scan_at=None, now=NOW) == 100


def test_bonus_applies_within_window():
    last_scan = NOW - timedelta(minutes=2)
    assert calculate_scan_points(make_node(100), make_game(), last_scan, now=NOW) == 150


def test_bonus_not_applied_at_window_edge():
    last_scan = NOW - timedelta(minutes=5)
    assert calculate_scan_points(make_node(100), make_game(), last_scan, now=NOW) == 100


def test_bonus_disabled_keeps_base_points():
    last_scan = NOW - timedelta(seconds=30)
    assert calculate_scan_points(make_node(100), make_game(enabled=False), last_scan, now=NOW) == 100


def test_naive_last_scan_is_treated_as_utc():
    """SQLite hands back naive datetimes; they must compare as UTC."""
    last_scan = (NOW - timedelta(minutes=1)).replace(tzinfo=None)
    assert points_calculator.is_within_bonus_window(make_game(), last_scan, now=NOW)


@pytest.mark.parametrize(
    "points,multiplier,expected",
    [
        (75, 1.5, 113),
        (25, 1.5, 38),
        (100, 2.0, 200),
        (10, 1.25, 13),
    ],
)
def test_bonus_rounds_half_up(points, multiplier, expected):
    last_scan = NOW - timedelta(seconds=10)
    game = make_game(multiplier=multiplier)
    assert calculate_scan_points(make_node(points), game, last_scan, now=NOW) == expected


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert round_half_up(112.5) == 113


@pytest.mark.parametrize("points,expected", [(100, 50), (75, 37), (1, 0), (0, 0)])
def test_hint_deduction_is_half_rounded_down(points, expected):
    assert calculate_hint_deduction(make_node(points)) == expected


def test_points_summary_subtracts_hints():
    summary = get_points_summary([100, 150, 100], [50, 37])
    assert summary.raw_points == 350
    assert summary.hint_deduction == 87
    assert summary.adjusted_points == 263


def test_points_summary_can_go_negative():
    summary = get_points_summary([], [50])
    assert summary.adjusted_points == -50
