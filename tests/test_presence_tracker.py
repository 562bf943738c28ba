"""Tests for heartbeat-based team presence."""
from datetime import datetime, timedelta, UTC

from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.tasks.presence_sweep import run_presence_sweep

T0 = datetime(2026, 5, 1, 12, 0, 0, tzinfo=UTC)


def drain(subscription):
    events = []
    while subscription.pending():
        events.append(subscription.get_nowait())
    return events


async def test_first_heartbeat_publishes_connected_once():
    bus = EventBus()
    tracker = PresenceTracker(bus, timeout_seconds=30)

    async with bus.subscribe("hunt-a", EventChannel.TEAM_CONNECTION) as subscription:
        tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=T0)
        tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=T0 + timedelta(seconds=5))
        events = drain(subscription)

    assert len(events) == 1
    payload = events[0].payload
    assert payload["teamId"] == "team-1"
    assert payload["teamName"] == "Red Foxes"
    assert payload["isConnected"] is True


async def test_sweep_disconnects_silent_team_and_reconnect_publishes_again():
    bus = EventBus()
    tracker = PresenceTracker(bus, timeout_seconds=30)

    async with bus.subscribe("hunt-a", EventChannel.TEAM_CONNECTION) as subscription:
        tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=T0)

        assert tracker.sweep(now=T0 + timedelta(seconds=29)) == 0
        assert tracker.sweep(now=T0 + timedelta(seconds=30)) == 1
        assert tracker.sweep(now=T0 + timedelta(seconds=60)) == 0

        tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=T0 + timedelta(seconds=61))
        events = drain(subscription)

    assert [event.payload["isConnected"] for event in events] == [True, False, True]


def test_connected_team_count_uses_timeout():
    tracker = PresenceTracker(EventBus(), timeout_seconds=30)
    tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=T0)
    tracker.heartbeat("hunt-a", "team-2", "Blue Jays", now=T0 + timedelta(seconds=20))
    tracker.heartbeat("hunt-b", "team-3", "Green Owls", now=T0)

    assert tracker.connected_team_count("hunt-a", now=T0 + timedelta(seconds=25)) == 2
    assert tracker.connected_team_count("hunt-a", now=T0 + timedelta(seconds=35)) == 1
    assert tracker.is_connected("hunt-a", "team-2", now=T0 + timedelta(seconds=35))
    assert not tracker.is_connected("hunt-a", "team-1", now=T0 + timedelta(seconds=35))
    assert not tracker.is_connected("hunt-a", "unknown")
    assert tracker.connected_team_ids("hunt-a", now=T0 + timedelta(seconds=35)) == {"team-2"}


def test_forget_game_clears_state():
    tracker = PresenceTracker(EventBus(), timeout_seconds=30)
    tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=T0)

    tracker.forget_game("hunt-a")

    assert tracker.get_team_connections("hunt-a") == []


def test_run_presence_sweep_reports_changes():
    tracker = PresenceTracker(EventBus(), timeout_seconds=1)
    tracker.heartbeat("hunt-a", "team-1", "Red Foxes", now=datetime.now(UTC) - timedelta(seconds=10))

    assert run_presence_sweep(tracker) == 1
    assert run_presence_sweep(tracker) == 0
