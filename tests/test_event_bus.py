"""Tests for the per-game event bus."""
import asyncio
import logging

import pytest

from qrhunt.services.event_bus import EventBus, EventChannel


async def test_subscriber_receives_events_in_publish_order():
    bus = EventBus()

    async with bus.subscribe("hunt-a") as subscription:
        bus.publish("hunt-a", EventChannel.SCAN, {"n": 1})
        bus.publish("hunt-a", EventChannel.LEADERBOARD, {"n": 2})
        bus.publish("hunt-a", EventChannel.CHAT, {"n": 3})

        received = [subscription.get_nowait() for _ in range(3)]

    assert [event.payload["n"] for event in received] == [1, 2, 3]
    assert [event.channel for event in received] == [
        EventChannel.SCAN,
        EventChannel.LEADERBOARD,
        EventChannel.CHAT,
    ]


async def test_events_are_scoped_to_game_and_channel():
    bus = EventBus()

    async with bus.subscribe("hunt-a", channels=[EventChannel.SCAN]) as scans_only:
        async with bus.subscribe("hunt-b") as other_game:
            assert bus.publish("hunt-a", EventChannel.LEADERBOARD, {"x": 1}) == 0
            assert bus.publish("hunt-a", "scan", {"x": 2}) == 1

            assert scans_only.pending() == 1
            assert scans_only.get_nowait().payload == {"x": 2}
            assert other_game.pending() == 0


async def test_publish_without_subscribers_is_a_noop():
    bus = EventBus()
    assert bus.publish("nobody-home", EventChannel.SCAN, {}) == 0


async def test_late_subscriber_sees_no_history():
    bus = EventBus()
    bus.publish("hunt-a", EventChannel.SCAN, {"old": True})

    async with bus.subscribe("hunt-a") as subscription:
        assert subscription.pending() == 0


async def test_slow_subscriber_drops_without_blocking_others(caplog):
    bus = EventBus(max_queue_size=2)

    async with bus.subscribe("hunt-a") as slow, bus.subscribe("hunt-a") as fast:
        with caplog.at_level(logging.WARNING, logger="qrhunt.services.event_bus"):
            for i in range(3):
                bus.publish("hunt-a", EventChannel.SCAN, {"i": i})
                # fast keeps up by draining every event
                fast.get_nowait()

        assert slow.pending() == 2
        assert slow.dropped == 1
        assert fast.dropped == 0
        assert [slow.get_nowait().payload["i"] for _ in range(2)] == [0, 1]

    assert "Dropped scan event" in caplog.text


async def test_subscription_is_removed_on_exit():
    bus = EventBus()

    async with bus.subscribe("hunt-a"):
        assert bus.subscriber_count("hunt-a") == 1
        assert bus.subscriber_count("hunt-a", EventChannel.CHAT) == 1
        assert bus.game_count() == 1

    assert bus.subscriber_count("hunt-a") == 0
    assert bus.game_count() == 0


async def test_subscription_is_removed_when_block_raises():
    bus = EventBus()

    with pytest.raises(RuntimeError):
        async with bus.subscribe("hunt-a"):
            raise RuntimeError("viewer went away")

    assert bus.subscriber_count("hunt-a") == 0


async def test_async_iteration_yields_published_events():
    bus = EventBus()

    async with bus.subscribe("hunt-a", EventChannel.GAME_STATUS) as subscription:

        async def consume():
            async for event in subscription:
                return event

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        bus.publish("hunt-a", EventChannel.GAME_STATUS, {"status": "active"})
        event = await asyncio.wait_for(consumer, timeout=1)

    assert event.payload == {"status": "active"}


async def test_listener_invokes_callback_and_survives_errors():
    bus = EventBus()
    seen = []

    async def callback(event):
        if event.payload.get("boom"):
            raise ValueError("bad payload")
        seen.append(event.payload["n"])

    listener = bus.add_listener("hunt-a", EventChannel.CHAT, callback)
    bus.publish("hunt-a", EventChannel.CHAT, {"boom": True})
    bus.publish("hunt-a", EventChannel.CHAT, {"n": 7})

    for _ in range(20):
        if seen:
            break
        await asyncio.sleep(0.01)

    await listener.close()

    assert seen == [7]
    assert bus.subscriber_count("hunt-a") == 0


def test_event_message_uses_wire_format():
    bus = EventBus()
    subscription = bus.register("hunt-a", EventChannel.TEAM_JOINED)
    bus.publish("hunt-a", EventChannel.TEAM_JOINED, {"name": "Red Foxes"})

    message = subscription.get_nowait().to_message()

    assert message["channel"] == "team-joined"
    assert message["payload"] == {"name": "Red Foxes"}
    assert message["publishedAt"].endswith("Z")
    bus.unsubscribe(subscription)


def test_unknown_channel_is_rejected():
    bus = EventBus()
    with pytest.raises(ValueError):
        bus.publish("hunt-a", "gossip", {})
