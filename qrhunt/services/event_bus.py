"""Per-game publish/subscribe hub for live viewer updates.

Centralizes subscriber tracking for every live channel so the application has
a single place that knows how to register, fan out to, and clean up viewers.
One instance is created per application and injected where needed.

Publishing never waits on a subscriber: each subscriber owns a bounded queue
and events that do not fit are dropped for that subscriber only. No history
is kept, so a subscriber only sees events published after it registered.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, Optional, Union

logger = logging.getLogger(__name__)


class EventChannel(str, Enum):
    """Live channels available per game."""

    LEADERBOARD = "leaderboard"
    SCAN = "scan"
    CHAT = "chat"
    GAME_STATUS = "game-status"
    TEAM_JOINED = "team-joined"
    TEAM_CONNECTION = "team-connection"


@dataclass(frozen=True)
class Event:
    """A single published event."""

    game_slug: str
    channel: EventChannel
    payload: dict
    published_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_message(self) -> dict:
        return {
            "channel": self.channel.value,
            "payload": self.payload,
            "publishedAt": self.published_at.isoformat().replace("+00:00", "Z"),
        }


class Subscription:
    """One subscriber's buffered view of a game's channels.

    Iterate it with ``async for`` to receive events in publish order.
    """

    def __init__(self, subscriber_id: int, game_slug: str, channels: frozenset[EventChannel], max_queue_size: int):
        self.subscriber_id = subscriber_id
        self.game_slug = game_slug
        self.channels = channels
        self.dropped = 0
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=max_queue_size)

    def offer(self, event: Event) -> bool:
        """Queue an event without waiting. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> Event:
        return await self._queue.get()

    def get_nowait(self) -> Event:
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> AsyncIterator[Event]:
        return self

    async def __anext__(self) -> Event:
        return await self._queue.get()


class Listener:
    """Callback subscriber served by its own task. Call :meth:`close` to stop."""

    def __init__(self, bus: "EventBus", subscription: Subscription, task: asyncio.Task):
        self._bus = bus
        self.subscription = subscription
        self._task = task

    async def close(self) -> None:
        self._bus.unsubscribe(self.subscription)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


ChannelSpec = Union[EventChannel, str, Iterable[Union[EventChannel, str]], None]


def _normalize_channels(channels: ChannelSpec) -> frozenset[EventChannel]:
    if channels is None:
        return frozenset(EventChannel)
    if isinstance(channels, (EventChannel, str)):
        channels = [channels]
    return frozenset(EventChannel(channel) for channel in channels)


class EventBus:
    """Fan events out to subscribers grouped by game slug and channel."""

    def __init__(self, max_queue_size: int = 100) -> None:
        self.max_queue_size = max_queue_size
        # Map game_slug → channel → subscriber_id → Subscription
        self._subscribers: Dict[str, Dict[EventChannel, Dict[int, Subscription]]] = {}
        self._ids = itertools.count(1)

    def register(self, game_slug: str, channels: ChannelSpec = None) -> Subscription:
        """Register a subscription. Prefer :meth:`subscribe`, which always cleans up."""
        subscription = Subscription(
            next(self._ids), game_slug, _normalize_channels(channels), self.max_queue_size
        )
        game_channels = self._subscribers.setdefault(game_slug, {})
        for channel in subscription.channels:
            game_channels.setdefault(channel, {})[subscription.subscriber_id] = subscription

        channel_names = sorted(channel.value for channel in subscription.channels)
        logger.debug(f"Registered subscriber {subscription.subscriber_id} for game {game_slug} on {channel_names}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription from every channel it joined."""
        game_channels = self._subscribers.get(subscription.game_slug)
        if not game_channels:
            return

        for channel in subscription.channels:
            channel_subscribers = game_channels.get(channel)
            if not channel_subscribers:
                continue
            channel_subscribers.pop(subscription.subscriber_id, None)
            if not channel_subscribers:
                game_channels.pop(channel, None)

        if not game_channels:
            self._subscribers.pop(subscription.game_slug, None)

        logger.debug(f"Removed subscriber {subscription.subscriber_id} from game {subscription.game_slug}")

    @asynccontextmanager
    async def subscribe(self, game_slug: str, channels: ChannelSpec = None) -> AsyncIterator[Subscription]:
        """Subscribe for the lifetime of the ``async with`` block."""
        subscription = self.register(game_slug, channels)
        try:
            yield subscription
        finally:
            self.unsubscribe(subscription)

    def add_listener(
        self,
        game_slug: str,
        channels: ChannelSpec,
        callback: Callable[[Event], Optional[Awaitable[Any]]],
    ) -> Listener:
        """Invoke ``callback`` for every event, from a dedicated task.

        Must be called from a running event loop. A failing callback is logged
        and does not stop the listener.
        """
        subscription = self.register(game_slug, channels)

        async def _pump() -> None:
            async for event in subscription:
                try:
                    result = callback(event)
                    if asyncio.iscoroutine(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error(
                        f"Listener {subscription.subscriber_id} failed on {event.channel.value} event: {exc}",
                        exc_info=True,
                    )

        task = asyncio.create_task(_pump(), name=f"event-listener-{subscription.subscriber_id}")
        return Listener(self, subscription, task)

    def publish(self, game_slug: str, channel: Union[EventChannel, str], payload: dict) -> int:
        """Deliver an event to this game's subscribers on ``channel``.

        Returns the number of subscribers that received it.
        """
        channel = EventChannel(channel)
        channel_subscribers = self._subscribers.get(game_slug, {}).get(channel)
        if not channel_subscribers:
            logger.debug(f"No subscribers for {channel.value} on game {game_slug}, skipping publish")
            return 0

        event = Event(game_slug=game_slug, channel=channel, payload=payload)
        delivered = 0
        for subscription in list(channel_subscribers.values()):
            if subscription.offer(event):
                delivered += 1
            else:
                logger.warning(
                    f"Dropped {channel.value} event for slow subscriber {subscription.subscriber_id} "
                    f"in game {game_slug} (dropped={subscription.dropped})"
                )
        return delivered

    def subscriber_count(self, game_slug: str, channel: Union[EventChannel, str, None] = None) -> int:
        """Count distinct subscribers for a game, optionally on one channel."""
        game_channels = self._subscribers.get(game_slug)
        if not game_channels:
            return 0
        if channel is not None:
            return len(game_channels.get(EventChannel(channel), {}))
        return len({sid for subs in game_channels.values() for sid in subs})

    def game_count(self) -> int:
        """Number of games with at least one subscriber."""
        return len(self._subscribers)
