"""Team presence tracking from periodic heartbeats.

A team counts as connected while its last heartbeat is younger than the
timeout. Crossing the threshold in either direction publishes a
``team-connection`` event; repeated heartbeats from a connected team are
silent.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, UTC, timedelta
from typing import Dict, Optional

from qrhunt.schemas.events import TeamConnectionPayload
from qrhunt.services.event_bus import EventBus, EventChannel

logger = logging.getLogger(__name__)


@dataclass
class TeamPresence:
    team_id: str
    team_name: str
    last_seen_at: datetime
    is_connected: bool


class PresenceTracker:
    """Turn heartbeats into connected/disconnected state per game."""

    def __init__(self, event_bus: EventBus, timeout_seconds: float = 30):
        self.event_bus = event_bus
        self.timeout = timedelta(seconds=timeout_seconds)
        # Map game_slug → team_id → TeamPresence
        self._games: Dict[str, Dict[str, TeamPresence]] = {}

    def heartbeat(self, game_slug: str, team_id: str, team_name: str, now: Optional[datetime] = None) -> None:
        """Record a heartbeat; publishes only when the team was not connected."""
        now = now or datetime.now(UTC)
        teams = self._games.setdefault(game_slug, {})
        presence = teams.get(team_id)

        if presence is None:
            presence = TeamPresence(team_id=team_id, team_name=team_name, last_seen_at=now, is_connected=False)
            teams[team_id] = presence

        presence.team_name = team_name
        presence.last_seen_at = now

        if not presence.is_connected:
            presence.is_connected = True
            logger.info(f"Team {team_name} ({team_id}) connected to {game_slug}")
            self._publish(game_slug, presence, now)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Mark teams with stale heartbeats as disconnected. Returns how many changed."""
        now = now or datetime.now(UTC)
        changed = 0
        for game_slug, teams in self._games.items():
            for presence in teams.values():
                if presence.is_connected and now - presence.last_seen_at >= self.timeout:
                    presence.is_connected = False
                    changed += 1
                    logger.info(f"Team {presence.team_name} ({presence.team_id}) disconnected from {game_slug}")
                    self._publish(game_slug, presence, now)
        return changed

    def is_connected(self, game_slug: str, team_id: str, now: Optional[datetime] = None) -> bool:
        presence = self._games.get(game_slug, {}).get(team_id)
        if presence is None:
            return False
        now = now or datetime.now(UTC)
        return now - presence.last_seen_at < self.timeout

    def get_team_connections(self, game_slug: str, now: Optional[datetime] = None) -> list[dict]:
        now = now or datetime.now(UTC)
        return [
            {
                "team_id": presence.team_id,
                "team_name": presence.team_name,
                "is_connected": now - presence.last_seen_at < self.timeout,
                "last_seen_at": presence.last_seen_at,
            }
            for presence in self._games.get(game_slug, {}).values()
        ]

    def connected_team_ids(self, game_slug: str, now: Optional[datetime] = None) -> set[str]:
        return {entry["team_id"] for entry in self.get_team_connections(game_slug, now) if entry["is_connected"]}

    def connected_team_count(self, game_slug: str, now: Optional[datetime] = None) -> int:
        return len(self.connected_team_ids(game_slug, now))

    def forget_game(self, game_slug: str) -> None:
        """Drop all presence state for a game without publishing anything."""
        if self._games.pop(game_slug, None) is not None:
            logger.info(f"Cleared presence for {game_slug}")

    def _publish(self, game_slug: str, presence: TeamPresence, now: datetime) -> None:
        payload = TeamConnectionPayload(
            team_id=presence.team_id,
            team_name=presence.team_name,
            is_connected=presence.is_connected,
            timestamp=now,
        )
        self.event_bus.publish(game_slug, EventChannel.TEAM_CONNECTION, payload.to_payload())
