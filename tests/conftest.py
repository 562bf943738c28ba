"""Pytest configuration and fixtures."""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"

# Ensure the application uses a dedicated SQLite database during tests
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"

from qrhunt.config import get_settings
from qrhunt.models import Edge, Game, GameStatus, Node, Team
from qrhunt.services.event_bus import EventBus
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.utils.cache import LeaderboardCache
from qrhunt.utils.lock_client import LockClient
from qrhunt.utils.passwords import hash_password

settings = get_settings()


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply database migrations against the test database."""
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(alembic_cfg, "head")

    yield

    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # Still open on Windows; the next run removes it
            pass


@pytest.fixture
async def test_engine():
    """Engine on the migrated test database, bound to the test's event loop."""
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        connect_args={"timeout": 30},
    )

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory for tests that need several independent sessions."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()
        await session.close()


@pytest.fixture
def event_bus():
    return EventBus(max_queue_size=100)


@pytest.fixture
def leaderboard_cache():
    return LeaderboardCache(default_ttl=60)


@pytest.fixture
def lock_client():
    return LockClient(default_timeout=10)


@pytest.fixture
def presence_tracker(event_bus):
    return PresenceTracker(event_bus, timeout_seconds=30)


@pytest.fixture
async def test_app(session_factory, event_bus, leaderboard_cache, lock_client, presence_tracker):
    """App wired to the test database and fresh live state."""
    from qrhunt.main import app
    from qrhunt.database import get_db

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.event_bus = event_bus
    app.state.leaderboard_cache = leaderboard_cache
    app.state.lock_client = lock_client
    app.state.presence_tracker = presence_tracker
    yield app
    app.dependency_overrides.clear()


DEFAULT_NODES = (
    {"key": "START", "title": "Old Oak", "is_start": True},
    {"key": "FOUNTAIN", "title": "Fountain", "hint": "Follow the sound of water"},
    {"key": "FINISH", "title": "Clock Tower", "is_end": True},
)


@dataclass
class Hunt:
    """A seeded game with its nodes keyed by ``node_key``."""

    game: Game
    nodes: dict[str, Node]
    teams: list[Team] = field(default_factory=list)

    @property
    def slug(self) -> str:
        return self.game.slug


@pytest.fixture
async def hunt_factory(db_session):
    """Factory for seeding a game, its graph and its teams.

    ``node_defs`` entries accept ``key``, ``title``, ``points``, ``is_start``,
    ``is_end``, ``activated``, ``hint`` and ``password``. Edges default to a
    chain in definition order. Teams start on the first start node unless
    ``assign_start`` is False.
    """

    async def _create_hunt(
        node_defs=DEFAULT_NODES,
        edges=None,
        team_names=("Red Foxes", "Blue Jays"),
        status: str = GameStatus.ACTIVE.value,
        assign_start: bool = True,
        **game_kwargs,
    ) -> Hunt:
        unique_id = uuid.uuid4().hex[:8]
        base_time = datetime.now(UTC) - timedelta(hours=1)

        game = Game(
            game_id=uuid.uuid4(),
            name=game_kwargs.pop("name", f"Hunt {unique_id}"),
            slug=f"hunt-{unique_id}",
            status=status,
            **game_kwargs,
        )
        db_session.add(game)
        await db_session.flush()

        nodes: dict[str, Node] = {}
        for index, node_def in enumerate(node_defs):
            password = node_def.get("password")
            node = Node(
                node_id=uuid.uuid4(),
                game_id=game.game_id,
                node_key=node_def["key"],
                title=node_def.get("title", node_def["key"].title()),
                content=node_def.get("content", f"Clue text for {node_def['key']}"),
                is_start=node_def.get("is_start", False),
                is_end=node_def.get("is_end", False),
                activated=node_def.get("activated", True),
                points=node_def.get("points", 100),
                hint=node_def.get("hint"),
                password_hash=hash_password(password) if password else None,
                # Explicit times keep list order equal to definition order
                created_at=base_time + timedelta(seconds=index),
            )
            db_session.add(node)
            nodes[node.node_key] = node
        await db_session.flush()

        if edges is None:
            keys = [node_def["key"] for node_def in node_defs]
            edges = list(zip(keys, keys[1:]))
        for order, (from_key, to_key) in enumerate(edges):
            db_session.add(
                Edge(
                    edge_id=uuid.uuid4(),
                    game_id=game.game_id,
                    from_node_id=nodes[from_key].node_id,
                    to_node_id=nodes[to_key].node_id,
                    sort_order=order,
                )
            )

        start_node = next((node for node in nodes.values() if node.is_start), None)
        teams = []
        for index, name in enumerate(team_names):
            team = Team(
                team_id=uuid.uuid4(),
                game_id=game.game_id,
                code=f"T{index}{unique_id[:4].upper()}",
                name=name,
                start_node_id=start_node.node_id if assign_start and start_node else None,
                created_at=base_time + timedelta(seconds=index),
            )
            db_session.add(team)
            teams.append(team)

        await db_session.commit()
        return Hunt(game=game, nodes=nodes, teams=teams)

    return _create_hunt


@pytest.fixture
def scan_service_factory(event_bus, leaderboard_cache, lock_client):
    """Build a ScanService on a given session with the shared live state."""
    from qrhunt.services.scan_service import ScanService

    def _create(session):
        return ScanService(session, event_bus, leaderboard_cache, lock_client)

    return _create
