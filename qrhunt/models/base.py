"""Base utilities and enums for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class GameStatus(str, Enum):
    """Game lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class RankingMode(str, Enum):
    """Leaderboard ordering policy."""
    POINTS = "points"
    NODES = "nodes"
    TIME = "time"


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID type: native on PostgreSQL, hex string elsewhere."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return value.hex

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get a UUID column that works on both SQLite and PostgreSQL.

    Example:
        game_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        team_id = get_uuid_column(ForeignKey("teams.team_id"), nullable=True)
    """
    return Column(AdaptiveUUID(), *args, **kwargs)
