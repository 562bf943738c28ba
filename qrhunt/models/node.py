"""Node (clue) and Edge models for the hunt graph."""
from sqlalchemy import Column, String, DateTime, Integer, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column


class Node(Base):
    """A clue/checkpoint. Teams scan ``node_key`` to complete it."""
    __tablename__ = "nodes"

    node_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(
        ForeignKey("games.game_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_key = Column(String(100), nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=True)

    is_start = Column(Boolean, nullable=False, default=False)
    is_end = Column(Boolean, nullable=False, default=False)
    activated = Column(Boolean, nullable=False, default=True)

    points = Column(Integer, nullable=False, default=100)
    hint = Column(Text, nullable=True)
    password_hash = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("game_id", "node_key", name="uq_nodes_game_key"),
    )

    game = relationship("Game", back_populates="nodes")

    @property
    def password_required(self) -> bool:
        return self.password_hash is not None

    def __repr__(self):
        return f"<Node(node_id={self.node_id}, node_key={self.node_key}, title={self.title})>"


class Edge(Base):
    """Directed clue-ordering hint between two nodes. Never enforced on scans."""
    __tablename__ = "edges"

    edge_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(
        ForeignKey("games.game_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_node_id = get_uuid_column(ForeignKey("nodes.node_id", ondelete="CASCADE"), nullable=False)
    to_node_id = get_uuid_column(ForeignKey("nodes.node_id", ondelete="CASCADE"), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("from_node_id", "to_node_id", name="uq_edges_from_to"),
    )

    def __repr__(self):
        return f"<Edge(from={self.from_node_id}, to={self.to_node_id})>"
