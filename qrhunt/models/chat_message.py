"""Chat message model."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index
from datetime import datetime, UTC
import uuid

from qrhunt.database import Base
from qrhunt.models.base import get_uuid_column


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    message_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game_id = get_uuid_column(ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False)
    sender_type = Column(String(10), nullable=False)  # 'admin' or 'team'
    sender_id = get_uuid_column(nullable=True)
    sender_name = Column(String(100), nullable=False)
    recipient_type = Column(String(10), nullable=False, default="all")  # 'all' or 'team'
    recipient_id = get_uuid_column(nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        Index("ix_chat_messages_game_created", "game_id", "created_at"),
    )

    def __repr__(self):
        return f"<ChatMessage(message_id={self.message_id}, sender={self.sender_name})>"
