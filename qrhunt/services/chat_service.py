"""Game chat between the organiser and teams."""
import logging
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID
import uuid

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.models.chat_message import ChatMessage
from qrhunt.schemas.game import ChatMessageSchema
from qrhunt.services.event_bus import EventBus, EventChannel
from qrhunt.services.graph_store import GraphStore
from qrhunt.utils.exceptions import GameNotFoundError, InvalidChatMessageError, TeamNotFoundError

logger = logging.getLogger(__name__)

SENDER_TYPES = ("admin", "team")
RECIPIENT_TYPES = ("all", "team")


class ChatService:
    def __init__(self, db: AsyncSession, event_bus: Optional[EventBus] = None):
        self.db = db
        self.event_bus = event_bus
        self.store = GraphStore(db)

    async def post_message(
        self,
        game_id: UUID,
        sender_type: str,
        sender_name: str,
        message: str,
        sender_id: Optional[UUID] = None,
        recipient_type: str = "all",
        recipient_id: Optional[UUID] = None,
    ) -> ChatMessage:
        """Persist a message and publish it on the game's ``chat`` channel.

        Teams may only broadcast; the organiser may also address one team.

        Raises:
            GameNotFoundError: If the game does not exist.
            InvalidChatMessageError: If the sender/recipient combination is not allowed.
        """
        if sender_type not in SENDER_TYPES or recipient_type not in RECIPIENT_TYPES:
            raise InvalidChatMessageError()
        if recipient_type == "team" and (sender_type == "team" or recipient_id is None):
            raise InvalidChatMessageError("Teams can only send messages to everyone or the admin")

        text = message.strip()
        if not text:
            raise InvalidChatMessageError("Message is empty")

        game = await self.store.get_game(game_id)
        if not game:
            raise GameNotFoundError()

        chat_message = ChatMessage(
            message_id=uuid.uuid4(),
            game_id=game_id,
            sender_type=sender_type,
            sender_id=sender_id,
            sender_name=sender_name,
            recipient_type=recipient_type,
            recipient_id=recipient_id if recipient_type == "team" else None,
            message=text,
            created_at=datetime.now(UTC),
        )
        self.db.add(chat_message)
        await self.db.commit()

        logger.info(f"Chat message from {sender_type} {sender_name} in {game.slug}")
        if self.event_bus is not None:
            payload = ChatMessageSchema.model_validate(chat_message).to_payload()
            self.event_bus.publish(game.slug, EventChannel.CHAT, payload)
        return chat_message

    async def post_team_message(self, team_id: UUID, message: str) -> ChatMessage:
        """Broadcast a message from a team to its game."""
        team = await self.store.get_team(team_id)
        if not team:
            raise TeamNotFoundError()
        return await self.post_message(
            game_id=team.game_id,
            sender_type="team",
            sender_id=team.team_id,
            sender_name=team.name,
            message=message,
        )

    async def list_for_team(self, game_id: UUID, team_id: UUID, limit: int = 100) -> list[ChatMessage]:
        """Broadcasts, messages addressed to the team, and the team's own messages, oldest first."""
        result = await self.db.execute(
            select(ChatMessage)
            .where(
                ChatMessage.game_id == game_id,
                or_(
                    ChatMessage.recipient_type == "all",
                    and_(ChatMessage.recipient_type == "team", ChatMessage.recipient_id == team_id),
                    and_(ChatMessage.sender_type == "team", ChatMessage.sender_id == team_id),
                ),
            )
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def list_for_game(self, game_id: UUID, limit: int = 100) -> list[ChatMessage]:
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.game_id == game_id)
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))
