"""Tests for organiser/team chat."""
import uuid

import pytest

from qrhunt.services.chat_service import ChatService
from qrhunt.services.event_bus import EventChannel
from qrhunt.utils.exceptions import InvalidChatMessageError, TeamNotFoundError


async def test_team_sees_broadcasts_direct_messages_and_own_messages(db_session, hunt_factory):
    hunt = await hunt_factory()
    red, blue = hunt.teams
    chat = ChatService(db_session)
    game_id = hunt.game.game_id

    await chat.post_message(game_id, "admin", "Admin", "Welcome everyone!")
    await chat.post_message(game_id, "admin", "Admin", "Red, check the oak", recipient_type="team", recipient_id=red.team_id)
    await chat.post_message(game_id, "admin", "Admin", "Blue, look up", recipient_type="team", recipient_id=blue.team_id)
    await chat.post_team_message(red.team_id, "We are lost")

    red_view = [message.message for message in await chat.list_for_team(game_id, red.team_id)]
    blue_view = [message.message for message in await chat.list_for_team(game_id, blue.team_id)]
    everything = await chat.list_for_game(game_id)

    assert red_view == ["Welcome everyone!", "Red, check the oak", "We are lost"]
    assert blue_view == ["Welcome everyone!", "Blue, look up", "We are lost"]
    assert len(everything) == 4


async def test_team_messages_are_broadcasts(db_session, hunt_factory):
    hunt = await hunt_factory()
    red = hunt.teams[0]

    message = await ChatService(db_session).post_team_message(red.team_id, "  Found it!  ")

    assert message.sender_type == "team"
    assert message.sender_name == red.name
    assert message.recipient_type == "all"
    assert message.message == "Found it!"


async def test_teams_cannot_address_a_team(db_session, hunt_factory):
    hunt = await hunt_factory()
    red, blue = hunt.teams

    with pytest.raises(InvalidChatMessageError):
        await ChatService(db_session).post_message(
            hunt.game.game_id,
            "team",
            red.name,
            "psst",
            sender_id=red.team_id,
            recipient_type="team",
            recipient_id=blue.team_id,
        )


async def test_blank_and_malformed_messages_are_rejected(db_session, hunt_factory):
    hunt = await hunt_factory()
    chat = ChatService(db_session)

    with pytest.raises(InvalidChatMessageError):
        await chat.post_message(hunt.game.game_id, "admin", "Admin", "   ")
    with pytest.raises(InvalidChatMessageError):
        await chat.post_message(hunt.game.game_id, "robot", "Bot", "beep")
    with pytest.raises(InvalidChatMessageError):
        await chat.post_message(hunt.game.game_id, "admin", "Admin", "hi", recipient_type="team")


async def test_unknown_team_cannot_post(db_session):
    with pytest.raises(TeamNotFoundError):
        await ChatService(db_session).post_team_message(uuid.uuid4(), "hello")


async def test_message_is_published_on_chat_channel(db_session, hunt_factory, event_bus):
    hunt = await hunt_factory()

    async with event_bus.subscribe(hunt.slug, EventChannel.CHAT) as subscription:
        await ChatService(db_session, event_bus).post_message(hunt.game.game_id, "admin", "Admin", "Go!")
        event = subscription.get_nowait()

    assert event.payload["message"] == "Go!"
    assert event.payload["senderType"] == "admin"
    assert event.payload["recipientType"] == "all"
    assert event.payload["createdAt"].endswith("Z")
