"""Database models."""
from qrhunt.models.base import GameStatus, RankingMode
from qrhunt.models.game import Game
from qrhunt.models.node import Node, Edge
from qrhunt.models.team import Team
from qrhunt.models.team_session import TeamSession
from qrhunt.models.scan import Scan, HintUsage, GameWinner
from qrhunt.models.chat_message import ChatMessage
from qrhunt.models.feedback import TeamFeedback

__all__ = [
    "GameStatus",
    "RankingMode",
    "Game",
    "Node",
    "Edge",
    "Team",
    "TeamSession",
    "Scan",
    "HintUsage",
    "GameWinner",
    "ChatMessage",
    "TeamFeedback",
]
