"""Post-game team feedback."""
import logging
import uuid
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.models.feedback import TeamFeedback
from qrhunt.models.team import Team
from qrhunt.schemas.feedback import FeedbackSchema, GameFeedbackSummary
from qrhunt.utils.exceptions import FeedbackNotFoundError, InvalidFeedbackError, TeamNotFoundError

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 1000


def _apply(feedback: TeamFeedback, team_name: str, rating: int, comment: Optional[str], now: datetime) -> None:
    feedback.team_name = team_name
    feedback.rating = rating
    feedback.comment = comment
    feedback.updated_at = now


class FeedbackService:
    """Store one rating per team and summarize them per game."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_for_team(self, game_id: UUID, team_id: UUID) -> Optional[TeamFeedback]:
        result = await self.db.execute(
            select(TeamFeedback).where(TeamFeedback.game_id == game_id, TeamFeedback.team_id == team_id)
        )
        return result.scalar_one_or_none()

    async def submit_feedback(self, team_id: UUID, rating: int, comment: Optional[str] = None) -> TeamFeedback:
        """Create or overwrite the team's feedback for its game.

        Blank comments are stored as None.

        Raises:
            TeamNotFoundError: If the team does not exist.
            InvalidFeedbackError: If the rating is outside 1-5 or the comment is too long.
        """
        if not isinstance(rating, int) or isinstance(rating, bool) or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidFeedbackError()
        comment = (comment or "").strip() or None
        if comment and len(comment) > MAX_COMMENT_LENGTH:
            raise InvalidFeedbackError()

        team = await self.db.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError()
        # Rollback expires the team, so read what is needed up front
        game_id, team_name = team.game_id, team.name
        now = datetime.now(UTC)
        feedback = await self._get_for_team(game_id, team_id)
        if feedback is None:
            feedback = TeamFeedback(
                feedback_id=uuid.uuid4(),
                game_id=game_id,
                team_id=team_id,
                created_at=now,
            )
            self.db.add(feedback)

        _apply(feedback, team_name, rating, comment, now)

        try:
            await self.db.commit()
        except IntegrityError:
            # Two submissions raced on the insert; overwrite the row that won
            await self.db.rollback()
            feedback = await self._get_for_team(game_id, team_id)
            if feedback is None:
                raise
            _apply(feedback, team_name, rating, comment, now)
            await self.db.commit()

        await self.db.refresh(feedback)
        logger.info(f"Team {team_name} rated game {game_id}: {rating}/5")
        return feedback

    async def get_team_feedback(self, team: Team) -> Optional[TeamFeedback]:
        return await self._get_for_team(team.game_id, team.team_id)

    async def list_game_feedback(self, game_id: UUID) -> list[TeamFeedback]:
        """Feedback for a game, newest first."""
        result = await self.db.execute(
            select(TeamFeedback)
            .where(TeamFeedback.game_id == game_id)
            .order_by(TeamFeedback.created_at.desc(), TeamFeedback.feedback_id)
        )
        return list(result.scalars().all())

    async def summarize_game_feedback(self, game_id: UUID) -> GameFeedbackSummary:
        """All feedback for a game with the average rating rounded to one decimal (None when empty)."""
        feedback = await self.list_game_feedback(game_id)
        average = None
        if feedback:
            average = round(sum(entry.rating for entry in feedback) / len(feedback), 1)
        return GameFeedbackSummary(
            feedback=[FeedbackSchema.model_validate(entry) for entry in feedback],
            average_rating=average,
            count=len(feedback),
        )

    async def delete_feedback(self, feedback_id: UUID) -> None:
        """Remove one feedback entry.

        Raises:
            FeedbackNotFoundError: If no such entry exists.
        """
        feedback = await self.db.get(TeamFeedback, feedback_id)
        if feedback is None:
            raise FeedbackNotFoundError()
        team_name = feedback.team_name
        await self.db.delete(feedback)
        await self.db.commit()
        logger.info(f"Deleted feedback {feedback_id} from team {team_name}")
