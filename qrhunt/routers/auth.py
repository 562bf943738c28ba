"""Team session endpoints."""
import logging

from fastapi import APIRouter, Depends, Header, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.database import get_db
from qrhunt.dependencies import get_current_team, read_session_token
from qrhunt.models.team import Team
from qrhunt.schemas.game import CurrentTeamResponse, TeamSummary
from qrhunt.services.session_service import TeamSessionService
from qrhunt.utils.cookies import clear_team_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentTeamResponse)
async def get_me(team: Team = Depends(get_current_team)):
    """Return the signed-in team; also extends its session."""
    return CurrentTeamResponse(team=TeamSummary.model_validate(team), game_id=team.game_id)


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> None:
    """End the current session, if any, and clear the cookie."""
    token, _ = read_session_token(request, authorization)
    if token:
        await TeamSessionService(db).end_session(token)

    clear_team_session_cookie(response)
    response.status_code = 204
    return None
