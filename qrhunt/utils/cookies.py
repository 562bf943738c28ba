"""HTTP cookie helpers."""
from fastapi import Response

from qrhunt.config import get_settings


def set_team_session_cookie(response: Response, token: str) -> None:
    """Set the team session cookie with secure defaults.

    The cookie lives as long as a fresh session; the server extends the
    session itself on use, so a browser that keeps playing stays signed in
    until the cookie's own max-age runs out and the team re-joins.
    """
    settings = get_settings()
    max_age = settings.team_session_hours * 60 * 60

    response.set_cookie(
        key=settings.team_session_cookie_name,
        value=token,
        httponly=True,
        # Only disabled for local development
        secure=settings.environment != "development",
        samesite="lax",
        max_age=max_age,
        expires=max_age,
        path="/",
    )


def clear_team_session_cookie(response: Response) -> None:
    """Remove the team session cookie from the client."""
    settings = get_settings()
    response.delete_cookie(key=settings.team_session_cookie_name, path="/")
