"""API routers."""
from qrhunt.routers import admin, auth, feedback, games, health, scans

__all__ = ["admin", "auth", "feedback", "games", "health", "scans"]
