"""Application configuration management."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./qrhunt.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    environment: str = "development"
    admin_code: str = "admin123"
    allowed_origins: str = ""  # Comma-separated; empty means local dev servers
    log_dir: str = "logs"

    # Leaderboard
    leaderboard_cache_ttl_seconds: float = 5.0  # Short TTL; scans invalidate explicitly

    # Live updates
    event_queue_size: int = 100  # Per-subscriber buffer before events are dropped
    presence_timeout_seconds: int = 30  # Team counts as disconnected after this much silence
    presence_sweep_interval_seconds: int = 10

    # Team sessions
    team_session_hours: int = 48  # Extended on every authenticated request
    session_cleanup_interval_seconds: int = 3600
    team_session_cookie_name: str = "team_token"

    # Game defaults
    default_base_points: int = 100
    default_time_bonus_multiplier: float = 1.5
    default_time_bonus_window_minutes: int = 5
    team_code_length: int = 6
    team_code_charset: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # No 0/O/1/I

    # Concurrency
    lock_timeout_seconds: int = 10

    # Transient store failures
    transient_retry_attempts: int = 3
    transient_retry_backoff_seconds: float = 0.1

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate tuning values and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if self.leaderboard_cache_ttl_seconds <= 0:
            raise ValueError("leaderboard_cache_ttl_seconds must be positive")

        if self.presence_timeout_seconds < 1:
            raise ValueError("presence_timeout_seconds must be at least 1 second")

        if self.event_queue_size < 1:
            raise ValueError("event_queue_size must be at least 1")

        if self.default_time_bonus_multiplier < 1:
            raise ValueError("default_time_bonus_multiplier must be at least 1.0")

        if self.transient_retry_attempts < 1:
            raise ValueError("transient_retry_attempts must be at least 1")

        if self.team_session_hours < 1:
            raise ValueError("team_session_hours must be at least 1")

        if self.environment == "production" and self.admin_code == "admin123":
            raise ValueError("admin_code must be changed from default value in production")

        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning("Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")

        # render_as_string re-encodes special characters in the password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    @property
    def cors_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return origins or [
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:3000",
        ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
