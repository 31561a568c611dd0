# app/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.

    These settings drive:
    - Google Meet API / OAuth client credentials
    - Clockify API access and pacing
    - Sync window, dry-run mode and scheduling
    - Token storage DB and the internal API key
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Meet Clockify Sync"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level for app loggers.")

    # --- Google Meet / OAuth ---
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str = Field(
        "http://localhost:3000/callback",
        description="OAuth redirect URI registered for the Google client.",
    )
    GOOGLE_USER_RESOURCE: str | None = Field(
        default=None,
        description=(
            "Meet participant user resource (e.g. 'users/1234567890'). When set, "
            "only that participant's sessions are aggregated."
        ),
    )
    GOOGLE_MEET_BASE_URL: str = "https://meet.googleapis.com/v2"

    # --- Clockify ---
    CLOCKIFY_API_TOKEN: str | None = None
    CLOCKIFY_API_BASE: str = "https://api.clockify.me/api"
    CLOCKIFY_API_DELAY_MS: int = Field(
        default=50,
        ge=0,
        le=10000,
        description="Pause after every successful Clockify write, in milliseconds.",
    )
    MEET_PROJECT_NAME: str = Field(
        default="Google Meet",
        min_length=1,
        description="Clockify project that receives the synced meeting entries.",
    )

    # --- Sync behaviour ---
    SYNC_DAYS: int = Field(
        default=7,
        ge=1,
        le=365,
        description="Number of days back from now covered by one sync pass.",
    )
    DRY_RUN: bool = Field(
        default=False,
        description="When true, passes count intended creations without writing.",
    )
    RATE_LIMIT_COOLDOWN_MS: int = Field(
        default=200,
        ge=0,
        le=10000,
        description="Pause after a rate-limited (429) create call, in milliseconds.",
    )
    SYNC_SCHEDULE: str = Field(
        default="0 * * * *",
        description="Crontab expression for the in-process scheduler.",
    )
    ENABLE_SCHEDULER: bool = Field(
        default=False,
        description="Start the in-process APScheduler job on application startup.",
    )

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./meet_sync.db",
        description="SQLAlchemy-compatible database URL (OAuth token storage).",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
