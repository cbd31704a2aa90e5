"""Application settings loaded from environment / .env file."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Snoofeed application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Reddit OAuth (installed app, no secret)
    REDDIT_CLIENT_ID: Optional[str] = None
    REDDIT_REDIRECT_URI: str = "redditclone://auth"
    REDDIT_USER_AGENT: str = "RedditClone/1.0"
    REDDIT_OAUTH_SCOPES: str = "identity read vote save history"
    REDDIT_API_BASE: str = "https://oauth.reddit.com"

    # App settings
    SNOOFEED_FEED_LIMIT: int = 25
    SNOOFEED_HTTP_TIMEOUT: float = 30.0
    SNOOFEED_DEBUG: bool = False
    SNOOFEED_VERSION: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()
