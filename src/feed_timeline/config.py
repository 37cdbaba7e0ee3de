"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
feed timeline service, loading and validating environment variables at
startup.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from feed_timeline.timeline.models import FeedTuning

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite, for local runs) connection string",
    )
    pool_size: int = Field(
        default=5,
        alias="DATABASE_POOL_SIZE",
        description="Connection pool size",
        ge=1,
    )
    echo: bool = Field(
        default=False,
        alias="DATABASE_ECHO",
        description="Echo SQL statements for debugging",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or SQLite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings. Redis is optional."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string for the shared boost cache",
    )
    boost_cache_ttl_seconds: int = Field(
        default=60,
        alias="REDIS_BOOST_CACHE_TTL_SECONDS",
        description="TTL for the cached active-boost listing",
        ge=1,
    )
    key_prefix: str = Field(
        default="feed:",
        alias="REDIS_KEY_PREFIX",
        description="Prefix for cache keys",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class FeedSettings(BaseSettings):
    """Paging, horizon and relevance thresholds for feed fetching."""

    model_config = SettingsConfigDict(env_prefix="FEED_", extra="ignore")

    page_size: int = Field(
        default=25,
        alias="FEED_PAGE_SIZE",
        description="Rows read from the feed log per page",
        ge=1,
    )
    high_signal_limit: int = Field(
        default=15,
        alias="FEED_HIGH_SIGNAL_LIMIT",
        description="High-signal rows read first on each backfill",
        ge=0,
    )
    unseen_horizon_days: float = Field(
        default=5.0,
        alias="FEED_UNSEEN_HORIZON_DAYS",
        description="Backfill only considers unseen rows newer than this many days",
        gt=0,
    )
    seen_comment_window_days: float = Field(
        default=5.0,
        alias="FEED_SEEN_COMMENT_WINDOW_DAYS",
        description="Comments whose thread was opened within this window are suppressed",
        gt=0,
    )
    bootstrap_max_attempts: int = Field(
        default=5,
        alias="FEED_BOOTSTRAP_MAX_ATTEMPTS",
        description="Short backfill pages tolerated while filling an empty feed",
        ge=1,
    )
    bootstrap_min_items: int = Field(
        default=10,
        alias="FEED_BOOTSTRAP_MIN_ITEMS",
        description="A backfill page with at least this many items ends bootstrap",
        ge=1,
    )
    prob_change_threshold: float = Field(
        default=0.055,
        alias="FEED_PROB_CHANGE_THRESHOLD",
        description="Minimum absolute probability move for a movement item",
        gt=0,
        lt=1,
    )
    min_comment_likes: int = Field(
        default=0,
        alias="FEED_MIN_COMMENT_LIKES",
        description="Comments need strictly more likes than this",
        ge=0,
    )
    default_key: str = Field(
        default="home",
        alias="FEED_DEFAULT_KEY",
        description="Feed key used when none is given",
    )

    def to_tuning(self) -> FeedTuning:
        """Build the FeedTuning used by the controller."""
        return FeedTuning(
            page_size=self.page_size,
            high_signal_limit=self.high_signal_limit,
            unseen_horizon=timedelta(days=self.unseen_horizon_days),
            seen_comment_window=timedelta(days=self.seen_comment_window_days),
            bootstrap_max_attempts=self.bootstrap_max_attempts,
            bootstrap_min_items=self.bootstrap_min_items,
            prob_change_threshold=self.prob_change_threshold,
            min_comment_likes=self.min_comment_likes,
        )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from feed_timeline.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.feed.to_tuning())
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested configuration groups
    #
    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    feed: FeedSettings = Field(
        default_factory=lambda: FeedSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "feed": {
                "page_size": str(self.feed.page_size),
                "high_signal_limit": str(self.feed.high_signal_limit),
                "unseen_horizon_days": str(self.feed.unseen_horizon_days),
                "prob_change_threshold": str(self.feed.prob_change_threshold),
                "default_key": self.feed.default_key,
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (for tests that change the environment)."""
    get_settings.cache_clear()
