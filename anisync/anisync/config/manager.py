"""
Centralized configuration management for AniSync.

Type-safe settings built on pydantic-settings. Every section reads its own
environment prefix and the shared .env file.
"""

import json
from pathlib import Path
from typing import Optional, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .. import constants as c


class DatabaseConfig(BaseSettings):
    """Connection to the relational store (PostgreSQL in production, SQLite locally)."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    url: str = Field(default="sqlite:///anisync.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Echo SQL statements")


class AniListConfig(BaseSettings):
    """Configuration for the AniList GraphQL API"""

    model_config = SettingsConfigDict(
        env_prefix="ANILIST_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    api_url: str = Field(default=c.ANILIST_API_URL, description="AniList GraphQL endpoint")
    per_page: int = Field(default=c.ANILIST_PER_PAGE, description="Media per page (max 50)")
    page_delay: float = Field(default=c.ANILIST_PAGE_DELAY, description="Delay between pages in seconds")
    timeout: int = Field(default=c.HTTP_TIMEOUT_SECONDS, description="API timeout in seconds")
    max_retries: int = Field(default=c.HTTP_RETRY_COUNT, description="Transport-level retries on 5xx")


class KitsuConfig(BaseSettings):
    """Configuration for the Kitsu JSON:API"""

    model_config = SettingsConfigDict(
        env_prefix="KITSU_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    base_url: str = Field(default=c.KITSU_API_BASE, description="Kitsu API base URL")
    page_delay: float = Field(default=c.KITSU_PAGE_DELAY, description="Delay between pages in seconds")
    timeout: int = Field(default=c.HTTP_TIMEOUT_SECONDS, description="API timeout in seconds")
    max_retries: int = Field(default=c.HTTP_RETRY_COUNT, description="Transport-level retries on 5xx")


class JikanConfig(BaseSettings):
    """Configuration for Jikan (MyAnimeList) API"""

    model_config = SettingsConfigDict(
        env_prefix="JIKAN_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    base_url: str = Field(default=c.JIKAN_BASE_URL, description="Jikan API base URL")
    per_page: int = Field(default=c.JIKAN_PER_PAGE, description="Items per page (max 25)")
    rate_limit_delay: float = Field(default=c.JIKAN_RATE_LIMIT_DELAY, description="Rate limit delay in seconds")
    timeout: int = Field(default=10, description="API timeout in seconds")
    max_retries: int = Field(default=c.HTTP_RETRY_COUNT, description="Transport-level retries on 5xx")


class SyncConfig(BaseSettings):
    """Configuration for the page-by-page sync loop"""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    max_pages: int = Field(default=c.DEFAULT_MAX_PAGES, description="Default number of pages per run")
    page_error_pause: float = Field(default=c.PAGE_ERROR_PAUSE, description="Pause after a failed page fetch")
    max_reported_errors: int = Field(default=c.MAX_REPORTED_SYNC_ERRORS, description="Errors returned to the caller")


class MatchConfig(BaseSettings):
    """Thresholds for Kitsu reconciliation"""

    model_config = SettingsConfigDict(
        env_prefix="MATCH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    confident_threshold: float = Field(default=c.CONFIDENT_MATCH_THRESHOLD, ge=0.0, le=1.0)
    uncertain_threshold: float = Field(default=c.UNCERTAIN_MATCH_THRESHOLD, ge=0.0, le=1.0)
    candidate_limit: int = Field(default=c.MATCH_CANDIDATE_LIMIT, ge=1)
    min_similarity: float = Field(default=c.MATCH_MIN_SIMILARITY, ge=0.0, le=1.0)
    max_reported_errors: int = Field(default=c.MAX_REPORTED_RECONCILE_ERRORS)

    @model_validator(mode="after")
    def check_band_order(self) -> "MatchConfig":
        """The uncertain band must sit below the confident band."""
        if self.uncertain_threshold > self.confident_threshold:
            raise ValueError("uncertain_threshold must not exceed confident_threshold")
        return self


class LoggingConfig(BaseSettings):
    """Configuration for logging behavior"""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    file_level: str = Field(default="INFO", description="File logging level")
    console_level: str = Field(default="WARNING", description="Console logging level")
    log_file: str = Field(default="anisync.log", description="Log file path")

    @field_validator('file_level', 'console_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is one of the allowed values"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class ProcessingConfig(BaseSettings):
    """Configuration for background jobs"""

    model_config = SettingsConfigDict(
        env_prefix="PROCESSING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    thread_pool_size: int = Field(default=2, description="Worker threads for detached sync jobs")


class AniSyncConfig(BaseSettings):
    """
    Main configuration class for AniSync.

    Single source of truth for all configuration, loaded from environment
    variables and .env files.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    anilist: AniListConfig = Field(default_factory=AniListConfig)
    kitsu: KitsuConfig = Field(default_factory=KitsuConfig)
    jikan: JikanConfig = Field(default_factory=JikanConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    match: MatchConfig = Field(default_factory=MatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)

    dry_run: bool = Field(default=False, description="Fetch and normalize without writing")

    def save_to_file(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode='json'), f, indent=2, ensure_ascii=False)

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> "AniSyncConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return cls(**data)


# Global configuration instance
_config_instance: Optional[AniSyncConfig] = None


def setup_config(
    database_url: Optional[str] = None,
    env_file: Optional[Union[str, Path]] = None,
    **kwargs
) -> AniSyncConfig:
    """
    Set up the global configuration.

    Args:
        database_url: Override for the database URL
        env_file: Path to .env file
        **kwargs: Additional configuration overrides
    """
    global _config_instance

    config_kwargs = {}
    if env_file:
        config_kwargs["_env_file"] = str(env_file)
    if database_url:
        config_kwargs["database"] = DatabaseConfig(url=database_url)

    config_kwargs.update(kwargs)

    _config_instance = AniSyncConfig(**config_kwargs)
    return _config_instance


def get_config() -> AniSyncConfig:
    """Get the global configuration instance, creating it on first use."""
    global _config_instance
    if _config_instance is None:
        _config_instance = AniSyncConfig()
    return _config_instance


def reload_config() -> AniSyncConfig:
    """Reload configuration from environment and .env files."""
    global _config_instance
    _config_instance = AniSyncConfig()
    return _config_instance


def get_database_config() -> DatabaseConfig:
    return get_config().database


def get_sync_config() -> SyncConfig:
    return get_config().sync


def get_match_config() -> MatchConfig:
    return get_config().match


def get_logging_config() -> LoggingConfig:
    return get_config().logging


def get_processing_config() -> ProcessingConfig:
    return get_config().processing


__all__ = [
    "DatabaseConfig",
    "AniListConfig",
    "KitsuConfig",
    "JikanConfig",
    "SyncConfig",
    "MatchConfig",
    "LoggingConfig",
    "ProcessingConfig",
    "AniSyncConfig",
    "setup_config",
    "get_config",
    "reload_config",
    "get_database_config",
    "get_sync_config",
    "get_match_config",
    "get_logging_config",
    "get_processing_config",
]
