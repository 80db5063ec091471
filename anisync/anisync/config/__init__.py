"""
Configuration package for AniSync.

This package provides centralized, type-safe configuration management.
"""

from .manager import (
    DatabaseConfig,
    AniListConfig,
    KitsuConfig,
    JikanConfig,
    SyncConfig,
    MatchConfig,
    LoggingConfig,
    ProcessingConfig,
    AniSyncConfig,
    setup_config,
    get_config,
    reload_config,
    get_database_config,
    get_sync_config,
    get_match_config,
    get_logging_config,
    get_processing_config,
)

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
