"""
Tests for the foundation components: centralized logging and configuration.
"""

import logging
import tempfile
from pathlib import Path

import pytest

from anisync.anisync.logging import (
    setup_logging, get_logger, set_log_level, temporary_log_level, log_api_call,
    AniSyncError, ConfigError, APIError, StoreError, ValidationError, ReviewError
)
from anisync.anisync.config import (
    setup_config, get_config, reload_config, AniSyncConfig, DatabaseConfig, MatchConfig,
    LoggingConfig, get_database_config, get_sync_config, get_match_config,
    get_logging_config, get_processing_config
)


class TestLogging:
    def test_setup_logging(self):
        logger_instance = setup_logging()
        assert logger_instance is not None
        assert setup_logging() is logger_instance

    def test_get_logger(self):
        logger = get_logger("test.module")
        assert logger.name == "test.module"
        assert len(logger.handlers) == 0  # Should use root handlers

    def test_log_levels(self):
        set_log_level("DEBUG", "console")
        set_log_level("INFO", "file")
        set_log_level("WARNING", "both")

    def test_temporary_log_level(self):
        root_logger = logging.getLogger()
        initial_level = root_logger.level

        with temporary_log_level("DEBUG", "console"):
            pass

        assert root_logger.level == initial_level

    def test_api_call_masks_secrets(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="anisync.http"):
            log_api_call("https://kitsu.io/api/edge/anime", "GET", {"page[limit]": 20, "api_key": "hunter2"})
        assert "hunter2" not in caplog.text
        assert "page[limit]" in caplog.text

    def test_custom_exceptions(self):
        for exc in (ConfigError, APIError, StoreError, ValidationError, ReviewError):
            with pytest.raises(AniSyncError):
                raise exc("boom")

        err = APIError("AniList API error", status_code=429)
        assert err.status_code == 429


class TestConfiguration:
    def test_defaults(self):
        config = setup_config()
        assert config.anilist.per_page == 50
        assert config.anilist.page_delay == 0.7
        assert config.kitsu.base_url == "https://kitsu.io/api/edge"
        assert config.sync.page_error_pause == 1.0
        assert config.sync.max_reported_errors == 10
        assert config.match.confident_threshold == 0.8
        assert config.match.uncertain_threshold == 0.5
        assert config.match.candidate_limit == 5
        assert config.match.min_similarity == 0.3
        assert config.match.max_reported_errors == 5

    def test_database_override(self):
        config = setup_config(database_url="sqlite:///override.db")
        assert config.database.url == "sqlite:///override.db"
        assert get_database_config().url == "sqlite:///override.db"

    def test_config_from_env_vars(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://catalog@db/anisync")
        monkeypatch.setenv("MATCH_CONFIDENT_THRESHOLD", "0.9")
        monkeypatch.setenv("SYNC_MAX_PAGES", "25")
        monkeypatch.setenv("ANILIST_PAGE_DELAY", "1.5")

        config = reload_config()

        assert config.database.url == "postgresql://catalog@db/anisync"
        assert config.match.confident_threshold == 0.9
        assert config.sync.max_pages == 25
        assert config.anilist.page_delay == 1.5

    def test_threshold_order_is_validated(self):
        with pytest.raises(ValueError):
            MatchConfig(confident_threshold=0.4, uncertain_threshold=0.6)

    def test_log_level_validation(self):
        assert LoggingConfig(file_level="debug").file_level == "DEBUG"
        with pytest.raises(ValueError):
            LoggingConfig(console_level="LOUD")

    def test_config_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "anisync.json"
            config = setup_config(database=DatabaseConfig(url="sqlite:///saved.db"), dry_run=True)
            config.save_to_file(config_file)

            loaded = AniSyncConfig.load_from_file(config_file)
            assert loaded.database.url == "sqlite:///saved.db"
            assert loaded.dry_run is True

    def test_load_missing_file(self):
        with pytest.raises(FileNotFoundError):
            AniSyncConfig.load_from_file("/nonexistent/anisync.json")

    def test_convenience_functions(self):
        config = setup_config()
        assert get_config() is config
        assert get_sync_config() is config.sync
        assert get_match_config() is config.match
        assert get_logging_config() is config.logging
        assert get_processing_config().thread_pool_size == 2
