"""Tests for configuration module."""

import os
from unittest.mock import patch

import pytest

from core.config import (
    ApiConfig,
    AppConfig,
    ConfigurationError,
    ImportConfig,
    StorageConfig,
    get_config,
    load_config_from_env,
    reset_config,
)


class TestImportConfig:
    """Tests for ImportConfig validation."""

    def test_defaults_are_valid(self):
        """Default import limits pass validation."""
        config = ImportConfig()
        assert config.validate() == []
        assert config.max_file_bytes == 5 * 1024 * 1024
        assert config.max_rows == 5000
        assert config.default_location == "WAREHOUSE"
        assert config.sample_size == 3

    def test_non_positive_limits_rejected(self):
        """Zero or negative limits are reported."""
        config = ImportConfig(max_file_bytes=0, max_rows=-1)
        errors = config.validate()
        assert any("IMPORT_MAX_FILE_BYTES" in e for e in errors)
        assert any("IMPORT_MAX_ROWS" in e for e in errors)

    def test_blank_default_location_rejected(self):
        """Default location must not be blank."""
        errors = ImportConfig(default_location="  ").validate()
        assert any("IMPORT_DEFAULT_LOCATION" in e for e in errors)


class TestStorageConfig:
    """Tests for StorageConfig validation."""

    def test_creates_missing_parent_directory(self, tmp_path):
        """Validation creates the database directory."""
        db_path = tmp_path / "nested" / "dir" / "stock.db"
        config = StorageConfig(database_path=str(db_path))
        assert config.validate() == []
        assert db_path.parent.exists()


class TestApiConfig:
    """Tests for ApiConfig validation."""

    def test_empty_cors_origins_rejected(self):
        """At least one CORS origin is required."""
        errors = ApiConfig(cors_origins=[]).validate()
        assert any("CORS_ORIGINS" in e for e in errors)


class TestAppConfig:
    """Tests for AppConfig validation."""

    def test_valid_config(self, tmp_path):
        """Valid config does not raise."""
        config = AppConfig(storage=StorageConfig(database_path=str(tmp_path / "db.sqlite")))
        config.validate()

    def test_unknown_log_format_raises(self, tmp_path):
        """Unknown LOG_FORMAT is a configuration error."""
        config = AppConfig(
            storage=StorageConfig(database_path=str(tmp_path / "db.sqlite")),
            log_format="xml",
        )
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert "LOG_FORMAT" in str(exc_info.value)

    def test_errors_are_collected(self, tmp_path):
        """All section errors are reported together."""
        config = AppConfig(
            storage=StorageConfig(database_path=str(tmp_path / "db.sqlite")),
            imports=ImportConfig(max_rows=0),
            api=ApiConfig(cors_origins=[]),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        message = str(exc_info.value)
        assert "IMPORT_MAX_ROWS" in message
        assert "CORS_ORIGINS" in message


class TestLoadConfigFromEnv:
    """Tests for loading config from environment."""

    def test_load_import_settings(self):
        """Import settings are read and normalized."""
        env = {
            "IMPORT_MAX_FILE_BYTES": "1024",
            "IMPORT_MAX_ROWS": "10",
            "IMPORT_DEFAULT_LOCATION": "yard",
            "IMPORT_SAMPLE_SIZE": "5",
        }
        with patch.dict(os.environ, env):
            config = load_config_from_env()
        assert config.imports.max_file_bytes == 1024
        assert config.imports.max_rows == 10
        assert config.imports.default_location == "YARD"
        assert config.imports.sample_size == 5

    def test_load_cors_origins_list(self):
        """CORS_ORIGINS is split on commas."""
        with patch.dict(os.environ, {"CORS_ORIGINS": "http://a.test, http://b.test,"}):
            config = load_config_from_env()
        assert config.api.cors_origins == ["http://a.test", "http://b.test"]

    def test_log_settings_normalized(self):
        """Log level is uppercased and format lowercased."""
        with patch.dict(os.environ, {"LOG_LEVEL": "debug", "LOG_FORMAT": "JSON"}):
            config = load_config_from_env()
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_database_path_from_env(self, tmp_path):
        """DATABASE_PATH is honored."""
        target = str(tmp_path / "other.db")
        with patch.dict(os.environ, {"DATABASE_PATH": target}):
            config = load_config_from_env()
        assert config.storage.database_path == target


class TestConfigSingleton:
    """Tests for get_config/reset_config."""

    def test_get_config_is_cached(self):
        """Repeated calls return the same instance."""
        assert get_config() is get_config()

    def test_reset_config_reloads(self, monkeypatch):
        """reset_config picks up environment changes."""
        monkeypatch.setenv("DEFAULT_ACTOR", "first")
        reset_config()
        assert get_config().api.default_actor == "first"

        monkeypatch.setenv("DEFAULT_ACTOR", "second")
        assert get_config().api.default_actor == "first"
        reset_config()
        assert get_config().api.default_actor == "second"
