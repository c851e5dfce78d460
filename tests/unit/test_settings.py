"""Unit tests for application settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from procflow.settings import Settings, get_settings


class TestSettingsDefaults:
    def test_defaults(self, monkeypatch):
        for name in ("ENVIRONMENT", "DATABASE_URL", "INSTANCE_ID_LENGTH", "DEFINITIONS_PATH"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.environment == "development"
        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.instance_id_length == 10
        assert settings.instance_id_category == "WORKFLOW_INSTANCE_ID"
        assert settings.definitions_path is None
        assert not settings.is_sqlite

    def test_sqlite_url(self):
        settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///./procflow.db")
        assert settings.is_sqlite


class TestSettingsFromEnvironment:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("INSTANCE_ID_LENGTH", "6")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DEFINITIONS_PATH", "workflows")

        settings = Settings(_env_file=None)

        assert settings.instance_id_length == 6
        assert settings.log_level == "DEBUG"
        assert settings.definitions_path == Path("workflows")

    def test_rejects_out_of_range_length(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, instance_id_length=0)

    def test_rejects_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="TRACE")


class TestGetSettings:
    def test_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_mock_settings_fixture(self, mock_settings):
        from procflow import settings

        assert settings.get_settings() is mock_settings
        assert mock_settings.environment == "testing"
