"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from openledger.utils.config import Settings, get_settings, reload_settings

pytestmark = pytest.mark.unit


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("MAX_PAGE_SIZE", raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///./openledger.db"
        assert settings.default_page_size == 20
        assert settings.max_page_size == 100
        assert settings.notify_every == 10
        assert settings.log_format == "console"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@localhost/ledger")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("MAX_PAGE_SIZE", "50")

        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://ledger@localhost/ledger"
        assert settings.log_level == "DEBUG"
        assert settings.max_page_size == 50

    def test_rejects_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_rejects_zero_page_size(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_page_size=0)

    def test_reload_settings_reads_environment_again(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_EVERY", "25")
        try:
            assert reload_settings().notify_every == 25
            assert get_settings() is get_settings()
        finally:
            monkeypatch.delenv("NOTIFY_EVERY")
            reload_settings()
