"""
Tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from shared.config import Settings, get_settings, reset_settings_cache


@pytest.fixture(autouse=True)
def clean_settings_cache():
    reset_settings_cache()
    yield
    reset_settings_cache()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CHIRPER_REDIS_URL", raising=False)
        monkeypatch.delenv("CHIRPER_SENDGRID_API_KEY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.redis_url is None
        assert settings.sendgrid_api_key is None
        assert settings.recipient_page_size == 500
        assert settings.max_job_attempts == 3

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("CHIRPER_DATABASE_URL", "sqlite:///:memory:")
        monkeypatch.setenv("CHIRPER_REDIS_URL", "redis://localhost:6379/1")
        monkeypatch.setenv("CHIRPER_RECIPIENT_PAGE_SIZE", "50")

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///:memory:"
        assert settings.redis_url == "redis://localhost:6379/1"
        assert settings.recipient_page_size == 50

    def test_rejects_zero_page_size(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, recipient_page_size=0)

    def test_chirps_url(self):
        settings = Settings(_env_file=None, app_url="https://chirper.example/")

        assert settings.chirps_url == "https://chirper.example/chirps"

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("CHIRPER_APP_URL", "https://one.example")
        first = get_settings()
        monkeypatch.setenv("CHIRPER_APP_URL", "https://two.example")

        assert get_settings() is first

        reset_settings_cache()

        assert get_settings().app_url == "https://two.example"
