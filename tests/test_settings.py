"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from src.config import (
    ApiSettings,
    AppSettings,
    LocalStorageSettings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("PAI_STORE_BACKGROUND_SYNC_DELAY_SECONDS", "PAI_API_BASE_URL"):
            monkeypatch.delenv(name, raising=False)

        assert StoreSettings().background_sync_delay_seconds == 2.0
        assert StoreSettings().max_occurrences == 24
        assert ApiSettings().list_retry_attempts == 3
        assert LocalStorageSettings().directory is None

    def test_environment_prefixes(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAI_STORE_BACKGROUND_SYNC_DELAY_SECONDS", "0.5")
        monkeypatch.setenv("PAI_API_BASE_URL", "https://api.example.com/api/")
        monkeypatch.setenv("PAI_LOCAL_DIRECTORY", str(tmp_path))

        assert StoreSettings().background_sync_delay_seconds == 0.5
        assert ApiSettings().base_url == "https://api.example.com/api"
        assert LocalStorageSettings().directory == tmp_path

    def test_log_level_normalized(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(log_level="chatty")

    def test_validate_all_settings_reports_failures(self, monkeypatch):
        monkeypatch.setenv("PAI_API_TIMEOUT_SECONDS", "-1")
        get_settings.cache_clear()

        results = validate_all_settings()

        assert results["store"] is True
        assert results["api"] is False
        assert "api_error" in results
