"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from splitbills.config import AppSettings, GeminiSettings, validate_all_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """No stray .env file or exported key leaks into these tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("SUPPORTED_IMAGE_FORMATS", raising=False)


class TestSettings:
    """pydantic-settings models read from the environment."""

    def test_gemini_key_is_required(self):
        with pytest.raises(ValidationError):
            GeminiSettings()

    def test_gemini_from_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        monkeypatch.setenv("GEMINI_MAX_ATTEMPTS", "5")

        settings = GeminiSettings()

        assert settings.api_key == "test-key"
        assert settings.max_attempts == 5
        assert settings.model_name == "gemini-1.5-pro"

    def test_app_defaults(self):
        settings = AppSettings()
        assert "image/jpeg" in settings.supported_formats_list
        assert settings.max_upload_size_bytes == 10 * 1024 * 1024

    def test_formats_must_be_media_types(self, monkeypatch):
        monkeypatch.setenv("SUPPORTED_IMAGE_FORMATS", "jpeg,png")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_validate_all_reports_missing_key(self):
        results = validate_all_settings()

        assert results["app"] is True
        assert results["gemini"] is False
        assert "api_key" in results["gemini_error"]

    def test_validate_all_passes_with_key(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        results = validate_all_settings()
        assert results == {"gemini": True, "app": True}
