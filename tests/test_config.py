"""
Tests for settings loading.
"""

import pytest

from techvibes_wallet.config import ApiSettings, get_settings, validate_all_settings


class TestSettings:
    """Tests for the settings container."""

    def test_defaults(self):
        """Test default values."""
        settings = get_settings()
        assert settings.api.max_retries == 3
        assert settings.app.default_fintech == "techvibes"
        assert settings.app.history_page_size == 10
        assert settings.storage.last_chosen_account_key == "last_chosen_account"

    def test_env_override(self, monkeypatch):
        """Test environment variables override defaults."""
        monkeypatch.setenv("TECHVIBES_API_BASE_URL", "https://example.test/api")
        monkeypatch.setenv("TECHVIBES_API_MAX_RETRIES", "5")
        api = ApiSettings()
        assert api.base_url == "https://example.test/api/"
        assert api.max_retries == 5

    def test_invalid_value_rejected(self, monkeypatch):
        """Test out-of-range values fail validation."""
        monkeypatch.setenv("TECHVIBES_API_MAX_RETRIES", "0")
        with pytest.raises(ValueError):
            ApiSettings()

    def test_validate_all_settings(self, monkeypatch):
        """Test the startup check reports failures by name."""
        assert validate_all_settings() == {"api": True, "storage": True, "app": True}

        monkeypatch.setenv("TECHVIBES_API_TIMEOUT_SECONDS", "0.1")
        results = validate_all_settings()
        assert results["api"] is False
        assert "api_error" in results
        assert results["storage"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
