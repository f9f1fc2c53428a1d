"""Tests for regionmap.config module."""

from pathlib import Path

import pytest

from regionmap.config import ConfigError, Settings


class TestSettings:
    """Tests for the Settings class."""

    def test_default_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that default values are set correctly."""
        for var in ("GOOGLE_API_KEY", "STORAGE_DIR", "GEOCODER_MAX_ATTEMPTS"):
            monkeypatch.delenv(var, raising=False)

        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
        )

        assert settings.GOOGLE_API_KEY is None
        assert settings.LOG_LEVEL == "INFO"
        assert settings.LOG_FORMAT == "console"

        # Geocoding
        assert settings.GEOCODER_TIMEOUT_SECONDS == 10.0
        assert settings.GEOCODER_RPM == 600
        assert settings.GEOCODER_MAX_ATTEMPTS == 1  # no retry by default
        assert settings.GEOCODER_FAILURE_THRESHOLD == 5
        assert settings.GEOCODER_COOLDOWN_SECONDS == 30.0
        assert settings.GEOCODER_BASE_URL.startswith("https://maps.googleapis.com/")

        # Storage / listing
        assert settings.STORAGE_DIR is None
        assert settings.DEFAULT_PAGE_SIZE == 10

    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that environment variables override defaults."""
        monkeypatch.setenv("GOOGLE_API_KEY", "google-env-key")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DEFAULT_PAGE_SIZE", "25")
        monkeypatch.setenv("STORAGE_DIR", "/tmp/regionmap-data")

        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
        )

        assert settings.GOOGLE_API_KEY == "google-env-key"
        assert settings.LOG_LEVEL == "DEBUG"
        assert settings.DEFAULT_PAGE_SIZE == 25
        assert settings.STORAGE_DIR == Path("/tmp/regionmap-data")

    def test_log_format_options(self) -> None:
        """Test that LOG_FORMAT accepts valid options."""
        settings = Settings(
            LOG_FORMAT="json",
            _env_file=None,  # type: ignore[call-arg]
        )
        assert settings.LOG_FORMAT == "json"

    def test_fixture_settings(self, test_settings: Settings) -> None:
        """Test that the shared fixture carries a usable key."""
        assert test_settings.GOOGLE_API_KEY == "test-google-key"
        assert test_settings.LOG_LEVEL == "DEBUG"


class TestConfigError:
    """Tests for the ConfigError exception."""

    def test_config_error_message_format(self) -> None:
        """Test ConfigError message includes key name and env var."""
        error = ConfigError("Google API key", "GOOGLE_API_KEY")
        assert "Google API key" in str(error)
        assert "GOOGLE_API_KEY" in str(error)
        assert ".env" in str(error)

    def test_config_error_attributes(self) -> None:
        """Test ConfigError stores key name and env var as attributes."""
        error = ConfigError("Test key", "TEST_VAR")
        assert error.key_name == "Test key"
        assert error.env_var == "TEST_VAR"


class TestRequireGoogleKey:
    """Tests for require_google_key()."""

    def test_returns_key_when_set(self) -> None:
        settings = Settings(
            GOOGLE_API_KEY="google-test-key",
            _env_file=None,  # type: ignore[call-arg]
        )
        assert settings.require_google_key() == "google-test-key"

    def test_raises_when_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
        )
        with pytest.raises(ConfigError) as exc_info:
            settings.require_google_key()
        assert "GOOGLE_API_KEY" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["", "   ", "\t"])
    def test_rejects_blank_values(self, value: str) -> None:
        """Blank keys count as unset."""
        settings = Settings(
            GOOGLE_API_KEY=value,
            _env_file=None,  # type: ignore[call-arg]
        )
        with pytest.raises(ConfigError):
            settings.require_google_key()
