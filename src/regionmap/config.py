"""regionmap configuration using pydantic-settings.

All configuration is strongly typed and supports environment variables
and .env files.
"""

from pathlib import Path
from typing import TypeGuard

from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid.

    Example:
        >>> Settings(_env_file=None).require_google_key()  # doctest: +ELLIPSIS
        Traceback (most recent call last):
        ...
        ConfigError: Google API key not configured. Set it in .env file or
        GOOGLE_API_KEY environment variable.
    """

    def __init__(self, key_name: str, env_var: str) -> None:
        """Initialize configuration error.

        Args:
            key_name: Human-readable name of the missing key.
            env_var: Environment variable name to set.
        """
        self.key_name = key_name
        self.env_var = env_var
        message = (
            f"{key_name} not configured. "
            f"Set it in .env file or {env_var} environment variable."
        )
        super().__init__(message)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # API Keys
    GOOGLE_API_KEY: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # "console" or "json"

    # Geocoding
    GEOCODER_BASE_URL: str = "https://maps.googleapis.com/maps/api/geocode/json"
    GEOCODER_TIMEOUT_SECONDS: float = 10.0
    GEOCODER_RPM: int = 600
    GEOCODER_MAX_ATTEMPTS: int = 1  # 1 = fail fast, no retry
    GEOCODER_FAILURE_THRESHOLD: int = 5
    GEOCODER_COOLDOWN_SECONDS: float = 30.0

    # Storage (None keeps everything in memory)
    STORAGE_DIR: Path | None = None

    # Listing
    DEFAULT_PAGE_SIZE: int = 10

    @staticmethod
    def _is_configured_secret(value: str | None) -> TypeGuard[str]:
        return value is not None and value.strip() != ""

    def require_google_key(self) -> str:
        """Get Google API key, raising ConfigError if not set.

        Use this method when constructing the Google geocoder to get a clear
        error message instead of REQUEST_DENIED responses at call time.

        Returns:
            The Google API key string.

        Raises:
            ConfigError: If GOOGLE_API_KEY is not configured.
        """
        if not self._is_configured_secret(self.GOOGLE_API_KEY):
            raise ConfigError("Google API key", "GOOGLE_API_KEY")
        return self.GOOGLE_API_KEY


# Singleton instance for import convenience
settings = Settings()
