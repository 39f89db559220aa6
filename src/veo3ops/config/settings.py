"""
Configuration settings for veo3ops.

Supports loading from environment variables with fallback defaults.
Uses python-dotenv for .env file support.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from veo3ops.client.veo_client import DEFAULT_BASE_URL
from veo3ops.operations.poller import PollingConfig
from veo3ops.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "veo-3.1-generate-preview"


def _get_env_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.getenv(key)
    return float(value) if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.getenv(key)
    return int(value) if value else default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass
class Settings:
    """
    Configuration settings for the operation tracker.

    All settings can be overridden via environment variables.

    Attributes:
        api_key: Gemini API key (GEMINI_API_KEY).
        base_url: API root URL.
        default_model: Model used when a request names none.
        output_directory: Where downloaded videos are written.
        poll_interval_seconds: Base interval between status checks.
        max_poll_interval_seconds: Ceiling for the backoff interval.
        poll_backoff_factor: Multiplier applied after a failed status check.
        poll_max_retries: Consecutive status-check failures tolerated.
        request_timeout_seconds: Timeout for API calls.
        download_timeout_seconds: Timeout for artifact transfers.
        download_max_attempts: Attempts per download before giving up.
        download_retry_delay_seconds: Fixed pause between download attempts.
        debug: Log raw API responses.
    """

    api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY")
    )
    base_url: str = field(
        default_factory=lambda: os.getenv("VEO3_BASE_URL", DEFAULT_BASE_URL)
    )
    default_model: str = field(
        default_factory=lambda: os.getenv("VEO3_DEFAULT_MODEL", DEFAULT_MODEL)
    )
    output_directory: str = field(
        default_factory=lambda: os.getenv("VEO3_OUTPUT_DIRECTORY", ".")
    )

    # Polling
    poll_interval_seconds: float = field(
        default_factory=lambda: _get_env_float("VEO3_POLL_INTERVAL", 10.0)
    )
    max_poll_interval_seconds: float = field(
        default_factory=lambda: _get_env_float("VEO3_MAX_POLL_INTERVAL", 300.0)
    )
    poll_backoff_factor: float = field(
        default_factory=lambda: _get_env_float("VEO3_POLL_BACKOFF_FACTOR", 1.5)
    )
    poll_max_retries: int = field(
        default_factory=lambda: _get_env_int("VEO3_POLL_MAX_RETRIES", 10)
    )

    # HTTP
    request_timeout_seconds: float = field(
        default_factory=lambda: _get_env_float("VEO3_REQUEST_TIMEOUT", 30.0)
    )
    download_timeout_seconds: float = field(
        default_factory=lambda: _get_env_float("VEO3_DOWNLOAD_TIMEOUT", 600.0)
    )
    download_max_attempts: int = field(
        default_factory=lambda: _get_env_int("VEO3_DOWNLOAD_MAX_ATTEMPTS", 3)
    )
    download_retry_delay_seconds: float = field(
        default_factory=lambda: _get_env_float("VEO3_DOWNLOAD_RETRY_DELAY", 5.0)
    )

    debug: bool = field(
        default_factory=lambda: _get_env_bool("VEO3_DEBUG", False)
    )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """
        Create settings from environment variables, after loading .env.

        Args:
            dotenv_path: Explicit .env file. Searched for upwards if None.

        Returns:
            Settings instance with values from environment.
        """
        load_dotenv(dotenv_path)
        settings = cls()
        if settings.api_key:
            logger.debug("Gemini API key configured")
        else:
            logger.debug("GEMINI_API_KEY not set")
        return settings

    def validate(self) -> bool:
        """
        Validate all settings.

        Returns:
            True if all settings are valid.

        Raises:
            ValueError: If any setting is invalid.
        """
        self.polling_config().validate()

        if self.request_timeout_seconds <= 0:
            raise ValueError(
                f"request_timeout_seconds must be > 0, got {self.request_timeout_seconds}"
            )

        if self.download_timeout_seconds <= 0:
            raise ValueError(
                f"download_timeout_seconds must be > 0, got {self.download_timeout_seconds}"
            )

        if self.download_max_attempts < 1:
            raise ValueError(
                f"download_max_attempts must be >= 1, got {self.download_max_attempts}"
            )

        if self.download_retry_delay_seconds < 0:
            raise ValueError(
                f"download_retry_delay_seconds must be >= 0, "
                f"got {self.download_retry_delay_seconds}"
            )

        return True

    def require_api_key(self) -> str:
        """
        Return the API key or fail with a helpful message.

        Raises:
            ValueError: If no key is configured.
        """
        if not self.api_key or not self.api_key.strip():
            raise ValueError(
                "GEMINI_API_KEY environment variable not set. "
                "Get your API key from https://aistudio.google.com/apikey"
            )
        return self.api_key.strip()

    def polling_config(self) -> PollingConfig:
        """Poller configuration derived from these settings."""
        return PollingConfig(
            base_interval=self.poll_interval_seconds,
            max_interval=self.max_poll_interval_seconds,
            backoff_factor=self.poll_backoff_factor,
            max_retries=self.poll_max_retries,
        )
