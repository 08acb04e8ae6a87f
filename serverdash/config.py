import os
from dataclasses import dataclass
from typing import Optional

# Telemetry is refreshed on a fixed interval; there is no backoff on failure.
DEFAULT_POLL_INTERVAL = 20


@dataclass
class MonitorSettings:
    """Settings for the resource monitor."""

    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")


class Config:
    """Configuration management for serverdash."""

    # Base URL of the panel, without the /api/client suffix
    PANEL_URL: str = os.getenv("SERVERDASH_PANEL_URL", "http://localhost")

    # Client API key used as a bearer token
    API_KEY: Optional[str] = os.getenv("SERVERDASH_API_KEY")

    # HTTP client configuration
    HTTP_TIMEOUT: float = float(os.getenv("SERVERDASH_HTTP_TIMEOUT", "30.0"))

    # Resource monitor configuration
    POLL_INTERVAL: float = float(
        os.getenv("SERVERDASH_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))
    )

    @classmethod
    def get_panel_url(cls) -> str:
        """Get the panel base URL."""
        return cls.PANEL_URL.rstrip("/")

    @classmethod
    def get_api_key(cls) -> Optional[str]:
        """Get the client API key, if one is configured."""
        return cls.API_KEY

    @classmethod
    def get_http_timeout(cls) -> float:
        """Get the HTTP timeout in seconds."""
        return cls.HTTP_TIMEOUT

    @classmethod
    def get_monitor_settings(cls) -> MonitorSettings:
        """Get validated resource monitor settings."""
        return MonitorSettings(poll_interval=cls.POLL_INTERVAL)
