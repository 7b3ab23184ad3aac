"""Service configuration using Pydantic Settings"""

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


def normalize_logins(logins: list[str]) -> list[str]:
    """Strip, lowercase and de-duplicate logins, keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for login in logins:
        login = login.strip().lower()
        if login and login not in seen:
            seen.add(login)
            result.append(login)
    return result


class Settings(BaseSettings):
    """lanstats settings, read once at startup"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch app credentials
    client_id: str = Field(..., description="Twitch application Client ID")
    client_secret: str = Field(..., description="Twitch application Client Secret")

    # Channels
    channels: str = Field(default="", description="Comma-separated channel logins")
    channels_file: Path | None = Field(
        default=None, description="JSON file holding an array of channel logins"
    )

    # Poll loop
    poll_interval: float = Field(default=30.0, gt=0, description="Seconds between poll cycles")
    quota_floor: int = Field(default=5, ge=0, description="Request budget kept in reserve")
    request_timeout: float = Field(default=10.0, gt=0, description="Per-request deadline")

    # Twitch endpoints
    helix_base: str = Field(default=HELIX_BASE, description="Helix API root")
    oauth_base: str = Field(default=OAUTH_BASE, description="OAuth API root")

    # Server
    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=2112, description="Listen port")

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("helix_base", "oauth_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def channel_logins(self) -> list[str]:
        """Return the configured channel logins.

        ``CHANNELS`` wins over ``CHANNELS_FILE``; the file must contain a JSON
        array of strings.
        """
        if self.channels.strip():
            return normalize_logins(self.channels.split(","))

        if self.channels_file is None:
            return []

        try:
            data = json.loads(self.channels_file.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read channels file {self.channels_file}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Channels file {self.channels_file} is not valid JSON: {e}") from e

        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise ConfigError(f"Channels file {self.channels_file} must be a JSON array of strings")
        return normalize_logins(data)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
