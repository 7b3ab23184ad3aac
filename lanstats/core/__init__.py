"""Core modules for lanstats."""

from .config import HELIX_BASE, OAUTH_BASE, Settings, get_settings, normalize_logins
from .errors import (
    AuthError,
    BatchTooLarge,
    ConfigError,
    LanStatsError,
    QuotaExhausted,
    RemoteError,
    Unauthorized,
)
from .logging import setup_logging

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "normalize_logins",
    # Endpoint Constants
    "HELIX_BASE",
    "OAUTH_BASE",
    # Setup functions
    "setup_logging",
    # Errors
    "LanStatsError",
    "ConfigError",
    "AuthError",
    "Unauthorized",
    "BatchTooLarge",
    "RemoteError",
    "QuotaExhausted",
]
