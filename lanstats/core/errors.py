"""Error types raised by lanstats.

Startup errors (ConfigError, AuthError, RemoteError while resolving channels)
are fatal. Once the poll loop is running, every error is local to the cycle
that raised it.
"""


class LanStatsError(Exception):
    """Base class for all lanstats errors."""


class ConfigError(LanStatsError):
    """Missing or invalid configuration."""


class AuthError(LanStatsError):
    """Twitch rejected the client credentials or the access token."""


class Unauthorized(AuthError):
    """Helix answered 401; the cached token must be renewed."""


class BatchTooLarge(LanStatsError):
    """More identifiers than Helix accepts in one request were passed."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Batch of {size} identifiers exceeds the limit of {limit}")
        self.size = size
        self.limit = limit


class RemoteError(LanStatsError):
    """Transport failure or unexpected HTTP status from Twitch."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class QuotaExhausted(LanStatsError):
    """The per-cycle request budget reached its safety floor."""
