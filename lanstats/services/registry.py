"""Registered channels, resolved once at startup."""

import logging
from collections.abc import Iterator

from ..core.config import normalize_logins
from ..core.errors import ConfigError
from ..models import ChannelRecord
from .batching import fetch_in_batches
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Ordered, immutable set of channels tracked by the service."""

    def __init__(self, channels: list[ChannelRecord]):
        if not channels:
            raise ConfigError("No channels to track")
        self._channels = tuple(channels)
        self._by_id = {channel.id: channel for channel in self._channels}
        if len(self._by_id) != len(self._channels):
            raise ConfigError("Duplicate channel ids in registry")

    @classmethod
    async def resolve(cls, client: TwitchAPIClient, logins: list[str]) -> "ChannelRegistry":
        """Look up user ids and display names for *logins*.

        Any failed lookup is fatal; unknown logins are skipped with a warning.
        """
        logins = normalize_logins(logins)
        if not logins:
            raise ConfigError("No channels configured (set CHANNELS or CHANNELS_FILE)")

        result = await fetch_in_batches(logins, client.fetch_user_totals)
        if result.errors:
            raise result.errors[0]

        by_login = {user.login.lower(): user for user in result.records}
        channels = []
        for login in logins:
            user = by_login.get(login)
            if user is None:
                logger.warning(f"Channel '{login}' not found on Twitch, skipping")
                continue
            channels.append(
                ChannelRecord(id=user.channel_id, login=login, display_name=user.display_name)
            )

        registry = cls(channels)
        logger.info(f"Tracking {len(registry)} channels: {', '.join(registry.logins)}")
        return registry

    @property
    def channels(self) -> tuple[ChannelRecord, ...]:
        return self._channels

    @property
    def ids(self) -> list[str]:
        return [channel.id for channel in self._channels]

    @property
    def logins(self) -> list[str]:
        return [channel.login for channel in self._channels]

    def get(self, channel_id: str) -> ChannelRecord | None:
        return self._by_id.get(channel_id)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._by_id

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self) -> Iterator[ChannelRecord]:
        return iter(self._channels)
