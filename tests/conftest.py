"""Shared fixtures: an in-memory Helix stand-in and registry builders."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lanstats.core.errors import BatchTooLarge, RemoteError
from lanstats.models import ChannelRecord, StreamSnapshot, UserTotals
from lanstats.services.batching import MAX_BATCH_SIZE
from lanstats.services.registry import ChannelRegistry
from lanstats.services.state import StateStore

STARTED_AT = datetime(2024, 5, 1, 18, 30, tzinfo=timezone.utc)


def make_channels(*names: str) -> list[ChannelRecord]:
    return [ChannelRecord(id=f"id-{name.lower()}", login=name.lower(), display_name=name) for name in names]


def make_registry(*names: str) -> ChannelRegistry:
    return ChannelRegistry(make_channels(*names))


class FakeTwitchClient:
    """Records calls and answers from in-memory tables."""

    def __init__(
        self,
        *,
        live: dict[str, int] | None = None,
        quota: int = 800,
        views: dict[str, int] | None = None,
        followers: dict[str, int] | None = None,
        fail_streams: bool = False,
        fail_users: bool = False,
        fail_followers: set[str] | None = None,
    ):
        # keyed by login
        self.live = live or {}
        self.quota = quota
        self.views = views or {}
        # keyed by channel id
        self.followers = followers or {}
        self.fail_streams = fail_streams
        self.fail_users = fail_users
        self.fail_followers = fail_followers or set()
        self.stream_calls: list[list[str]] = []
        self.user_calls: list[list[str]] = []
        self.follower_calls: list[str] = []

    async def fetch_streams(self, logins: list[str]) -> tuple[list[StreamSnapshot], int]:
        if len(logins) > MAX_BATCH_SIZE:
            raise BatchTooLarge(len(logins), MAX_BATCH_SIZE)
        self.stream_calls.append(list(logins))
        if self.fail_streams:
            raise RemoteError("streams unavailable", status=503)
        streams = [
            StreamSnapshot(
                channel_id=f"id-{login}",
                login=login,
                viewer_count=viewers,
                started_at=STARTED_AT,
                title="live",
            )
            for login, viewers in self.live.items()
            if login in logins
        ]
        return streams, self.quota

    async def fetch_user_totals(self, logins: list[str]) -> list[UserTotals]:
        if len(logins) > MAX_BATCH_SIZE:
            raise BatchTooLarge(len(logins), MAX_BATCH_SIZE)
        self.user_calls.append(list(logins))
        if self.fail_users:
            raise RemoteError("users unavailable", status=500)
        return [
            UserTotals(
                channel_id=f"id-{login}",
                login=login,
                display_name=login.upper(),
                view_count=self.views.get(login, 0),
            )
            for login in logins
            if not login.startswith("ghost")
        ]

    async def fetch_follower_count(self, channel_id: str) -> int:
        self.follower_calls.append(channel_id)
        if channel_id in self.fail_followers:
            raise RemoteError("follows unavailable", status=500)
        return self.followers.get(channel_id, 0)


@pytest.fixture
def abc_registry() -> ChannelRegistry:
    return make_registry("A", "B", "C")


@pytest.fixture
def abc_store(abc_registry: ChannelRegistry) -> StateStore:
    return StateStore(abc_registry)
