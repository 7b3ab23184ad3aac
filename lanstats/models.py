"""Data models for channels, streams and per-channel state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ChannelRecord:
    """A registered channel, resolved once at startup."""

    id: str
    login: str
    display_name: str


@dataclass
class StreamSnapshot:
    """A live stream as returned by Helix for one poll cycle."""

    channel_id: str
    login: str
    viewer_count: int
    started_at: datetime
    title: str = ""


@dataclass
class UserTotals:
    """User record carrying the lifetime view count."""

    channel_id: str
    login: str
    display_name: str
    view_count: int = 0


@dataclass
class ChannelState:
    """Last known state of a registered channel."""

    online: bool = False
    viewers: int = 0
    up_since: datetime | None = None
    total_views: int = 0
    followers: int = 0

    def go_offline(self) -> None:
        self.online = False
        self.viewers = 0
        self.up_since = None

    def copy(self) -> ChannelState:
        return ChannelState(
            online=self.online,
            viewers=self.viewers,
            up_since=self.up_since,
            total_views=self.total_views,
            followers=self.followers,
        )


@dataclass
class Credential:
    """App access token with its expiry and renewal instants (epoch seconds)."""

    access_token: str
    token_type: str
    issued_at: float
    expires_at: float
    renew_at: float

    @classmethod
    def issue(cls, access_token: str, expires_in: float, now: float, token_type: str = "bearer"):
        expires_at = now + expires_in
        # Renew at the midpoint of the validity window
        renew_at = now + (expires_at - now) / 2
        return cls(
            access_token=access_token,
            token_type=token_type,
            issued_at=now,
            expires_at=expires_at,
            renew_at=renew_at,
        )

    def needs_renewal(self, now: float) -> bool:
        return now >= self.renew_at


@dataclass
class BatchResult(Generic[T]):
    """Records gathered across sub-batches plus the errors of failed ones."""

    records: list[T] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    batches: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class CycleReport:
    """Metadata of one completed (or aborted) poll cycle."""

    started_at: float
    quota_reported: int = 0
    quota_remaining: int = 0
    online: int = 0
    follower_fetches: int = 0
    duration: float = 0.0
    aborted: bool = False
