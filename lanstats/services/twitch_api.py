"""Twitch Helix client.

Only the public endpoints the poll loop needs, authenticated with an app
access token from :class:`CredentialManager`:

- streams: live streams for up to 100 logins, plus the remaining request quota
- users: display names and lifetime view counts for up to 100 logins
- users/follows: follower total for a single user id
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from ..core.config import HELIX_BASE, Settings
from ..core.errors import BatchTooLarge, RemoteError, Unauthorized
from ..models import StreamSnapshot, UserTotals
from .batching import MAX_BATCH_SIZE
from .credentials import CredentialManager

logger = logging.getLogger(__name__)

RATELIMIT_HEADER = "Ratelimit-Remaining"


def parse_remaining(headers: httpx.Headers) -> int:
    """Read the remaining quota header; absent or unparsable means 0."""
    value = headers.get(RATELIMIT_HEADER)
    if value is None:
        return 0
    try:
        return max(int(value.strip()), 0)
    except ValueError:
        return 0


def parse_timestamp(value: str | None) -> datetime:
    """Parse a Helix RFC3339 timestamp into an aware datetime."""
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TwitchAPIClient:
    """Client for the Helix endpoints polled by lanstats.

    Shares one httpx client with the credential manager for connection reuse.
    Every request is bounded by the client's timeout.
    """

    def __init__(
        self,
        client_id: str,
        credentials: CredentialManager,
        http: httpx.AsyncClient,
        *,
        helix_base: str = HELIX_BASE,
    ):
        self.client_id = client_id
        self.credentials = credentials
        self.helix_base = helix_base
        self._http = http

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwitchAPIClient":
        http = httpx.AsyncClient(timeout=settings.request_timeout)
        credentials = CredentialManager(
            settings.client_id,
            settings.client_secret,
            http,
            oauth_base=settings.oauth_base,
        )
        return cls(settings.client_id, credentials, http, helix_base=settings.helix_base)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _headers(self) -> dict[str, str]:
        credential = await self.credentials.current_credential()
        return {"Authorization": f"Bearer {credential.access_token}", "Client-Id": self.client_id}

    async def _helix_get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        """GET request to Helix, mapping failures onto the error taxonomy."""
        headers = await self._headers()
        try:
            response = await self._http.get(
                f"{self.helix_base}/{path}", params=params, headers=headers
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"Helix GET /{path} failed: {type(e).__name__}: {e}") from e

        if response.status_code == 401:
            self.credentials.invalidate()
            raise Unauthorized(f"Helix GET /{path} returned 401")
        if not response.is_success:
            raise RemoteError(
                f"Helix GET /{path} returned HTTP {response.status_code}",
                status=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteError(f"Undecodable Helix response: {e}") from e
        if not isinstance(payload, dict):
            raise RemoteError("Unexpected Helix response shape")
        return payload

    @classmethod
    def _data(cls, response: httpx.Response) -> list[Any]:
        data = cls._json(response).get("data")
        if not isinstance(data, list):
            raise RemoteError("Unexpected Helix response shape")
        return data

    @staticmethod
    def _check_batch(ids: list[str]) -> None:
        if len(ids) > MAX_BATCH_SIZE:
            raise BatchTooLarge(len(ids), MAX_BATCH_SIZE)

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    async def fetch_streams(self, logins: list[str]) -> tuple[list[StreamSnapshot], int]:
        """Return live streams for up to 100 logins and the remaining quota."""
        self._check_batch(logins)
        if not logins:
            return [], 0

        response = await self._helix_get("streams", {"user_login": logins})
        remaining = parse_remaining(response.headers)
        logger.debug(f"Streams remaining quota: {remaining}")

        streams = []
        for item in self._data(response):
            try:
                streams.append(
                    StreamSnapshot(
                        channel_id=str(item["user_id"]),
                        login=item.get("user_login", ""),
                        viewer_count=max(int(item.get("viewer_count", 0)), 0),
                        started_at=parse_timestamp(item.get("started_at")),
                        title=item.get("title", ""),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed stream record: {e}")
        return streams, remaining

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def fetch_user_totals(self, logins: list[str]) -> list[UserTotals]:
        """Return display names and view totals for up to 100 logins."""
        self._check_batch(logins)
        if not logins:
            return []

        response = await self._helix_get("users", {"login": logins})

        users = []
        for item in self._data(response):
            try:
                users.append(
                    UserTotals(
                        channel_id=str(item["id"]),
                        login=item.get("login", ""),
                        display_name=item.get("display_name") or item.get("login", ""),
                        view_count=max(int(item.get("view_count", 0)), 0),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed user record: {e}")
        return users

    # ------------------------------------------------------------------
    # Followers
    # ------------------------------------------------------------------

    async def fetch_follower_count(self, channel_id: str) -> int:
        """Return the follower total of a single user id."""
        response = await self._helix_get("users/follows", {"to_id": channel_id})
        try:
            return max(int(self._json(response).get("total", 0)), 0)
        except (TypeError, ValueError) as e:
            raise RemoteError(f"Malformed follows response: {e}") from e
