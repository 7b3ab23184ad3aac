"""App access token management.

The token comes from the client-credentials grant and is renewed lazily: the
first call after the midpoint of its validity window triggers a refresh. A
failed refresh leaves the previous token cached, so callers keep using it
until Helix starts answering 401.
"""

import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from ..core.config import OAUTH_BASE
from ..core.errors import AuthError, RemoteError
from ..models import Credential

logger = logging.getLogger(__name__)


class CredentialManager:
    """Holds the bearer credential and renews it when due."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http: httpx.AsyncClient,
        *,
        oauth_base: str = OAUTH_BASE,
        clock: Callable[[], float] = time.time,
    ):
        if not client_id or not client_secret:
            raise AuthError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.oauth_base = oauth_base
        self._http = http
        self._clock = clock

        self._credential: Credential | None = None
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> Credential | None:
        return self._credential

    async def current_credential(self) -> Credential:
        """Return the cached credential, refreshing it when renewal is due."""
        credential = self._credential
        if credential is not None and not credential.needs_renewal(self._clock()):
            return credential

        async with self._lock:
            # Double-check after acquiring lock
            credential = self._credential
            if credential is not None and not credential.needs_renewal(self._clock()):
                return credential
            return await self._refresh_locked()

    async def refresh(self) -> Credential:
        """Unconditionally fetch a new app access token."""
        async with self._lock:
            return await self._refresh_locked()

    def invalidate(self) -> None:
        """Force a refresh on the next ``current_credential`` call."""
        if self._credential is not None:
            self._credential.renew_at = self._clock()

    async def _refresh_locked(self) -> Credential:
        try:
            response = await self._http.post(
                f"{self.oauth_base}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"Token request failed: {type(e).__name__}: {e}") from e

        if response.status_code in (400, 401, 403):
            raise AuthError(f"Token request rejected: HTTP {response.status_code}")
        if response.status_code != 200:
            raise RemoteError(
                f"Token request failed: HTTP {response.status_code}", status=response.status_code
            )

        try:
            data = response.json()
            access_token = data["access_token"]
            expires_in = float(data.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteError(f"Malformed token response: {e}") from e

        credential = Credential.issue(
            access_token,
            expires_in,
            self._clock(),
            token_type=data.get("token_type", "bearer"),
        )
        self._credential = credential
        logger.debug(f"App token refreshed, expires in {int(expires_in)}s")
        return credential
