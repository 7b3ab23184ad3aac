"""Tests for process startup and shutdown."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from lanstats.core.config import HELIX_BASE, OAUTH_BASE, Settings
from lanstats.main import runner


def make_settings(**kwargs) -> Settings:
    defaults = {
        "client_id": "cid",
        "client_secret": "secret",
        "channels": "alpha",
        "host": "127.0.0.1",
        "port": 0,
    }
    defaults.update(kwargs)
    return Settings(_env_file=None, **defaults)


@pytest.mark.asyncio
class TestRunner:
    async def test_bad_credentials_exit_non_zero(self) -> None:
        with respx.mock() as mock:
            mock.post(f"{OAUTH_BASE}/token").mock(return_value=httpx.Response(403))

            assert await runner(make_settings()) == 1

    async def test_channel_resolution_failure_exits_non_zero(self) -> None:
        with respx.mock() as mock:
            mock.post(f"{OAUTH_BASE}/token").mock(
                return_value=httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            )
            mock.get(f"{HELIX_BASE}/users").mock(return_value=httpx.Response(500))

            assert await runner(make_settings()) == 1

    async def test_no_channels_exits_non_zero(self) -> None:
        with respx.mock() as mock:
            mock.post(f"{OAUTH_BASE}/token").mock(
                return_value=httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            )

            assert await runner(make_settings(channels="")) == 1

    async def test_clean_shutdown(self) -> None:
        with respx.mock(assert_all_called=False) as mock:
            mock.post(f"{OAUTH_BASE}/token").mock(
                return_value=httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            )
            mock.get(f"{HELIX_BASE}/users").mock(
                return_value=httpx.Response(
                    200,
                    json={"data": [{"id": "1", "login": "alpha", "display_name": "Alpha"}]},
                )
            )
            mock.get(f"{HELIX_BASE}/streams").mock(
                return_value=httpx.Response(200, json={"data": []})
            )
            stop = asyncio.Event()
            stop.set()

            assert await runner(make_settings(), stop) == 0
