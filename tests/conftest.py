"""Shared fixtures for spotctl tests."""

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from spotctl.auth.totp import TotpSecretCache
from spotctl.cookies import StaticCookieSource, StoredCookie


@asynccontextmanager
async def _serve(app: web.Application) -> AsyncIterator[TestServer]:
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def serve() -> Callable:
    """Serve an aiohttp application on a local port for one test."""
    return _serve


@pytest.fixture
def cookie_source() -> StaticCookieSource:
    """Cookies of a logged-in web player session."""
    return StaticCookieSource(
        [
            StoredCookie(name="sp_dc", value="session-cookie"),
            StoredCookie(name="sp_t", value="device-1234"),
        ]
    )


@pytest.fixture
def secret_file(tmp_path: Path) -> Path:
    """A local TOTP secret map so no test reaches the public mirrors."""
    path = tmp_path / "secretDict.json"
    path.write_text(json.dumps({"21": [12, 56, 76, 33, 88, 44, 88, 33, 78, 78, 11, 66]}))
    return path


@pytest.fixture
def totp_cache(secret_file: Path) -> TotpSecretCache:
    """Secret cache reading only the local secret file."""
    return TotpSecretCache(sources=[str(secret_file)])
