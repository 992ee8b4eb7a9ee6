"""
Session manager for the private web-player APIs.

Assembles the credential bundle (access token, client token, client version,
device id) the connect engine needs, refreshing each part only when stale.
"""

import asyncio
import base64
import binascii
import json
import logging
import os
import re
import sys
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from spotctl.cookies import CookieSource, cookie_dict, find_cookie
from spotctl.endpoints import DEFAULT_TIMEOUT, USER_AGENT, Endpoints
from spotctl.errors import AppConfigError, AuthenticationError, raise_for_status

from .token_provider import CookieTokenProvider, TokenProvider
from .tokens import AccessToken, ClientToken, token_prefix

logger = logging.getLogger(__name__)

CONNECT_VERSION_ENV = "SPOTCTL_CONNECT_VERSION"
DEFAULT_CONNECT_VERSION = "harmony:4.43.2-a61ecaf5"

DEVICE_COOKIE = "sp_t"
CLIENT_TOKEN_TTL = 30 * 60  # seconds, used when the grant omits expires_in
REFRESH_MARGIN = 60  # seconds

APP_CONFIG_RE = re.compile(r'<script id="appServerConfig" type="text/plain">([^<]+)</script>')


@dataclass(frozen=True)
class ConnectAuth:
    """Credential bundle for one private API call."""

    access_token: str
    client_token: str
    client_version: str
    connect_version: str
    device_id: str


def connect_client_version() -> str:
    """Return the connect client version, honouring the env override."""
    override = os.environ.get(CONNECT_VERSION_ENV, "").strip()
    return override or DEFAULT_CONNECT_VERSION


def runtime_os() -> tuple[str, str]:
    """Return (os name, os version) as reported in the client fingerprint."""
    if sys.platform == "darwin":
        return "macos", "unknown"
    if sys.platform.startswith("win"):
        return "windows", "unknown"
    return "linux", "unknown"


def parse_app_config(html: str) -> str:
    """
    Extract the client version from the web player's embedded config.

    Raises:
        AppConfigError: If the config block or clientVersion is missing
    """
    match = APP_CONFIG_RE.search(html)
    if not match:
        raise AppConfigError("missing appServerConfig")
    try:
        payload = json.loads(base64.b64decode(match.group(1)))
    except (binascii.Error, ValueError) as e:
        raise AppConfigError(f"invalid appServerConfig: {e}")
    client_version = payload.get("clientVersion") if isinstance(payload, dict) else None
    if not isinstance(client_version, str) or not client_version:
        raise AppConfigError("missing clientVersion")
    idx = client_version.find(".g")
    if idx > 0:
        client_version = client_version[:idx]
    return client_version


class ConnectSession:
    """
    Holds web-player credentials shared by every private API call.

    All refresh work happens under one lock so concurrent callers trigger at
    most one refresh and then reuse the result.
    """

    def __init__(
        self,
        source: CookieSource,
        endpoints: Optional[Endpoints] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.source = source
        self.endpoints = endpoints or Endpoints()
        self.token_provider = token_provider or CookieTokenProvider(
            source, self.endpoints, timeout=timeout
        )
        self.timeout = timeout
        self._lock = asyncio.Lock()

        self.access_token = AccessToken()
        self.client_token = ClientToken()
        self.client_id = ""
        self.client_version = ""
        self.connect_version = ""
        self.device_id = ""

        # Connect device registration state
        self.connect_device_id = ""
        self.connection_id = ""
        self.registered_at = 0.0

    async def authorize(self) -> ConnectAuth:
        """
        Return a complete credential bundle, refreshing stale parts.

        Raises:
            AuthenticationError: If cookies cannot produce credentials
            AppConfigError: If the web player config cannot be parsed
            SpotifyAPIError: On non-2xx responses
        """
        async with self._lock:
            await self._ensure_access_token()
            await self._ensure_app_config()
            await self._ensure_client_token()
            return ConnectAuth(
                access_token=self.access_token.token,
                client_token=self.client_token.token,
                client_version=self.client_version,
                connect_version=self.connect_version,
                device_id=self.device_id,
            )

    def invalidate(self) -> None:
        """Drop cached tokens so the next authorize() refreshes them."""
        self.access_token = AccessToken()
        self.client_token = ClientToken()

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout)

    async def _ensure_access_token(self) -> None:
        if not self.access_token.is_expired(REFRESH_MARGIN):
            return
        token = await self.token_provider.token()
        self.access_token = token
        if token.client_id:
            self.client_id = token.client_id
        logger.debug(f"Refreshed access token {token_prefix(token.token)}")

    async def _ensure_app_config(self) -> None:
        if self.client_version and self.device_id:
            return
        cookies = await self.source.cookies()
        device_id = find_cookie(cookies, DEVICE_COOKIE)
        if not device_id:
            raise AuthenticationError(f"missing {DEVICE_COOKIE} cookie")

        jar = aiohttp.CookieJar(unsafe=True)
        async with aiohttp.ClientSession(cookies=cookie_dict(cookies), cookie_jar=jar) as session:
            async with session.get(
                self.endpoints.web_player,
                headers={"User-Agent": USER_AGENT},
                timeout=self._timeout(),
            ) as resp:
                await raise_for_status(resp)
                html = await resp.text()

        self.client_version = parse_app_config(html)
        self.connect_version = connect_client_version()
        self.device_id = device_id
        logger.debug(f"Web player client version {self.client_version}")

    async def _ensure_client_token(self) -> None:
        if not self.client_token.is_expired(REFRESH_MARGIN):
            return
        if not self.client_id:
            raise AuthenticationError("missing client id")

        os_name, os_version = runtime_os()
        payload = {
            "client_data": {
                "client_version": self.client_version,
                "client_id": self.client_id,
                "js_sdk_data": {
                    "device_brand": "unknown",
                    "device_model": "unknown",
                    "os": os_name,
                    "os_version": os_version,
                    "device_id": self.device_id,
                    "device_type": "computer",
                },
            }
        }
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.endpoints.client_token,
                json=payload,
                headers=headers,
                timeout=self._timeout(),
            ) as resp:
                await raise_for_status(resp)
                data = await resp.json(content_type=None)

        granted = data.get("granted_token") if isinstance(data, dict) else None
        token = granted.get("token") if isinstance(granted, dict) else None
        if not token:
            raise AuthenticationError("missing client token")
        expires_in = granted.get("expires_in") or 0
        ttl = expires_in if isinstance(expires_in, (int, float)) and expires_in > 0 else CLIENT_TOKEN_TTL
        self.client_token = ClientToken(token=token, expires_at=time.time() + ttl)
        logger.debug(f"Refreshed client token {token_prefix(token)}")
