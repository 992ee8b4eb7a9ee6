"""
Cookie-to-bearer token exchange.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from spotctl.cookies import CookieSource, cookie_dict
from spotctl.endpoints import DEFAULT_TIMEOUT, USER_AGENT, Endpoints
from spotctl.errors import AuthenticationError, raise_for_status

from .tokens import AccessToken, token_prefix
from .totp import TotpSecretCache, generate_totp

logger = logging.getLogger(__name__)


class TokenProvider(ABC):
    """Supplies web-player access tokens."""

    @abstractmethod
    async def token(self) -> AccessToken:
        """Obtain a fresh access token."""
        pass


class CookieTokenProvider(TokenProvider):
    """
    Exchanges browser session cookies for an access token.

    Cookies are re-read from the source on every call and loaded into a
    fresh cookie jar.
    """

    def __init__(
        self,
        source: CookieSource,
        endpoints: Optional[Endpoints] = None,
        totp_cache: Optional[TotpSecretCache] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.source = source
        self.endpoints = endpoints or Endpoints()
        self.totp_cache = totp_cache
        self.timeout = timeout

    async def token(self) -> AccessToken:
        cookies = await self.source.cookies()
        code, version = await generate_totp(cache=self.totp_cache)

        params = {
            "reason": "init",
            "productType": "web-player",
            "totp": code,
            "totpVer": str(version),
            "totpServer": code,
        }
        origin = self.endpoints.web_player.rstrip("/")
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Accept-Language": "en-US",
            "Origin": origin,
            "Referer": self.endpoints.web_player,
            "app-platform": "WebPlayer",
        }

        jar = aiohttp.CookieJar(unsafe=True)
        async with aiohttp.ClientSession(cookies=cookie_dict(cookies), cookie_jar=jar) as session:
            async with session.get(
                self.endpoints.token_url,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                await raise_for_status(resp)
                payload = await resp.json(content_type=None)

        token = parse_token_response(payload)
        logger.debug(f"Obtained access token {token_prefix(token.token)} (totp v{version})")
        return token


def parse_token_response(payload: Any) -> AccessToken:
    """
    Build an AccessToken from the token endpoint's JSON.

    Raises:
        AuthenticationError: If no access token is present
    """
    if not isinstance(payload, dict) or not payload.get("accessToken"):
        raise AuthenticationError("missing access token")

    expires_at = 0.0
    expiry_ms = payload.get("accessTokenExpirationTimestampMs")
    if expiry_ms:
        expires_at = float(expiry_ms) / 1000
    elif payload.get("expiresIn"):
        expires_at = time.time() + float(payload["expiresIn"])

    return AccessToken(
        token=payload["accessToken"],
        expires_at=expires_at,
        anonymous=bool(payload.get("isAnonymous", False)),
        client_id=str(payload.get("clientId", "")),
    )
