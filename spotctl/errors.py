"""
Error types shared by all engines.

The dispatch routers only look at UnsupportedError and rate-limited
SpotifyAPIError instances; everything else propagates unchanged.
"""

import json
import logging
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)

HTTP_NO_CONTENT = 204
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429


class SpotifyError(Exception):
    """Base class for spotctl errors."""

    pass


class SpotifyAPIError(SpotifyError):
    """Remote API error carrying the HTTP status."""

    def __init__(self, message: str = "", status: int = 0, body: str = ""):
        self.status = status
        self.message = message
        self.body = body
        super().__init__(self._format())

    def _format(self) -> str:
        if self.message:
            return f"spotify api error ({self.status}): {self.message}"
        if self.status:
            return f"spotify api error ({self.status})"
        return "spotify api error"

    @property
    def is_auth_error(self) -> bool:
        """True for 401/403 responses."""
        return self.status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN)

    @property
    def is_rate_limited(self) -> bool:
        """True for 429 responses."""
        return self.status == HTTP_TOO_MANY_REQUESTS


class PathfinderError(SpotifyAPIError):
    """GraphQL-level failure reported inside a 200 response."""

    def __init__(self, message: str = "pathfinder error", body: str = ""):
        super().__init__(message, status=200, body=body)

    def _format(self) -> str:
        return self.message


class UnsupportedError(SpotifyError):
    """The engine has no equivalent for the requested capability."""

    def __init__(self, message: str = "unsupported"):
        super().__init__(message)


class NoContentError(SpotifyError):
    """HTTP 204 where a response body was expected."""

    def __init__(self, message: str = "no content"):
        super().__init__(message)


class AuthenticationError(SpotifyError):
    """Credentials could not be obtained from the cookie source."""

    pass


class ProtocolDiscoveryError(SpotifyError):
    """A reverse-engineered assumption about the web player no longer holds."""

    pass


class HashResolutionError(ProtocolDiscoveryError):
    """Persisted-query hashes could not be discovered."""

    pass


class AppConfigError(ProtocolDiscoveryError):
    """The web player's embedded app config is missing or malformed."""

    pass


class ConnectionIdError(ProtocolDiscoveryError):
    """The dealer handshake did not yield a connection id."""

    pass


class MissingDeviceError(ProtocolDiscoveryError):
    """Connect state lacks the origin or active device id."""

    pass


class UnsupportedTypeError(SpotifyError, ValueError):
    """Resource type is not one of the supported Spotify kinds."""

    def __init__(self, message: str = "unsupported spotify type"):
        super().__init__(message)


def is_rate_limited(err: BaseException) -> bool:
    """Check whether an error is an HTTP 429 from a backend."""
    return isinstance(err, SpotifyAPIError) and err.is_rate_limited


def api_error_from_body(status: int, reason: str, body: str) -> SpotifyAPIError:
    """Build an API error from a status line and raw response body."""
    message = reason or ""
    try:
        payload: Any = json.loads(body) if body else None
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        inner = payload.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            message = str(inner["message"])
        elif isinstance(payload.get("message"), str) and payload["message"]:
            message = payload["message"]
    return SpotifyAPIError(message, status=status, body=body)


async def api_error_from_response(resp: aiohttp.ClientResponse) -> SpotifyAPIError:
    """Build an API error from a non-2xx aiohttp response."""
    try:
        body = await resp.text()
    except (aiohttp.ClientError, UnicodeDecodeError) as e:
        logger.debug(f"Failed to read error body: {e}")
        body = ""
    return api_error_from_body(resp.status, resp.reason or "", body)


async def raise_for_status(resp: aiohttp.ClientResponse) -> None:
    """Raise SpotifyAPIError for non-2xx responses."""
    if resp.status < 200 or resp.status >= 300:
        raise await api_error_from_response(resp)
