"""
TOTP generation for the web-player token exchange.

The token endpoint requires a time-based code derived from a rotating secret.
Secrets are published as a JSON map of version -> byte list; the highest
version wins. When every source fails, a built-in secret is used.
"""

import asyncio
import hashlib
import hmac
import json
import logging
import os
import struct
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import aiohttp

logger = logging.getLogger(__name__)

TOTP_SECRET_URL_ENV = "SPOTCTL_TOTP_SECRET_URL"

SECRET_MIRRORS = [
    "https://github.com/xyloflake/spot-secrets-go/blob/main/secrets/secretDict.json?raw=true",
    "https://github.com/Thereallo1026/spotify-secrets/blob/main/secrets/secretDict.json?raw=true",
    "https://code.thetadev.de/ThetaDev/spotify-secrets/raw/branch/main/secrets/secretDict.json",
]

SECRET_TTL = 15 * 60  # seconds
SECRET_FETCH_TIMEOUT = 5.0  # seconds

FALLBACK_VERSION = 18
FALLBACK_SECRET = bytes(
    [70, 60, 33, 57, 92, 120, 90, 33, 32, 62, 62, 55, 126, 93, 66, 35, 108, 68]
)

TOTP_PERIOD = 30  # seconds
TOTP_DIGITS = 6


class SecretSourceError(Exception):
    """A secret source was unreachable or returned an unusable payload."""

    pass


@dataclass(frozen=True)
class TotpSecret:
    """A versioned TOTP secret."""

    version: int
    secret: bytes


# =============================================================================
# RFC 4226 / RFC 6238
# =============================================================================


def hotp(key: bytes, counter: int, digits: int = TOTP_DIGITS) -> str:
    """Compute an HMAC-SHA1 one-time password with dynamic truncation."""
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(code % (10**digits)).zfill(digits)


def totp(key: bytes, now: float, period: int = TOTP_PERIOD, digits: int = TOTP_DIGITS) -> str:
    """Compute a time-based one-time password for a unix timestamp."""
    return hotp(key, int(now) // period, digits)


def derive_key(secret: bytes) -> bytes:
    """
    Transform a published secret into the HMAC key.

    Each byte is XORed with ``(i % 33) + 9`` and the resulting integers are
    concatenated as decimal text.
    """
    return "".join(str(b ^ ((i % 33) + 9)) for i, b in enumerate(secret)).encode("ascii")


def totp_from_secret(secret: bytes, now: float) -> str:
    """Generate the 6-digit code for a published secret."""
    return totp(derive_key(secret), now)


# =============================================================================
# Secret sources
# =============================================================================


def parse_secret_dict(data: bytes) -> TotpSecret:
    """
    Parse a ``{"<version>": [bytes...]}`` JSON document.

    Returns:
        The entry with the numerically highest version

    Raises:
        SecretSourceError: If the document has no usable entry
    """
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise SecretSourceError(f"invalid secret json: {e}")
    if not isinstance(payload, dict) or not payload:
        raise SecretSourceError("empty secret map")

    best: Optional[TotpSecret] = None
    for key, values in payload.items():
        try:
            version = int(key)
        except (TypeError, ValueError):
            continue
        if not isinstance(values, list) or not values:
            continue
        if any(not isinstance(v, int) or v < 0 or v > 255 for v in values):
            raise SecretSourceError(f"secret byte out of range for version {version}")
        if best is None or version > best.version:
            best = TotpSecret(version=version, secret=bytes(values))

    if best is None:
        raise SecretSourceError("no valid secret versions")
    return best


def secret_sources() -> list[str]:
    """Return the configured secret sources in order."""
    override = os.environ.get(TOTP_SECRET_URL_ENV, "").strip()
    if override:
        return [override]
    return list(SECRET_MIRRORS)


async def fetch_secret_source(source: str, session: aiohttp.ClientSession) -> TotpSecret:
    """Load and parse one secret source (http(s) URL, file:// URL or path)."""
    parsed = urlparse(source)
    if parsed.scheme in ("http", "https"):
        try:
            async with session.get(
                source, timeout=aiohttp.ClientTimeout(total=SECRET_FETCH_TIMEOUT)
            ) as resp:
                if resp.status != 200:
                    raise SecretSourceError(f"{source}: HTTP {resp.status}")
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SecretSourceError(f"{source}: {e}")
        return parse_secret_dict(data)

    path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(source)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SecretSourceError(f"{source}: {e}")
    return parse_secret_dict(data)


class TotpSecretCache:
    """
    Process-wide cache of the latest TOTP secret.

    Only secrets fetched from a source are cached; the built-in fallback is
    returned uncached so the next call retries the sources.
    """

    def __init__(self, sources: Optional[list[str]] = None, ttl: float = SECRET_TTL):
        self._sources = sources
        self._ttl = ttl
        self._lock = asyncio.Lock()
        self._secret: Optional[TotpSecret] = None
        self._fetched_at = 0.0

    def clear(self) -> None:
        self._secret = None
        self._fetched_at = 0.0

    async def get(self, session: Optional[aiohttp.ClientSession] = None) -> TotpSecret:
        """Return the cached secret, refreshing it once the TTL has passed."""
        async with self._lock:
            if self._secret is not None and time.monotonic() - self._fetched_at < self._ttl:
                return self._secret

            sources = self._sources if self._sources is not None else secret_sources()
            if session is None:
                async with aiohttp.ClientSession() as own_session:
                    best = await self._fetch_best(sources, own_session)
            else:
                best = await self._fetch_best(sources, session)

            if best is None:
                logger.warning(
                    f"All TOTP secret sources failed, using built-in version {FALLBACK_VERSION}"
                )
                return TotpSecret(version=FALLBACK_VERSION, secret=FALLBACK_SECRET)

            self._secret = best
            self._fetched_at = time.monotonic()
            logger.debug(f"Using TOTP secret version {best.version}")
            return best

    async def _fetch_best(
        self, sources: list[str], session: aiohttp.ClientSession
    ) -> Optional[TotpSecret]:
        best: Optional[TotpSecret] = None
        for source in sources:
            try:
                candidate = await fetch_secret_source(source, session)
            except SecretSourceError as e:
                logger.debug(f"TOTP secret source failed: {e}")
                continue
            if best is None or candidate.version > best.version:
                best = candidate
        return best


_default_cache = TotpSecretCache()


async def generate_totp(
    now: Optional[float] = None,
    cache: Optional[TotpSecretCache] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> tuple[str, int]:
    """
    Generate the TOTP code for the token exchange.

    Args:
        now: Unix timestamp (defaults to current time)
        cache: Secret cache (defaults to the process-wide cache)
        session: Optional HTTP session used to fetch secrets

    Returns:
        Tuple of (6-digit code, secret version)
    """
    if now is None:
        now = time.time()
    secret = await (cache or _default_cache).get(session)
    return totp_from_secret(secret.secret, now), secret.version
