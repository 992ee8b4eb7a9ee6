"""
Cookie sources.

The engines only consume the CookieSource interface. Cookies are re-read on
every token exchange because browser sessions rotate them.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

COOKIE_FILE_MODE = 0o600


class CookieError(Exception):
    """Cookie file could not be read or written."""

    pass


@dataclass
class StoredCookie:
    """A browser cookie as persisted in the cookie file."""

    name: str
    value: str
    domain: str = ".spotify.com"
    path: str = "/"
    expires: Optional[str] = None  # ISO-8601 timestamp
    secure: bool = True
    http_only: bool = False


class CookieSource(ABC):
    """Provides the browser session cookies for the account."""

    @abstractmethod
    async def cookies(self) -> list[StoredCookie]:
        """Return the current cookie set."""
        pass


class StaticCookieSource(CookieSource):
    """Serves a fixed in-memory cookie list."""

    def __init__(self, cookies: list[StoredCookie]):
        self._cookies = list(cookies)

    async def cookies(self) -> list[StoredCookie]:
        return list(self._cookies)


class FileCookieSource(CookieSource):
    """Reads cookies from a JSON cookie file on every call."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def cookies(self) -> list[StoredCookie]:
        return read_cookies(self.path)


def cookie_dict(cookies: list[StoredCookie]) -> dict[str, str]:
    """Flatten cookies to a name -> value mapping."""
    return {c.name: c.value for c in cookies if c.name}


def find_cookie(cookies: list[StoredCookie], name: str) -> str:
    """Return the value of the first cookie with the given name."""
    for cookie in cookies:
        if cookie.name == name:
            return cookie.value
    return ""


def read_cookies(path: Path) -> list[StoredCookie]:
    """
    Load cookies from a JSON file.

    Raises:
        CookieError: If the file is missing or malformed
    """
    if not str(path):
        raise CookieError("cookie path required")
    try:
        with open(path) as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise CookieError(f"Cookie file not found: {path}")
    except (OSError, ValueError) as e:
        raise CookieError(f"Error reading cookie file: {e}")

    if not isinstance(raw, list):
        raise CookieError("Cookie file must contain a JSON array")

    cookies = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        cookies.append(
            StoredCookie(
                name=str(entry["name"]),
                value=str(entry.get("value", "")),
                domain=str(entry.get("domain", ".spotify.com")),
                path=str(entry.get("path", "/")),
                expires=entry.get("expires"),
                secure=bool(entry.get("secure", True)),
                http_only=bool(entry.get("http_only", False)),
            )
        )
    logger.debug(f"Loaded {len(cookies)} cookies from {path}")
    return cookies


def write_cookies(path: Path, cookies: list[StoredCookie]) -> None:
    """Persist cookies to a JSON file readable only by the owner."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump([asdict(c) for c in cookies], f, indent=2)
        os.chmod(path, COOKIE_FILE_MODE)
    except OSError as e:
        raise CookieError(f"Error writing cookie file: {e}")
    logger.info(f"Saved {len(cookies)} cookies to {path}")
