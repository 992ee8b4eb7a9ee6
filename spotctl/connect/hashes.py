"""
Persisted-query hash discovery.

Pathfinder only accepts queries by the SHA-256 hash the web player ships in
its lazily loaded chunks. The hashes are found by locating the main bundle,
reconstructing the chunk file names from the webpack name/hash maps, and
scanning each chunk for the operation name.
"""

import asyncio
import json
import logging
import re
from typing import Optional
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup

from spotctl.endpoints import DEFAULT_TIMEOUT, USER_AGENT, Endpoints
from spotctl.errors import HashResolutionError, SpotifyAPIError, raise_for_status

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_BASE = "https://open.spotifycdn.com/cdn/build/web-player/"

# Minimum share of matching values for a literal to count as a name/hash map
MAP_SCORE_THRESHOLD = 0.4

MAP_LITERAL_RE = re.compile(r'\{(?:\d+:"[^"]+",?)+\}')
NUMERIC_KEY_RE = re.compile(r"(\d+):")
CHUNK_HASH_RE = re.compile(r"^[0-9a-f]{6,12}$")


# =============================================================================
# Bundle parsing
# =============================================================================


def is_player_bundle(src: str) -> bool:
    """Check if a script src is the web player's main bundle."""
    return src.endswith(".js") and ("/web-player/" in src or "/mobile-web-player/" in src)


def pick_bundle(html: str, base_url: str) -> str:
    """
    Find the main web player bundle URL in the landing page.

    Raises:
        HashResolutionError: If no bundle script is referenced
    """
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script", src=True):
        src = str(script["src"])
        if is_player_bundle(src):
            return urljoin(base_url, src)
    raise HashResolutionError("web player bundle not found")


def bundle_base_url(bundle_url: str) -> str:
    """Directory of the bundle, where its chunks live."""
    idx = bundle_url.rfind("/")
    if idx >= 0:
        return bundle_url[: idx + 1]
    return DEFAULT_BUNDLE_BASE


def parse_map_literal(raw: str) -> dict[int, str]:
    """Parse a ``{12:"abc",34:"def"}`` object literal."""
    try:
        parsed = json.loads(NUMERIC_KEY_RE.sub(r'"\1":', raw))
    except ValueError:
        return {}
    out: dict[int, str] = {}
    for key, value in parsed.items():
        try:
            out[int(key)] = str(value)
        except ValueError:
            continue
    return out


def score_hash_map(mapping: dict[int, str]) -> float:
    """Share of values that look like chunk content hashes."""
    if not mapping:
        return 0.0
    hits = sum(1 for v in mapping.values() if CHUNK_HASH_RE.match(v))
    return hits / len(mapping)


def score_name_map(mapping: dict[int, str]) -> float:
    """Share of values that look like chunk names."""
    if not mapping:
        return 0.0
    hits = sum(1 for v in mapping.values() if "-" in v or "/" in v)
    return hits / len(mapping)


def parse_webpack_maps(js: str) -> tuple[dict[int, str], dict[int, str]]:
    """
    Locate the chunk name map and chunk hash map in a bundle.

    Returns:
        Tuple of (name map, hash map)

    Raises:
        HashResolutionError: If no literals or no qualifying literals exist
    """
    literals = MAP_LITERAL_RE.findall(js)
    if not literals:
        raise HashResolutionError("no maps found")

    best_names: Optional[tuple[float, dict[int, str]]] = None
    best_hashes: Optional[tuple[float, dict[int, str]]] = None
    for raw in literals:
        parsed = parse_map_literal(raw)
        if not parsed:
            continue
        hash_score = score_hash_map(parsed)
        name_score = score_name_map(parsed)
        if hash_score > MAP_SCORE_THRESHOLD and (best_hashes is None or hash_score > best_hashes[0]):
            best_hashes = (hash_score, parsed)
        if name_score > MAP_SCORE_THRESHOLD and (best_names is None or name_score > best_names[0]):
            best_names = (name_score, parsed)

    if best_names is None or best_hashes is None:
        raise HashResolutionError("no suitable maps found")
    return best_names[1], best_hashes[1]


def combine_chunk_names(names: dict[int, str], hashes: dict[int, str]) -> list[str]:
    """Join same-keyed entries into ``<name>.<hash>.js`` file names."""
    return [
        f"{names[key]}.{hashes[key]}.js"
        for key in sorted(names)
        if names[key] and hashes.get(key)
    ]


def find_operation_hashes(body: str, operations: list[str]) -> dict[str, str]:
    """Find ``sha256Hash`` values that follow each operation name."""
    found: dict[str, str] = {}
    for op in operations:
        if not op:
            continue
        pattern = re.compile(re.escape(op) + r'.{0,400}?sha256Hash":"([a-f0-9]{64})"', re.DOTALL)
        match = pattern.search(body)
        if match:
            found[op] = match.group(1)
    return found


# =============================================================================
# Resolver
# =============================================================================


class HashResolver:
    """
    Memoised operation name -> persisted-query hash lookup.

    Hashes never expire for the lifetime of the resolver.
    """

    def __init__(self, endpoints: Optional[Endpoints] = None, timeout: float = DEFAULT_TIMEOUT):
        self.endpoints = endpoints or Endpoints()
        self.timeout = timeout
        self._hashes: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def seed(self, mapping: dict[str, str]) -> None:
        """Pre-populate known hashes."""
        self._hashes.update({op: h for op, h in mapping.items() if op and h})

    def cached(self, operation: str) -> Optional[str]:
        return self._hashes.get(operation) or None

    async def resolve(self, operation: str) -> str:
        """
        Return the hash for an operation, discovering it on first use.

        Raises:
            ValueError: If operation is empty
            HashResolutionError: If discovery fails
        """
        if not operation:
            raise ValueError("operation required")
        hash_ = self._hashes.get(operation)
        if hash_:
            return hash_
        async with self._lock:
            await self.load([operation])
        hash_ = self._hashes.get(operation)
        if not hash_:
            raise HashResolutionError(f"hash for {operation} not found")
        return hash_

    async def load(self, operations: list[str]) -> None:
        """Discover hashes for every operation not yet cached."""
        need = [op for op in operations if not self._hashes.get(op)]
        if not need:
            return

        logger.debug(f"Discovering persisted-query hashes for {', '.join(need)}")
        async with aiohttp.ClientSession() as session:
            html = await self._fetch_text(session, self.endpoints.web_player)
            bundle_url = pick_bundle(html, self.endpoints.web_player)
            bundle = await self._fetch_text(session, bundle_url)
            names, hashes = parse_webpack_maps(bundle)
            chunks = combine_chunk_names(names, hashes)
            if not chunks:
                raise HashResolutionError("no chunks found")

            base = bundle_base_url(bundle_url)
            for chunk in chunks:
                try:
                    body = await self._fetch_text(session, base + chunk)
                except (aiohttp.ClientError, asyncio.TimeoutError, SpotifyAPIError) as e:
                    logger.debug(f"Skipping chunk {chunk}: {e}")
                    continue
                found = find_operation_hashes(body, need)
                if not found:
                    continue
                for op, value in found.items():
                    self._hashes.setdefault(op, value)
                need = [op for op in need if op not in found]
                if not need:
                    logger.debug(f"Resolved hashes after scanning {chunk}")
                    return

        raise HashResolutionError(f"missing hashes for {', '.join(need)}")

    async def _fetch_text(self, session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            await raise_for_status(resp)
            return await resp.text()
