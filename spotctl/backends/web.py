"""
Documented Web API engine.

Talks to api.spotify.com/v1 with a bearer token from a TokenProvider.
Rate-limited requests are retried a bounded number of times.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

from spotctl.auth.token_provider import TokenProvider
from spotctl.auth.tokens import AccessToken
from spotctl.endpoints import DEFAULT_TIMEOUT, USER_AGENT, Endpoints
from spotctl.errors import (
    HTTP_NO_CONTENT,
    HTTP_TOO_MANY_REQUESTS,
    NoContentError,
    SpotifyAPIError,
    UnsupportedTypeError,
    raise_for_status,
)

from .base import SpotifyAPI
from .types import Device, Item, Page, PlaybackStatus, Queue, SearchResult

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds
MAX_RETRY_DELAY = 3.0  # seconds

MUTATING_METHODS = ("PUT", "POST", "DELETE")
CONTEXT_KINDS = ("album", "playlist", "show")


# =============================================================================
# Response mappers
# =============================================================================


def external_url(raw: dict[str, Any]) -> str:
    urls = raw.get("external_urls")
    if not isinstance(urls, dict) or not urls:
        return ""
    return urls.get("spotify") or next(iter(urls.values()), "")


def artist_names(raw: dict[str, Any]) -> list[str]:
    return [a["name"] for a in raw.get("artists") or [] if isinstance(a, dict) and a.get("name")]


def _base_item(raw: dict[str, Any], kind: str) -> Item:
    return Item(
        id=raw.get("id") or "",
        uri=raw.get("uri") or "",
        name=raw.get("name") or "",
        type=kind,
        url=external_url(raw),
    )


def map_track(raw: dict[str, Any]) -> Item:
    item = _base_item(raw, "track")
    item.artists = artist_names(raw)
    item.album = (raw.get("album") or {}).get("name") or ""
    item.duration_ms = raw.get("duration_ms") or 0
    item.explicit = bool(raw.get("explicit"))
    item.is_playable = bool(raw.get("is_playable"))
    return item


def map_album(raw: dict[str, Any]) -> Item:
    item = _base_item(raw, "album")
    item.artists = artist_names(raw)
    item.release_date = raw.get("release_date") or ""
    item.total_tracks = raw.get("total_tracks") or 0
    return item


def map_artist(raw: dict[str, Any]) -> Item:
    item = _base_item(raw, "artist")
    item.followers = (raw.get("followers") or {}).get("total") or 0
    item.genres = list(raw.get("genres") or [])
    return item


def map_playlist(raw: dict[str, Any]) -> Item:
    item = _base_item(raw, "playlist")
    item.owner = (raw.get("owner") or {}).get("display_name") or ""
    item.total_tracks = (raw.get("tracks") or {}).get("total") or 0
    item.description = raw.get("description") or ""
    return item


def map_show(raw: dict[str, Any]) -> Item:
    item = _base_item(raw, "show")
    item.description = raw.get("description") or ""
    item.publisher = raw.get("publisher") or ""
    item.total_episodes = raw.get("total_episodes") or 0
    return item


def map_episode(raw: dict[str, Any]) -> Item:
    item = _base_item(raw, "episode")
    item.description = raw.get("description") or ""
    item.duration_ms = raw.get("duration_ms") or 0
    return item


ITEM_MAPPERS = {
    "track": map_track,
    "album": map_album,
    "artist": map_artist,
    "playlist": map_playlist,
    "show": map_show,
    "episode": map_episode,
}


def map_search_item(kind: str, raw: dict[str, Any]) -> Item:
    mapper = ITEM_MAPPERS.get(kind)
    if mapper is None:
        raise UnsupportedTypeError(f"unsupported spotify type: {kind}")
    return mapper(raw)


def map_device(raw: dict[str, Any]) -> Device:
    return Device(
        id=raw.get("id") or "",
        name=raw.get("name") or "",
        type=raw.get("type") or "",
        volume=raw.get("volume_percent") or 0,
        active=bool(raw.get("is_active")),
        restricted=bool(raw.get("is_restricted")),
    )


def parse_search_response(payload: Any, kind: str) -> SearchResult:
    """
    Map a /v1/search response for one kind.

    The container is keyed by the plural kind ("tracks"); the singular key is
    accepted as well.
    """
    payload = payload if isinstance(payload, dict) else {}
    container = payload.get(f"{kind}s")
    if not isinstance(container, dict):
        container = payload.get(kind)
    if not isinstance(container, dict):
        raise SpotifyAPIError(f"missing {kind} result", status=200)
    items = [
        map_search_item(kind, raw) for raw in container.get("items") or [] if isinstance(raw, dict)
    ]
    return SearchResult(
        type=kind,
        limit=container.get("limit") or 0,
        offset=container.get("offset") or 0,
        total=container.get("total") or 0,
        items=items,
    )


def is_context_uri(uri: str) -> bool:
    """Album, playlist and show URIs start a context, not a track list."""
    return any(f":{kind}:" in uri for kind in CONTEXT_KINDS)


def parse_retry_after(value: Optional[str]) -> float:
    delay = DEFAULT_RETRY_DELAY
    if value:
        try:
            seconds = int(value)
        except ValueError:
            seconds = 0
        if seconds > 0:
            delay = float(seconds)
    return min(delay, MAX_RETRY_DELAY)


# =============================================================================
# Client
# =============================================================================


class WebClient(SpotifyAPI):
    """Spotify engine backed by the documented Web API."""

    name = "web"

    def __init__(
        self,
        token_provider: TokenProvider,
        endpoints: Optional[Endpoints] = None,
        market: str = "",
        language: str = "",
        device: str = "",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize Web API client.

        Args:
            token_provider: Source of bearer tokens
            endpoints: Endpoint overrides
            market: ISO country code added to requests
            language: Locale added to requests
            device: Target device id for playback mutations
            timeout: Per-request timeout in seconds
        """
        self.token_provider = token_provider
        self.endpoints = endpoints or Endpoints()
        self.market = market
        self.language = language
        self.device = device
        self.timeout = timeout
        self._token = AccessToken()
        self._token_lock = asyncio.Lock()
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "WebClient":
        return self

    async def __aexit__(self, exc_type: Optional[type], exc_val: Optional[BaseException], exc_tb: Optional[Any]) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Request plumbing
    # =========================================================================

    async def _access_token(self) -> str:
        async with self._token_lock:
            if self._token.is_expired(60):
                self._token = await self.token_provider.token()
            return self._token.token

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
        return self._session

    def _build_params(self, method: str, params: Optional[dict[str, Any]]) -> dict[str, str]:
        out = {key: str(value) for key, value in (params or {}).items()}
        if self.market:
            out.setdefault("market", self.market)
        if self.language:
            out.setdefault("locale", self.language)
        if method in MUTATING_METHODS and self.device:
            out.setdefault("device_id", self.device)
        return out

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        payload: Any = None,
        expect_body: bool = False,
    ) -> Any:
        """
        Send a request, retrying on HTTP 429.

        Returns:
            Decoded JSON body, or None when no body is expected or present

        Raises:
            NoContentError: On 204 when a body was expected
            SpotifyAPIError: On non-2xx responses (429 once retries run out)
        """
        url = self.endpoints.web_api + path
        query = self._build_params(method, params)
        attempt = 1
        while True:
            headers = {
                "Authorization": f"Bearer {await self._access_token()}",
                "Accept": "application/json",
            }
            async with self._http().request(
                method,
                url,
                params=query,
                json=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status == HTTP_TOO_MANY_REQUESTS and attempt < MAX_ATTEMPTS:
                    delay = parse_retry_after(resp.headers.get("Retry-After"))
                    logger.warning(f"Rate limited on {method} {path}, retrying in {delay:.0f}s")
                    self._token = AccessToken()
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                if resp.status == HTTP_NO_CONTENT:
                    if expect_body:
                        raise NoContentError()
                    return None
                await raise_for_status(resp)
                if not expect_body:
                    return None
                text = await resp.text()
                if not text:
                    return None
                return json.loads(text)

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        data = await self._send("GET", path, params=params, expect_body=True)
        return data if isinstance(data, dict) else {}

    # =========================================================================
    # Search & Lookup
    # =========================================================================

    async def search(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        params = {"q": query, "type": kind, "limit": limit, "offset": offset}
        return parse_search_response(await self._get("/search", params), kind)

    async def get_track(self, id: str) -> Item:
        return map_track(await self._get(f"/tracks/{id}"))

    async def get_album(self, id: str) -> Item:
        return map_album(await self._get(f"/albums/{id}"))

    async def get_artist(self, id: str) -> Item:
        return map_artist(await self._get(f"/artists/{id}"))

    async def get_playlist(self, id: str) -> Item:
        return map_playlist(await self._get(f"/playlists/{id}"))

    async def get_show(self, id: str) -> Item:
        return map_show(await self._get(f"/shows/{id}"))

    async def get_episode(self, id: str) -> Item:
        return map_episode(await self._get(f"/episodes/{id}"))

    # =========================================================================
    # Playback Control
    # =========================================================================

    async def playback(self) -> PlaybackStatus:
        try:
            raw = await self._get("/me/player")
        except NoContentError:
            return PlaybackStatus()
        status = PlaybackStatus(
            is_playing=bool(raw.get("is_playing")),
            progress_ms=raw.get("progress_ms") or 0,
            shuffle=bool(raw.get("shuffle_state")),
            repeat=raw.get("repeat_state") or "",
            device=map_device(raw.get("device") or {}),
        )
        track = raw.get("item")
        if isinstance(track, dict) and track.get("id"):
            status.item = map_track(track)
        return status

    async def play(self, uri: str = "") -> None:
        payload: dict[str, Any] = {}
        if uri:
            if is_context_uri(uri):
                payload["context_uri"] = uri
            else:
                payload["uris"] = [uri]
        await self._send("PUT", "/me/player/play", payload=payload)

    async def pause(self) -> None:
        await self._send("PUT", "/me/player/pause")

    async def next(self) -> None:
        await self._send("POST", "/me/player/next")

    async def previous(self) -> None:
        await self._send("POST", "/me/player/previous")

    async def seek(self, position_ms: int) -> None:
        await self._send("PUT", "/me/player/seek", params={"position_ms": position_ms})

    async def volume(self, percent: int) -> None:
        await self._send("PUT", "/me/player/volume", params={"volume_percent": percent})

    async def shuffle(self, enabled: bool) -> None:
        await self._send("PUT", "/me/player/shuffle", params={"state": "true" if enabled else "false"})

    async def repeat(self, mode: str) -> None:
        await self._send("PUT", "/me/player/repeat", params={"state": mode})

    # =========================================================================
    # Devices & Queue
    # =========================================================================

    async def devices(self) -> list[Device]:
        raw = await self._get("/me/player/devices")
        return [map_device(d) for d in raw.get("devices") or [] if isinstance(d, dict)]

    async def transfer(self, device_id: str) -> None:
        await self._send("PUT", "/me/player", payload={"device_ids": [device_id]})

    async def queue_add(self, uri: str) -> None:
        await self._send("POST", "/me/player/queue", params={"uri": uri})

    async def queue(self) -> Queue:
        try:
            raw = await self._get("/me/player/queue")
        except NoContentError:
            return Queue()
        queue = Queue()
        current = raw.get("currently_playing")
        if isinstance(current, dict) and current.get("id"):
            queue.currently_playing = map_track(current)
        queue.queue = [map_track(t) for t in raw.get("queue") or [] if isinstance(t, dict)]
        return queue

    # =========================================================================
    # Library, Follows & Playlists
    # =========================================================================

    async def _saved_items(self, path: str, limit: int, offset: int) -> Page:
        raw = await self._get(path, {"limit": limit, "offset": offset})
        items = []
        for entry in raw.get("items") or []:
            if not isinstance(entry, dict):
                continue
            track = entry.get("track")
            if isinstance(track, dict) and track.get("id"):
                items.append(map_track(track))
            album = entry.get("album")
            if isinstance(album, dict) and album.get("id"):
                items.append(map_album(album))
        return Page(items=items, total=raw.get("total") or 0)

    async def library_tracks(self, limit: int, offset: int) -> Page:
        return await self._saved_items("/me/tracks", limit, offset)

    async def library_albums(self, limit: int, offset: int) -> Page:
        return await self._saved_items("/me/albums", limit, offset)

    async def library_modify(self, path: str, ids: list[str], method: str) -> None:
        await self._send(method, path, params={"ids": ",".join(ids)})

    async def follow_artists(self, ids: list[str], method: str) -> None:
        await self._send(method, "/me/following", params={"type": "artist", "ids": ",".join(ids)})

    async def followed_artists(self, limit: int, after: str = "") -> Page:
        params: dict[str, Any] = {"type": "artist", "limit": limit}
        if after:
            params["after"] = after
        raw = (await self._get("/me/following", params)).get("artists") or {}
        items = [map_artist(a) for a in raw.get("items") or [] if isinstance(a, dict)]
        next_after = items[-1].id if items else ""
        return Page(items=items, total=raw.get("total") or 0, next_after=next_after)

    async def playlists(self, limit: int, offset: int) -> Page:
        raw = await self._get("/me/playlists", {"limit": limit, "offset": offset})
        items = [map_playlist(p) for p in raw.get("items") or [] if isinstance(p, dict)]
        return Page(items=items, total=raw.get("total") or 0)

    async def playlist_tracks(self, id: str, limit: int, offset: int) -> Page:
        raw = await self._get(f"/playlists/{id}/tracks", {"limit": limit, "offset": offset})
        items = []
        for entry in raw.get("items") or []:
            track = entry.get("track") if isinstance(entry, dict) else None
            if isinstance(track, dict) and track.get("id"):
                items.append(map_track(track))
        return Page(items=items, total=raw.get("total") or 0)

    async def _current_user_id(self) -> str:
        user_id = (await self._get("/me")).get("id")
        if not user_id:
            raise SpotifyAPIError("missing user id", status=200)
        return user_id

    async def create_playlist(self, name: str, public: bool, collaborative: bool) -> Item:
        user_id = await self._current_user_id()
        payload = {"name": name, "public": public, "collaborative": collaborative}
        raw = await self._send("POST", f"/users/{user_id}/playlists", payload=payload, expect_body=True)
        return map_playlist(raw if isinstance(raw, dict) else {})

    async def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self._send("POST", f"/playlists/{playlist_id}/tracks", payload={"uris": uris})

    async def remove_tracks(self, playlist_id: str, uris: list[str]) -> None:
        payload = {"tracks": [{"uri": uri} for uri in uris]}
        await self._send("DELETE", f"/playlists/{playlist_id}/tracks", payload=payload)
