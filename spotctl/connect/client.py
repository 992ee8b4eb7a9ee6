"""
Connect engine.

Uses the web player's private surfaces: pathfinder for search and lookups,
and the connect-state service for playback control of the active device.
"""

import asyncio
import logging
import secrets
import sys
import time
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from spotctl.auth.session import ConnectAuth, ConnectSession
from spotctl.auth.token_provider import CookieTokenProvider
from spotctl.backends.base import SpotifyAPI
from spotctl.backends.types import Device, Item, Page, PlaybackStatus, Queue, SearchResult
from spotctl.backends.web import WebClient, parse_search_response
from spotctl.cookies import CookieSource
from spotctl.endpoints import DEFAULT_TIMEOUT, Endpoints, web_player_headers
from spotctl.errors import MissingDeviceError, SpotifyError, UnsupportedError, raise_for_status

from .dealer import get_connection_id
from .hashes import HashResolver
from .mapping import extract_item_from_payload, extract_search_items
from .pathfinder import PathfinderClient
from .state import (
    MAX_RAW_VOLUME,
    ConnectState,
    map_devices,
    map_playback_status,
    map_queue,
    volume_to_raw,
)

logger = logging.getLogger(__name__)

CONNECTION_TTL = 10 * 60  # seconds
CONNECT_DEVICE_NAME = "spotctl"
CONNECT_DEVICE_MODEL = "web_player"

SEARCH_OPERATION = "searchDesktop"
DEFAULT_SEARCH_LIMIT = 10
INFO_PAGE_LIMIT = 25


def random_hex(size: int) -> str:
    """Random lowercase hex string of the given length."""
    if size <= 0:
        return ""
    return secrets.token_hex((size + 1) // 2)[:size]


def command_payload(endpoint: str, **fields: Any) -> dict[str, Any]:
    """Player command envelope with a fresh command id."""
    command: dict[str, Any] = {
        "endpoint": endpoint,
        "logging_params": {"command_id": random_hex(32)},
    }
    command.update(fields)
    return {"command": command}


def repeat_flags(mode: str) -> dict[str, bool]:
    mode = mode.lower()
    return {
        "repeating_track": mode == "track",
        "repeating_context": mode == "context",
    }


class ConnectClient(SpotifyAPI):
    """Spotify engine driving playback through Spotify Connect."""

    name = "connect"

    def __init__(
        self,
        source: CookieSource,
        endpoints: Optional[Endpoints] = None,
        market: str = "",
        language: str = "",
        device: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[ConnectSession] = None,
        hashes: Optional[HashResolver] = None,
    ):
        """
        Initialize connect engine.

        Args:
            source: Browser cookie source
            endpoints: Endpoint overrides
            market: Market for REST fallbacks
            language: Accept-Language / locale
            device: Preferred device id for REST fallbacks
            timeout: Per-request timeout in seconds
            session: Shared credential session (created if omitted)
            hashes: Shared hash resolver (created if omitted)
        """
        self.source = source
        self.endpoints = endpoints or Endpoints()
        self.market = market
        self.language = language
        self.device = device
        self.timeout = timeout
        self.session = session or ConnectSession(source, self.endpoints, timeout=timeout)
        self.hashes = hashes or HashResolver(self.endpoints, timeout=timeout)
        self.pathfinder = PathfinderClient(
            self.session, self.hashes, self.endpoints, language=language, timeout=timeout
        )
        self._device_lock = asyncio.Lock()
        self._web: Optional[WebClient] = None

    async def close(self) -> None:
        if self._web is not None:
            await self._web.close()
            self._web = None

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout)

    def _web_client(self) -> WebClient:
        if self._web is None:
            provider = CookieTokenProvider(self.source, self.endpoints, timeout=self.timeout)
            self._web = WebClient(
                provider,
                self.endpoints,
                market=self.market,
                language=self.language,
                device=self.device,
                timeout=self.timeout,
            )
        return self._web

    def _connect_headers(self, auth: ConnectAuth) -> dict[str, str]:
        headers = web_player_headers(
            auth.access_token, auth.client_token, auth.connect_version or auth.client_version
        )
        headers["Content-Type"] = "application/json"
        return headers

    # =========================================================================
    # Search & Lookup
    # =========================================================================

    async def search(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        if not query.strip():
            raise ValueError("query required")
        if limit <= 0:
            limit = DEFAULT_SEARCH_LIMIT
        offset = max(offset, 0)
        variables = {
            "searchTerm": query,
            "offset": offset,
            "limit": limit,
            "numberOfTopResults": 5,
            "includeAudiobooks": True,
            "includePreReleases": True,
            "includeLocalConcertsField": False,
            "includeArtistHasConcertsField": False,
        }
        try:
            payload = await self.pathfinder.query(SEARCH_OPERATION, variables)
        except (SpotifyError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.info(f"Pathfinder search failed ({e}), using Web API search")
            return await self._search_via_web(kind, query, limit, offset)
        items, total = extract_search_items(payload, kind)
        return SearchResult(type=kind, limit=limit, offset=offset, total=total, items=items)

    async def _search_via_web(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        """Documented /search endpoint called with the web-player credentials."""
        auth = await self.session.authorize()
        params = {"q": query, "type": kind, "limit": str(limit), "offset": str(offset)}
        if self.market:
            params["market"] = self.market
        if self.language:
            params["locale"] = self.language
        headers = web_player_headers(auth.access_token, auth.client_token, auth.client_version)
        headers["Accept"] = "application/json"
        if self.language:
            headers["Accept-Language"] = self.language
        async with aiohttp.ClientSession() as http:
            async with http.get(
                f"{self.endpoints.web_api}/search",
                params=params,
                headers=headers,
                timeout=self._timeout(),
            ) as resp:
                await raise_for_status(resp)
                payload = await resp.json(content_type=None)
        return parse_search_response(payload, kind)

    async def _info(
        self,
        operation: str,
        variables: dict[str, Any],
        kind: str,
        fallback: Callable[[WebClient], Awaitable[Item]],
    ) -> Item:
        try:
            payload = await self.pathfinder.query(operation, variables)
            item = extract_item_from_payload(payload, kind)
            if item is None:
                raise SpotifyError(f"no {kind} found")
            return item
        except (SpotifyError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.info(f"Pathfinder {operation} failed ({e}), using Web API")
            return await fallback(self._web_client())

    async def get_track(self, id: str) -> Item:
        return await self._info(
            "getTrack", {"uri": f"spotify:track:{id}"}, "track", lambda web: web.get_track(id)
        )

    async def get_album(self, id: str) -> Item:
        return await self._info(
            "getAlbum", {"uri": f"spotify:album:{id}"}, "album", lambda web: web.get_album(id)
        )

    async def get_artist(self, id: str) -> Item:
        variables = {"uri": f"spotify:artist:{id}", "locale": self.language}
        return await self._info(
            "queryArtistOverview", variables, "artist", lambda web: web.get_artist(id)
        )

    async def get_playlist(self, id: str) -> Item:
        variables = {
            "uri": f"spotify:playlist:{id}",
            "offset": 0,
            "limit": INFO_PAGE_LIMIT,
            "enableWatchFeedEntrypoint": False,
        }
        return await self._info(
            "fetchPlaylist", variables, "playlist", lambda web: web.get_playlist(id)
        )

    async def get_show(self, id: str) -> Item:
        variables = {"uri": f"spotify:show:{id}", "offset": 0, "limit": INFO_PAGE_LIMIT}
        return await self._info(
            "queryPodcastEpisodes", variables, "show", lambda web: web.get_show(id)
        )

    async def get_episode(self, id: str) -> Item:
        return await self._info(
            "getEpisodeOrChapter",
            {"uri": f"spotify:episode:{id}"},
            "episode",
            lambda web: web.get_episode(id),
        )

    # =========================================================================
    # Device registration & state
    # =========================================================================

    async def _ensure_connect_device(self, auth: ConnectAuth) -> None:
        """Register the hidden observer device when never done or stale."""
        async with self._device_lock:
            session = self.session
            if not session.connect_device_id:
                session.connect_device_id = random_hex(32)
            if session.connection_id and time.monotonic() - session.registered_at <= CONNECTION_TTL:
                return
            connection_id = await get_connection_id(self.endpoints.dealer, auth.access_token)
            await self._register_device(auth, connection_id)
            session.connection_id = connection_id
            session.registered_at = time.monotonic()
            logger.debug(f"Registered connect device {session.connect_device_id}")

    async def _register_device(self, auth: ConnectAuth, connection_id: str) -> None:
        payload = {
            "device": {
                "device_id": self.session.connect_device_id,
                "device_type": "computer",
                "brand": "spotify",
                "model": CONNECT_DEVICE_MODEL,
                "name": CONNECT_DEVICE_NAME,
                "is_group": False,
                "metadata": {},
                "platform_identifier": f"web_player {sys.platform};{CONNECT_DEVICE_NAME}",
                "capabilities": {
                    "change_volume": True,
                    "supports_file_media_type": True,
                    "enable_play_token": True,
                    "play_token_lost_behavior": "pause",
                    "disable_connect": False,
                    "audio_podcasts": True,
                    "video_playback": True,
                    "manifest_formats": [
                        "file_ids_mp3",
                        "file_urls_mp3",
                        "file_ids_mp4",
                        "manifest_ids_video",
                    ],
                },
            },
            "outro_endcontent_snooping": False,
            "connection_id": connection_id,
            "client_version": auth.connect_version or auth.client_version,
            "volume": MAX_RAW_VOLUME,
        }
        async with aiohttp.ClientSession() as http:
            async with http.post(
                f"{self.endpoints.track_playback}/devices",
                json=payload,
                headers=self._connect_headers(auth),
                timeout=self._timeout(),
            ) as resp:
                await raise_for_status(resp)

    async def connect_state(self) -> ConnectState:
        """Fetch a fresh cluster snapshot."""
        auth = await self.session.authorize()
        await self._ensure_connect_device(auth)
        payload = {
            "member_type": "CONNECT_STATE",
            "device": {
                "device_info": {
                    "capabilities": {
                        "can_be_player": False,
                        "hidden": True,
                        "needs_full_player_state": True,
                    }
                }
            },
        }
        headers = self._connect_headers(auth)
        if self.session.connection_id:
            headers["x-spotify-connection-id"] = self.session.connection_id
        url = f"{self.endpoints.connect_state}/devices/hobs_{self.session.connect_device_id}"
        async with aiohttp.ClientSession() as http:
            async with http.put(url, json=payload, headers=headers, timeout=self._timeout()) as resp:
                await raise_for_status(resp)
                raw = await resp.json(content_type=None)
        return ConnectState.from_payload(raw)

    async def _send_connect_command(self, url: str, payload: dict[str, Any]) -> None:
        auth = await self.session.authorize()
        async with aiohttp.ClientSession() as http:
            async with http.post(
                url, json=payload, headers=self._connect_headers(auth), timeout=self._timeout()
            ) as resp:
                await raise_for_status(resp)

    async def _send_player_command(
        self, state: ConnectState, endpoint: str, payload: Optional[dict[str, Any]] = None
    ) -> None:
        from_id = state.from_device_id
        if not from_id or not state.active_device_id:
            raise MissingDeviceError("missing device id")
        url = (
            f"{self.endpoints.connect_state}/player/command/from/{from_id}"
            f"/to/{state.active_device_id}"
        )
        logger.debug(f"Connect command {endpoint} -> {state.active_device_id}")
        await self._send_connect_command(url, payload or command_payload(endpoint))

    # =========================================================================
    # Playback Control
    # =========================================================================

    async def playback(self) -> PlaybackStatus:
        return map_playback_status(await self.connect_state())

    async def play(self, uri: str = "") -> None:
        state = await self.connect_state()
        if not uri:
            await self._send_player_command(state, "resume")
            return
        payload = command_payload("play", options={"skip_to": {"track_uri": uri}})
        await self._send_player_command(state, "play", payload)

    async def pause(self) -> None:
        await self._send_player_command(await self.connect_state(), "pause")

    async def next(self) -> None:
        await self._send_player_command(await self.connect_state(), "skip_next")

    async def previous(self) -> None:
        await self._send_player_command(await self.connect_state(), "skip_prev")

    async def seek(self, position_ms: int) -> None:
        position_ms = max(position_ms, 0)
        state = await self.connect_state()
        await self._send_player_command(state, "seek_to", command_payload("seek_to", value=position_ms))

    async def volume(self, percent: int) -> None:
        state = await self.connect_state()
        from_id = state.from_device_id
        if not from_id or not state.active_device_id:
            raise MissingDeviceError("missing device id")
        url = (
            f"{self.endpoints.connect_state}/connect/volume/from/{from_id}"
            f"/to/{state.active_device_id}"
        )
        await self._send_connect_command(url, {"volume": volume_to_raw(percent)})

    async def shuffle(self, enabled: bool) -> None:
        state = await self.connect_state()
        payload = command_payload("set_shuffling_context", value=enabled)
        await self._send_player_command(state, "set_shuffling_context", payload)

    async def repeat(self, mode: str) -> None:
        state = await self.connect_state()
        payload = command_payload("set_options", **repeat_flags(mode))
        await self._send_player_command(state, "set_options", payload)

    # =========================================================================
    # Devices & Queue
    # =========================================================================

    async def devices(self) -> list[Device]:
        return map_devices(await self.connect_state())

    async def transfer(self, device_id: str) -> None:
        state = await self.connect_state()
        from_id = state.from_device_id
        if not from_id:
            raise MissingDeviceError("missing origin device id")
        url = f"{self.endpoints.connect_state}/connect/transfer/from/{from_id}/to/{device_id}"
        payload = {
            "transfer_options": {"restore_paused": "resume"},
            "command_id": random_hex(32),
        }
        await self._send_connect_command(url, payload)

    async def queue_add(self, uri: str) -> None:
        state = await self.connect_state()
        payload = command_payload("add_to_queue", track={"uri": uri})
        await self._send_player_command(state, "add_to_queue", payload)

    async def queue(self) -> Queue:
        return map_queue(await self.connect_state())

    # =========================================================================
    # Library, Follows & Playlists
    # =========================================================================

    async def library_tracks(self, limit: int, offset: int) -> Page:
        raise UnsupportedError("library tracks not supported in connect engine")

    async def library_albums(self, limit: int, offset: int) -> Page:
        raise UnsupportedError("library albums not supported in connect engine")

    async def library_modify(self, path: str, ids: list[str], method: str) -> None:
        raise UnsupportedError("library modify not supported in connect engine")

    async def follow_artists(self, ids: list[str], method: str) -> None:
        raise UnsupportedError("follow artists not supported in connect engine")

    async def followed_artists(self, limit: int, after: str = "") -> Page:
        raise UnsupportedError("followed artists not supported in connect engine")

    async def playlists(self, limit: int, offset: int) -> Page:
        raise UnsupportedError("playlists not supported in connect engine")

    async def playlist_tracks(self, id: str, limit: int, offset: int) -> Page:
        raise UnsupportedError("playlist tracks not supported in connect engine")

    async def create_playlist(self, name: str, public: bool, collaborative: bool) -> Item:
        raise UnsupportedError("create playlist not supported in connect engine")

    async def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        raise UnsupportedError("add tracks not supported in connect engine")

    async def remove_tracks(self, playlist_id: str, uris: list[str]) -> None:
        raise UnsupportedError("remove tracks not supported in connect engine")
