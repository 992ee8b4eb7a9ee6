"""
Playback fallback router.

Serves everything from the Web API engine. Only playback-affecting calls
that hit the Web API rate limit are retried once on the connect engine.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from spotctl.errors import is_rate_limited

from .base import SpotifyAPI
from .types import Device, Item, Page, PlaybackStatus, Queue, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlaybackFallbackClient(SpotifyAPI):
    """Web-first router with a rate-limit escape hatch for playback."""

    name = "web"

    def __init__(self, web: SpotifyAPI, connect: Optional[SpotifyAPI] = None):
        self.web = web
        self.connect = connect

    async def _call(self, fn: Callable[[SpotifyAPI], Awaitable[T]], allow: bool = True) -> T:
        try:
            return await fn(self.web)
        except Exception as e:
            if not allow or self.connect is None or not is_rate_limited(e):
                raise
            logger.warning("Web API rate limited, retrying on connect engine")
        return await fn(self.connect)

    async def close(self) -> None:
        await self.web.close()
        if self.connect is not None:
            await self.connect.close()

    # =========================================================================
    # Search & Lookup (web only)
    # =========================================================================

    async def search(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        return await self._call(lambda api: api.search(kind, query, limit, offset), allow=False)

    async def get_track(self, id: str) -> Item:
        return await self._call(lambda api: api.get_track(id), allow=False)

    async def get_album(self, id: str) -> Item:
        return await self._call(lambda api: api.get_album(id), allow=False)

    async def get_artist(self, id: str) -> Item:
        return await self._call(lambda api: api.get_artist(id), allow=False)

    async def get_playlist(self, id: str) -> Item:
        return await self._call(lambda api: api.get_playlist(id), allow=False)

    async def get_show(self, id: str) -> Item:
        return await self._call(lambda api: api.get_show(id), allow=False)

    async def get_episode(self, id: str) -> Item:
        return await self._call(lambda api: api.get_episode(id), allow=False)

    # =========================================================================
    # Playback Control
    # =========================================================================

    async def playback(self) -> PlaybackStatus:
        return await self._call(lambda api: api.playback())

    async def play(self, uri: str = "") -> None:
        await self._call(lambda api: api.play(uri))

    async def pause(self) -> None:
        await self._call(lambda api: api.pause())

    async def next(self) -> None:
        await self._call(lambda api: api.next())

    async def previous(self) -> None:
        await self._call(lambda api: api.previous())

    async def seek(self, position_ms: int) -> None:
        await self._call(lambda api: api.seek(position_ms))

    async def volume(self, percent: int) -> None:
        await self._call(lambda api: api.volume(percent))

    async def shuffle(self, enabled: bool) -> None:
        await self._call(lambda api: api.shuffle(enabled))

    async def repeat(self, mode: str) -> None:
        await self._call(lambda api: api.repeat(mode))

    # =========================================================================
    # Devices & Queue
    # =========================================================================

    async def devices(self) -> list[Device]:
        return await self._call(lambda api: api.devices())

    async def transfer(self, device_id: str) -> None:
        await self._call(lambda api: api.transfer(device_id))

    async def queue_add(self, uri: str) -> None:
        await self._call(lambda api: api.queue_add(uri))

    async def queue(self) -> Queue:
        return await self._call(lambda api: api.queue())

    # =========================================================================
    # Library, Follows & Playlists (web only)
    # =========================================================================

    async def library_tracks(self, limit: int, offset: int) -> Page:
        return await self.web.library_tracks(limit, offset)

    async def library_albums(self, limit: int, offset: int) -> Page:
        return await self.web.library_albums(limit, offset)

    async def library_modify(self, path: str, ids: list[str], method: str) -> None:
        await self.web.library_modify(path, ids, method)

    async def follow_artists(self, ids: list[str], method: str) -> None:
        await self.web.follow_artists(ids, method)

    async def followed_artists(self, limit: int, after: str = "") -> Page:
        return await self.web.followed_artists(limit, after)

    async def playlists(self, limit: int, offset: int) -> Page:
        return await self.web.playlists(limit, offset)

    async def playlist_tracks(self, id: str, limit: int, offset: int) -> Page:
        return await self.web.playlist_tracks(id, limit, offset)

    async def create_playlist(self, name: str, public: bool, collaborative: bool) -> Item:
        return await self.web.create_playlist(name, public, collaborative)

    async def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self.web.add_tracks(playlist_id, uris)

    async def remove_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self.web.remove_tracks(playlist_id, uris)
