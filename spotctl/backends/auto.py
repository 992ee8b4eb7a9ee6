"""
Auto dispatch router.

Sends every capability to the primary engine and retries it once on the
secondary when the primary cannot serve it (unsupported or rate limited).
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from spotctl.errors import UnsupportedError, is_rate_limited

from .base import SpotifyAPI
from .types import Device, Item, Page, PlaybackStatus, Queue, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def should_fallback(err: BaseException) -> bool:
    """Unsupported capabilities and HTTP 429 are handed to the secondary."""
    return isinstance(err, UnsupportedError) or is_rate_limited(err)


class AutoClient(SpotifyAPI):
    """Primary-then-secondary router over two engines."""

    name = "auto"

    def __init__(self, primary: SpotifyAPI, secondary: Optional[SpotifyAPI] = None):
        self.primary = primary
        self.secondary = secondary

    async def _call(self, fn: Callable[[SpotifyAPI], Awaitable[T]]) -> T:
        try:
            return await fn(self.primary)
        except Exception as e:
            if self.secondary is None or not should_fallback(e):
                raise
            logger.info(f"{self.primary.name} engine failed ({e}), using {self.secondary.name}")
        return await fn(self.secondary)

    async def close(self) -> None:
        await self.primary.close()
        if self.secondary is not None:
            await self.secondary.close()

    # =========================================================================
    # Search & Lookup
    # =========================================================================

    async def search(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        return await self._call(lambda api: api.search(kind, query, limit, offset))

    async def get_track(self, id: str) -> Item:
        return await self._call(lambda api: api.get_track(id))

    async def get_album(self, id: str) -> Item:
        return await self._call(lambda api: api.get_album(id))

    async def get_artist(self, id: str) -> Item:
        return await self._call(lambda api: api.get_artist(id))

    async def get_playlist(self, id: str) -> Item:
        return await self._call(lambda api: api.get_playlist(id))

    async def get_show(self, id: str) -> Item:
        return await self._call(lambda api: api.get_show(id))

    async def get_episode(self, id: str) -> Item:
        return await self._call(lambda api: api.get_episode(id))

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
    # Library, Follows & Playlists
    # =========================================================================

    async def library_tracks(self, limit: int, offset: int) -> Page:
        return await self._call(lambda api: api.library_tracks(limit, offset))

    async def library_albums(self, limit: int, offset: int) -> Page:
        return await self._call(lambda api: api.library_albums(limit, offset))

    async def library_modify(self, path: str, ids: list[str], method: str) -> None:
        await self._call(lambda api: api.library_modify(path, ids, method))

    async def follow_artists(self, ids: list[str], method: str) -> None:
        await self._call(lambda api: api.follow_artists(ids, method))

    async def followed_artists(self, limit: int, after: str = "") -> Page:
        return await self._call(lambda api: api.followed_artists(limit, after))

    async def playlists(self, limit: int, offset: int) -> Page:
        return await self._call(lambda api: api.playlists(limit, offset))

    async def playlist_tracks(self, id: str, limit: int, offset: int) -> Page:
        return await self._call(lambda api: api.playlist_tracks(id, limit, offset))

    async def create_playlist(self, name: str, public: bool, collaborative: bool) -> Item:
        return await self._call(lambda api: api.create_playlist(name, public, collaborative))

    async def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self._call(lambda api: api.add_tracks(playlist_id, uris))

    async def remove_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self._call(lambda api: api.remove_tracks(playlist_id, uris))
