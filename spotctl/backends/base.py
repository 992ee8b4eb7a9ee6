"""
Abstract capability interface.

Defines the control surface every engine (connect, web, applescript) and
every dispatch router implements.
"""

import logging
from abc import ABC, abstractmethod

from spotctl.errors import UnsupportedTypeError

from .types import Device, Item, Page, PlaybackStatus, Queue, SearchResult

logger = logging.getLogger(__name__)

# Library paths understood by library_modify()
LIBRARY_TRACKS_PATH = "/me/tracks"
LIBRARY_ALBUMS_PATH = "/me/albums"

# HTTP-style verbs for library_modify() / follow_artists()
METHOD_ADD = "PUT"
METHOD_REMOVE = "DELETE"


class SpotifyAPI(ABC):
    """
    Abstract base class for Spotify engines.

    Engines must implement every capability. A capability with no equivalent
    in an engine raises UnsupportedError so dispatch routers can fall back.
    """

    name: str = "SpotifyAPI"

    # =========================================================================
    # Search & Lookup
    # =========================================================================

    @abstractmethod
    async def search(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        """Search for items of one kind."""
        pass

    @abstractmethod
    async def get_track(self, id: str) -> Item:
        pass

    @abstractmethod
    async def get_album(self, id: str) -> Item:
        pass

    @abstractmethod
    async def get_artist(self, id: str) -> Item:
        pass

    @abstractmethod
    async def get_playlist(self, id: str) -> Item:
        pass

    @abstractmethod
    async def get_show(self, id: str) -> Item:
        pass

    @abstractmethod
    async def get_episode(self, id: str) -> Item:
        pass

    async def get_item(self, kind: str, id: str) -> Item:
        """Look up a single item by kind and id."""
        getters = {
            "track": self.get_track,
            "album": self.get_album,
            "artist": self.get_artist,
            "playlist": self.get_playlist,
            "show": self.get_show,
            "episode": self.get_episode,
        }
        getter = getters.get(kind)
        if getter is None:
            raise UnsupportedTypeError(f"unsupported spotify type: {kind}")
        return await getter(id)

    # =========================================================================
    # Playback Control
    # =========================================================================

    @abstractmethod
    async def playback(self) -> PlaybackStatus:
        """Get current playback status."""
        pass

    @abstractmethod
    async def play(self, uri: str = "") -> None:
        """Start playback of a URI, or resume when uri is empty."""
        pass

    @abstractmethod
    async def pause(self) -> None:
        pass

    @abstractmethod
    async def next(self) -> None:
        pass

    @abstractmethod
    async def previous(self) -> None:
        pass

    @abstractmethod
    async def seek(self, position_ms: int) -> None:
        pass

    @abstractmethod
    async def volume(self, percent: int) -> None:
        """Set volume (0-100)."""
        pass

    @abstractmethod
    async def shuffle(self, enabled: bool) -> None:
        pass

    @abstractmethod
    async def repeat(self, mode: str) -> None:
        """Set repeat mode: 'track', 'context' or 'off'."""
        pass

    # =========================================================================
    # Devices & Queue
    # =========================================================================

    @abstractmethod
    async def devices(self) -> list[Device]:
        pass

    @abstractmethod
    async def transfer(self, device_id: str) -> None:
        pass

    @abstractmethod
    async def queue_add(self, uri: str) -> None:
        pass

    @abstractmethod
    async def queue(self) -> Queue:
        pass

    # =========================================================================
    # Library, Follows & Playlists
    # =========================================================================

    @abstractmethod
    async def library_tracks(self, limit: int, offset: int) -> Page:
        pass

    @abstractmethod
    async def library_albums(self, limit: int, offset: int) -> Page:
        pass

    @abstractmethod
    async def library_modify(self, path: str, ids: list[str], method: str) -> None:
        """Add (PUT) or remove (DELETE) ids from a library path."""
        pass

    @abstractmethod
    async def follow_artists(self, ids: list[str], method: str) -> None:
        pass

    @abstractmethod
    async def followed_artists(self, limit: int, after: str = "") -> Page:
        pass

    @abstractmethod
    async def playlists(self, limit: int, offset: int) -> Page:
        pass

    @abstractmethod
    async def playlist_tracks(self, id: str, limit: int, offset: int) -> Page:
        pass

    @abstractmethod
    async def create_playlist(self, name: str, public: bool, collaborative: bool) -> Item:
        pass

    @abstractmethod
    async def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        pass

    @abstractmethod
    async def remove_tracks(self, playlist_id: str, uris: list[str]) -> None:
        pass

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Release network resources. Default does nothing."""
        return None
