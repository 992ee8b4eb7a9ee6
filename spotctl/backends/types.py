"""
Canonical media and playback types shared by all engines.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Item:
    """
    Normalized media entity (track, album, artist, playlist, show, episode).

    Identity is the URI; id and type are derived from its colon segments.
    """

    id: str = ""
    uri: str = ""
    name: str = ""
    type: str = ""
    url: str = ""
    artists: list[str] = field(default_factory=list)
    album: str = ""
    owner: str = ""
    duration_ms: int = 0
    explicit: bool = False
    total_tracks: int = 0
    release_date: str = ""
    description: str = ""
    total_items: int = 0
    followers: int = 0
    genres: list[str] = field(default_factory=list)
    is_playable: bool = False
    publisher: str = ""
    total_episodes: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting empty optional fields."""
        result: dict[str, Any] = {
            "id": self.id,
            "uri": self.uri,
            "name": self.name,
            "type": self.type,
            "url": self.url,
        }
        optional = {
            "artists": self.artists,
            "album": self.album,
            "owner": self.owner,
            "duration_ms": self.duration_ms,
            "explicit": self.explicit,
            "total_tracks": self.total_tracks,
            "release_date": self.release_date,
            "description": self.description,
            "total_items": self.total_items,
            "followers": self.followers,
            "genres": self.genres,
            "is_playable": self.is_playable,
            "publisher": self.publisher,
            "total_episodes": self.total_episodes,
        }
        result.update({key: value for key, value in optional.items() if value})
        return result


@dataclass
class SearchResult:
    """One page of search results for a single kind."""

    type: str = ""
    limit: int = 0
    offset: int = 0
    total: int = 0
    items: list[Item] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type,
            "limit": self.limit,
            "offset": self.offset,
            "total": self.total,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class Device:
    """A Connect-capable playback device."""

    id: str = ""
    name: str = ""
    type: str = ""
    volume: int = 0  # percent
    active: bool = False
    restricted: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "volume_percent": self.volume,
            "is_active": self.active,
            "is_restricted": self.restricted,
        }

    def __str__(self) -> str:
        marker = "*" if self.active else " "
        return f"{marker} {self.name} ({self.type}) [{self.id}]"


@dataclass
class PlaybackStatus:
    """Current playback state of the active device."""

    is_playing: bool = False
    progress_ms: int = 0
    item: Optional[Item] = None
    device: Device = field(default_factory=Device)
    shuffle: bool = False
    repeat: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "is_playing": self.is_playing,
            "progress_ms": self.progress_ms,
            "device": self.device.to_dict(),
            "shuffle": self.shuffle,
            "repeat": self.repeat,
        }
        if self.item is not None:
            result["item"] = self.item.to_dict()
        return result


@dataclass
class Queue:
    """Currently playing item and the upcoming queue."""

    currently_playing: Optional[Item] = None
    queue: list[Item] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {"queue": [item.to_dict() for item in self.queue]}
        if self.currently_playing is not None:
            result["currently_playing"] = self.currently_playing.to_dict()
        return result


@dataclass
class Page:
    """A page of items with the server-reported total and cursor."""

    items: list[Item] = field(default_factory=list)
    total: int = 0
    next_after: str = ""  # cursor for cursor-paged endpoints

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
        }
        if self.next_after:
            result["next_after"] = self.next_after
        return result
