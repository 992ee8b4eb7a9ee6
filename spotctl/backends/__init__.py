"""
Engines module.

Provides the capability interface, the concrete engines, the dispatch
routers and the factory that composes them.
"""

from .types import (
    Device,
    Item,
    Page,
    PlaybackStatus,
    Queue,
    SearchResult,
)
from .base import (
    LIBRARY_ALBUMS_PATH,
    LIBRARY_TRACKS_PATH,
    METHOD_ADD,
    METHOD_REMOVE,
    SpotifyAPI,
)
from .auto import AutoClient
from .fallback import PlaybackFallbackClient
from .web import WebClient
from .applescript import AppleScriptClient
from .factory import (
    BackendFactory,
    BackendNotFoundError,
    BackendRegistry,
)

__all__ = [
    # Types
    "Device",
    "Item",
    "Page",
    "PlaybackStatus",
    "Queue",
    "SearchResult",
    # Base class
    "SpotifyAPI",
    "LIBRARY_ALBUMS_PATH",
    "LIBRARY_TRACKS_PATH",
    "METHOD_ADD",
    "METHOD_REMOVE",
    # Engines and routers
    "AppleScriptClient",
    "AutoClient",
    "PlaybackFallbackClient",
    "WebClient",
    # Factory
    "BackendFactory",
    "BackendNotFoundError",
    "BackendRegistry",
]
