"""
AppleScript engine.

Drives the local Spotify desktop app through osascript. Only transport and
player settings are native; everything else goes to an optional fallback
engine.
"""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional, TypeVar

from spotctl.errors import SpotifyError, UnsupportedError

from .base import SpotifyAPI
from .types import Device, Item, Page, PlaybackStatus, Queue, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

OSASCRIPT = "osascript"
FIELD_SEPARATOR = "|||"
LOCAL_DEVICE = Device(id="local", name="Local Spotify", type="COMPUTER", active=True)

STATUS_SCRIPT = """tell application "Spotify"
\tset trackName to name of current track
\tset trackArtist to artist of current track
\tset trackAlbum to album of current track
\tset trackID to id of current track
\tset trackDuration to duration of current track
\tset playerPos to player position
\tset playerState to player state as string
\tset vol to sound volume
\tset isShuffling to shuffling
\tset isRepeating to repeating
\treturn trackName & "|||" & trackArtist & "|||" & trackAlbum & "|||" & trackID & "|||" & trackDuration & "|||" & playerPos & "|||" & playerState & "|||" & vol & "|||" & isShuffling & "|||" & isRepeating
end tell"""


class AppleScriptError(SpotifyError):
    """osascript exited with an error."""

    pass


def applescript_string(value: str) -> str:
    """Quote a value as an AppleScript string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _to_int(value: str) -> int:
    try:
        return int(float(value))
    except ValueError:
        return 0


def parse_status(output: str) -> PlaybackStatus:
    """
    Parse the ``|||``-joined status line produced by STATUS_SCRIPT.

    Raises:
        AppleScriptError: If the line has too few fields
    """
    parts = output.split(FIELD_SEPARATOR)
    if len(parts) < 10:
        raise AppleScriptError(f"unexpected applescript output: {output}")
    name, artist, album, uri, duration, position, state, volume, shuffling, repeating = parts[:10]
    try:
        position_s = float(position)
    except ValueError:
        position_s = 0.0
    device = Device(
        id=LOCAL_DEVICE.id,
        name=LOCAL_DEVICE.name,
        type=LOCAL_DEVICE.type,
        volume=_to_int(volume),
        active=True,
    )
    return PlaybackStatus(
        is_playing=state == "playing",
        progress_ms=int(position_s * 1000),
        item=Item(uri=uri, name=name, artists=[artist], album=album, duration_ms=_to_int(duration)),
        device=device,
        shuffle=shuffling == "true",
        repeat="context" if repeating == "true" else "off",
    )


class AppleScriptClient(SpotifyAPI):
    """Spotify engine controlling the macOS desktop client."""

    name = "applescript"

    def __init__(self, fallback: Optional[SpotifyAPI] = None):
        if sys.platform != "darwin":
            raise UnsupportedError("applescript engine is only available on macOS")
        self.fallback = fallback

    async def close(self) -> None:
        if self.fallback is not None:
            await self.fallback.close()

    async def _run_script(self, script: str) -> str:
        proc = await asyncio.create_subprocess_exec(
            OSASCRIPT,
            "-e",
            script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise AppleScriptError(f"applescript error: {message or proc.returncode}")
        return stdout.decode("utf-8", errors="replace").strip()

    async def _tell(self, command: str) -> None:
        await self._run_script(f'tell application "Spotify" to {command}')

    async def _delegate(self, fn: Callable[[SpotifyAPI], Awaitable[T]]) -> T:
        if self.fallback is None:
            raise UnsupportedError("not supported by applescript engine")
        return await fn(self.fallback)

    # =========================================================================
    # Playback Control (native)
    # =========================================================================

    async def playback(self) -> PlaybackStatus:
        return parse_status(await self._run_script(STATUS_SCRIPT))

    async def play(self, uri: str = "") -> None:
        await self._tell(f"play track {applescript_string(uri)}" if uri else "play")

    async def pause(self) -> None:
        await self._tell("pause")

    async def next(self) -> None:
        await self._tell("next track")

    async def previous(self) -> None:
        await self._tell("previous track")

    async def seek(self, position_ms: int) -> None:
        await self._tell(f"set player position to {position_ms // 1000}")

    async def volume(self, percent: int) -> None:
        await self._tell(f"set sound volume to {percent}")

    async def shuffle(self, enabled: bool) -> None:
        await self._tell(f"set shuffling to {'true' if enabled else 'false'}")

    async def repeat(self, mode: str) -> None:
        enabled = mode in ("track", "context")
        await self._tell(f"set repeating to {'true' if enabled else 'false'}")

    async def devices(self) -> list[Device]:
        return [Device(id=LOCAL_DEVICE.id, name=LOCAL_DEVICE.name, type=LOCAL_DEVICE.type, active=True)]

    async def transfer(self, device_id: str) -> None:
        raise UnsupportedError("transfer not supported by applescript engine")

    # =========================================================================
    # Delegated
    # =========================================================================

    async def queue_add(self, uri: str) -> None:
        await self._delegate(lambda api: api.queue_add(uri))

    async def queue(self) -> Queue:
        return await self._delegate(lambda api: api.queue())

    async def search(self, kind: str, query: str, limit: int, offset: int) -> SearchResult:
        return await self._delegate(lambda api: api.search(kind, query, limit, offset))

    async def get_track(self, id: str) -> Item:
        return await self._delegate(lambda api: api.get_track(id))

    async def get_album(self, id: str) -> Item:
        return await self._delegate(lambda api: api.get_album(id))

    async def get_artist(self, id: str) -> Item:
        return await self._delegate(lambda api: api.get_artist(id))

    async def get_playlist(self, id: str) -> Item:
        return await self._delegate(lambda api: api.get_playlist(id))

    async def get_show(self, id: str) -> Item:
        return await self._delegate(lambda api: api.get_show(id))

    async def get_episode(self, id: str) -> Item:
        return await self._delegate(lambda api: api.get_episode(id))

    async def library_tracks(self, limit: int, offset: int) -> Page:
        return await self._delegate(lambda api: api.library_tracks(limit, offset))

    async def library_albums(self, limit: int, offset: int) -> Page:
        return await self._delegate(lambda api: api.library_albums(limit, offset))

    async def library_modify(self, path: str, ids: list[str], method: str) -> None:
        await self._delegate(lambda api: api.library_modify(path, ids, method))

    async def follow_artists(self, ids: list[str], method: str) -> None:
        await self._delegate(lambda api: api.follow_artists(ids, method))

    async def followed_artists(self, limit: int, after: str = "") -> Page:
        return await self._delegate(lambda api: api.followed_artists(limit, after))

    async def playlists(self, limit: int, offset: int) -> Page:
        return await self._delegate(lambda api: api.playlists(limit, offset))

    async def playlist_tracks(self, id: str, limit: int, offset: int) -> Page:
        return await self._delegate(lambda api: api.playlist_tracks(id, limit, offset))

    async def create_playlist(self, name: str, public: bool, collaborative: bool) -> Item:
        return await self._delegate(lambda api: api.create_playlist(name, public, collaborative))

    async def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self._delegate(lambda api: api.add_tracks(playlist_id, uris))

    async def remove_tracks(self, playlist_id: str, uris: list[str]) -> None:
        await self._delegate(lambda api: api.remove_tracks(playlist_id, uris))
