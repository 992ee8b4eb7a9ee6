"""
Connect state snapshot and its mapping to canonical types.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from spotctl.backends.types import Device, Item, PlaybackStatus, Queue

from .mapping import extract_item, get_bool, get_int, get_str, id_from_uri, type_from_uri

MAX_RAW_VOLUME = 65535


@dataclass(frozen=True)
class ConnectState:
    """Decomposed cluster state returned by the connect-state service."""

    raw: dict[str, Any] = field(default_factory=dict)
    player_state: dict[str, Any] = field(default_factory=dict)
    devices: dict[str, Any] = field(default_factory=dict)
    active_device_id: str = ""
    origin_device_id: str = ""

    @classmethod
    def from_payload(cls, raw: Any) -> "ConnectState":
        """Build a snapshot from the decoded PUT /devices response."""
        if not isinstance(raw, dict):
            raw = {}
        devices = raw.get("devices")
        player = raw.get("player_state")
        active = raw.get("active_device_id")
        player = player if isinstance(player, dict) else {}
        origin = player.get("play_origin")
        origin_id = get_str(origin, "device_identifier") if isinstance(origin, dict) else ""
        return cls(
            raw=raw,
            player_state=player,
            devices=devices if isinstance(devices, dict) else {},
            active_device_id=active if isinstance(active, str) else "",
            origin_device_id=origin_id,
        )

    @property
    def from_device_id(self) -> str:
        """Device commands are sent from: the play origin, else the active device."""
        return self.origin_device_id or self.active_device_id


def volume_to_raw(percent: int) -> int:
    """Scale a 0-100 percentage (clamped) to the 0-65535 device range."""
    percent = max(0, min(100, percent))
    return int(percent / 100 * MAX_RAW_VOLUME)


def map_devices(state: ConnectState) -> list[Device]:
    devices = []
    for device_id, raw in state.devices.items():
        if not isinstance(raw, dict):
            continue
        devices.append(
            Device(
                id=device_id,
                name=get_str(raw, "name") or get_str(raw, "device_name"),
                type=get_str(raw, "device_type"),
                volume=get_int(raw, "volume") or get_int(raw, "volume_percent"),
                active=device_id == state.active_device_id,
            )
        )
    return devices


def extract_playback_track(player: dict[str, Any]) -> Optional[Item]:
    """Current track from the player state, else a bare context item."""
    for key in ("track", "item", "current_track"):
        if key in player:
            item = extract_item(player[key], "track")
            if item is not None:
                return item
    for key in ("context_uri", "context_uri_string"):
        uri = player.get(key)
        if isinstance(uri, str) and uri.startswith("spotify:"):
            return Item(uri=uri, id=id_from_uri(uri), type=type_from_uri(uri))
    return None


def map_playback_status(state: ConnectState) -> PlaybackStatus:
    status = PlaybackStatus()
    player = state.player_state
    if not player:
        return status

    paused = player.get("is_paused")
    if isinstance(paused, bool):
        status.is_playing = not paused
    else:
        status.is_playing = get_bool(player, "is_playing")
    status.progress_ms = get_int(player, "position_as_of_timestamp") or get_int(player, "position_ms")
    status.shuffle = get_bool(player, "shuffle")
    status.repeat = get_str(player, "repeat_mode") or get_str(player, "repeat")
    status.item = extract_playback_track(player)
    for device in map_devices(state):
        if device.active:
            status.device = device
            break
    return status


def map_queue(state: ConnectState) -> Queue:
    queue = Queue()
    player = state.player_state
    if not player:
        return queue
    queue.currently_playing = extract_playback_track(player)
    upcoming = player.get("next_tracks")
    if isinstance(upcoming, list):
        for entry in upcoming:
            item = extract_item(entry, "track")
            if item is not None:
                queue.queue.append(item)
    return queue
