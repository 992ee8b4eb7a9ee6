"""Tests for connect state mapping."""

import pytest

from spotctl.connect.state import (
    MAX_RAW_VOLUME,
    ConnectState,
    map_devices,
    map_playback_status,
    map_queue,
    volume_to_raw,
)


@pytest.fixture
def cluster() -> dict:
    """A connect-state cluster with two devices and a playing track."""
    return {
        "active_device_id": "speaker",
        "devices": {
            "speaker": {"name": "Kitchen", "device_type": "SPEAKER", "volume": 40},
            "laptop": {"name": "Laptop", "device_type": "COMPUTER"},
        },
        "player_state": {
            "is_paused": False,
            "position_as_of_timestamp": 61000,
            "shuffle": True,
            "repeat_mode": "context",
            "play_origin": {"device_identifier": "laptop"},
            "track": {"uri": "spotify:track:abc123", "name": "Song"},
            "context_uri": "spotify:album:xyz",
            "next_tracks": [
                {"uri": "spotify:track:next1"},
                {"uri": "spotify:delimiter"},
                {"uri": "spotify:track:next2"},
            ],
        },
    }


class TestVolumeScaling:
    """Tests for percent to device volume scaling."""

    @pytest.mark.parametrize(
        "percent,expected",
        [(0, 0), (50, 32767), (100, MAX_RAW_VOLUME)],
    )
    def test_scaling(self, percent: int, expected: int) -> None:
        """Test the scaling endpoints and midpoint."""
        assert volume_to_raw(percent) == expected

    @pytest.mark.parametrize("percent,expected", [(-10, 0), (150, MAX_RAW_VOLUME)])
    def test_clamping(self, percent: int, expected: int) -> None:
        """Test that out-of-range inputs are clamped."""
        assert volume_to_raw(percent) == expected


class TestConnectState:
    """Tests for snapshot decomposition."""

    def test_from_payload(self, cluster: dict) -> None:
        """Test that ids are read from the cluster."""
        state = ConnectState.from_payload(cluster)
        assert state.active_device_id == "speaker"
        assert state.origin_device_id == "laptop"
        assert state.from_device_id == "laptop"

    def test_from_device_falls_back_to_active(self) -> None:
        """Test that the active device is used without a play origin."""
        state = ConnectState.from_payload({"active_device_id": "speaker", "player_state": {}})
        assert state.from_device_id == "speaker"

    def test_non_dict_payload(self) -> None:
        """Test that garbage payloads produce an empty snapshot."""
        state = ConnectState.from_payload(["not", "a", "dict"])
        assert state.devices == {}
        assert state.from_device_id == ""


class TestMapping:
    """Tests for mapping to canonical types."""

    def test_devices(self, cluster: dict) -> None:
        """Test device mapping and the active flag."""
        devices = {d.id: d for d in map_devices(ConnectState.from_payload(cluster))}
        assert devices["speaker"].active is True
        assert devices["speaker"].volume == 40
        assert devices["speaker"].type == "SPEAKER"
        assert devices["laptop"].active is False

    def test_playback_status(self, cluster: dict) -> None:
        """Test playback status mapping."""
        status = map_playback_status(ConnectState.from_payload(cluster))
        assert status.is_playing is True
        assert status.progress_ms == 61000
        assert status.shuffle is True
        assert status.repeat == "context"
        assert status.item is not None
        assert status.item.id == "abc123"
        assert status.item.type == "track"
        assert status.device.name == "Kitchen"

    def test_playback_without_track_uses_context(self, cluster: dict) -> None:
        """Test that the context URI is used when no track is present."""
        del cluster["player_state"]["track"]
        status = map_playback_status(ConnectState.from_payload(cluster))
        assert status.item is not None
        assert status.item.uri == "spotify:album:xyz"
        assert status.item.type == "album"

    def test_empty_player_state(self) -> None:
        """Test that an idle cluster maps to an empty status."""
        status = map_playback_status(ConnectState.from_payload({}))
        assert status.is_playing is False
        assert status.item is None

    def test_queue_skips_non_tracks(self, cluster: dict) -> None:
        """Test that delimiters are dropped from the queue."""
        queue = map_queue(ConnectState.from_payload(cluster))
        assert queue.currently_playing is not None
        assert [item.id for item in queue.queue] == ["next1", "next2"]
