"""Tests for the AppleScript engine."""

import sys
from unittest.mock import AsyncMock

import pytest

from spotctl.backends.applescript import (
    AppleScriptClient,
    AppleScriptError,
    applescript_string,
    parse_status,
)
from spotctl.backends.types import SearchResult
from spotctl.errors import UnsupportedError

STATUS_LINE = "|||".join(
    [
        "Song",
        "Artist",
        "Album",
        "spotify:track:abc",
        "215000",
        "12.5",
        "playing",
        "65",
        "true",
        "false",
    ]
)


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> AppleScriptClient:
    """AppleScript client with osascript stubbed out."""
    monkeypatch.setattr(sys, "platform", "darwin")
    fallback = AsyncMock()
    fallback.name = "auto"
    instance = AppleScriptClient(fallback=fallback)
    instance._run_script = AsyncMock(return_value="")  # type: ignore[method-assign]
    return instance


class TestParseStatus:
    """Tests for status line parsing."""

    def test_playing(self) -> None:
        """Test a full status line."""
        status = parse_status(STATUS_LINE)
        assert status.is_playing is True
        assert status.progress_ms == 12500
        assert status.shuffle is True
        assert status.repeat == "off"
        assert status.device.volume == 65
        assert status.item is not None
        assert status.item.uri == "spotify:track:abc"
        assert status.item.artists == ["Artist"]
        assert status.item.duration_ms == 215000

    def test_paused_with_repeat(self) -> None:
        """Test paused state and repeat flag."""
        line = STATUS_LINE.replace("playing", "paused").replace("|||false", "|||true")
        status = parse_status(line)
        assert status.is_playing is False
        assert status.repeat == "context"

    def test_short_output(self) -> None:
        """Test that truncated output is rejected."""
        with pytest.raises(AppleScriptError):
            parse_status("Song|||Artist")


class TestAppleScriptClient:
    """Tests for command construction and delegation."""

    def test_requires_macos(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the engine refuses to start elsewhere."""
        monkeypatch.setattr(sys, "platform", "linux")
        with pytest.raises(UnsupportedError):
            AppleScriptClient()

    @pytest.mark.asyncio
    async def test_play_uri(self, client: AppleScriptClient) -> None:
        """Test that a URI is played directly."""
        await client.play("spotify:track:abc")
        script = client._run_script.call_args.args[0]
        assert script == 'tell application "Spotify" to play track "spotify:track:abc"'

    @pytest.mark.asyncio
    async def test_play_uri_is_quoted(self, client: AppleScriptClient) -> None:
        """Test that quotes and backslashes cannot end the string literal."""
        await client.play('spotify:track:x" to quit')
        script = client._run_script.call_args.args[0]
        assert script == 'tell application "Spotify" to play track "spotify:track:x\\" to quit"'

    def test_applescript_string(self) -> None:
        assert applescript_string("plain") == '"plain"'
        assert applescript_string('a"b') == '"a\\"b"'
        assert applescript_string("a\\b") == '"a\\\\b"'

    @pytest.mark.asyncio
    async def test_seek_uses_seconds(self, client: AppleScriptClient) -> None:
        """Test that seek positions are converted to seconds."""
        await client.seek(90500)
        assert client._run_script.call_args.args[0].endswith("set player position to 90")

    @pytest.mark.asyncio
    async def test_repeat_modes(self, client: AppleScriptClient) -> None:
        """Test that track and context repeat both enable repeating."""
        await client.repeat("track")
        assert client._run_script.call_args.args[0].endswith("set repeating to true")
        await client.repeat("off")
        assert client._run_script.call_args.args[0].endswith("set repeating to false")

    @pytest.mark.asyncio
    async def test_transfer_unsupported(self, client: AppleScriptClient) -> None:
        """Test that transfer is not available locally."""
        with pytest.raises(UnsupportedError):
            await client.transfer("device")

    @pytest.mark.asyncio
    async def test_search_is_delegated(self, client: AppleScriptClient) -> None:
        """Test that search goes to the fallback engine."""
        client.fallback.search.return_value = SearchResult(type="track", total=4)
        result = await client.search("track", "q", 10, 0)
        assert result.total == 4
        client._run_script.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that delegated calls fail without a fallback."""
        monkeypatch.setattr(sys, "platform", "darwin")
        with pytest.raises(UnsupportedError):
            await AppleScriptClient().queue()

    @pytest.mark.asyncio
    async def test_devices(self, client: AppleScriptClient) -> None:
        """Test that the local app is the only device."""
        devices = await client.devices()
        assert len(devices) == 1
        assert devices[0].active is True
