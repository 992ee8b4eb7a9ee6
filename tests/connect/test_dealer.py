"""Tests for the dealer websocket handshake."""

import asyncio
import json
from typing import Callable

import pytest
from aiohttp import web

from spotctl.connect.dealer import dealer_url_with_token, get_connection_id, parse_connection_id
from spotctl.errors import ConnectionIdError


class TestDealerUrl:
    """Tests for token query construction."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("wss://dealer.spotify.com/", "wss://dealer.spotify.com/?access_token=tok"),
            ("wss://d/?a=1", "wss://d/?a=1&access_token=tok"),
            ("wss://d/?", "wss://d/?access_token=tok"),
            ("wss://d/?a=1&", "wss://d/?a=1&access_token=tok"),
        ],
    )
    def test_separator(self, url: str, expected: str) -> None:
        """Test that the right separator is used."""
        assert dealer_url_with_token(url, "tok") == expected


class TestParseConnectionId:
    """Tests for greeting parsing."""

    def test_header_lookup_is_case_insensitive(self) -> None:
        """Test that the header name matches in any case."""
        message = json.dumps({"headers": {"spotify-connection-id": "conn-1"}})
        assert parse_connection_id(message) == "conn-1"

    def test_bytes_message(self) -> None:
        """Test that binary frames are decoded."""
        message = json.dumps({"headers": {"Spotify-Connection-Id": "conn-2"}}).encode()
        assert parse_connection_id(message) == "conn-2"

    def test_missing_headers(self) -> None:
        """Test that greetings without headers fail."""
        with pytest.raises(ConnectionIdError, match="missing headers"):
            parse_connection_id(json.dumps({"type": "message"}))

    def test_missing_connection_id(self) -> None:
        """Test that headers without the id fail."""
        with pytest.raises(ConnectionIdError, match="missing connection id"):
            parse_connection_id(json.dumps({"headers": {"Other": "x"}}))

    def test_invalid_json(self) -> None:
        """Test that non-JSON greetings fail."""
        with pytest.raises(ConnectionIdError):
            parse_connection_id("hello")


class TestGetConnectionId:
    """Tests against a local websocket server."""

    @pytest.mark.asyncio
    async def test_reads_greeting(self, serve: Callable) -> None:
        """Test that the id is read from the first message."""
        seen_tokens: list[str] = []

        async def dealer(request: web.Request) -> web.WebSocketResponse:
            seen_tokens.append(request.query.get("access_token", ""))
            ws = web.WebSocketResponse()
            await ws.prepare(request)
            await ws.send_str(json.dumps({"headers": {"Spotify-Connection-Id": "conn-42"}}))
            await ws.close()
            return ws

        app = web.Application()
        app.router.add_get("/", dealer)
        async with serve(app) as server:
            url = str(server.make_url("/")).replace("http://", "ws://")
            connection_id = await get_connection_id(url, "access-token")

        assert connection_id == "conn-42"
        assert seen_tokens == ["access-token"]

    @pytest.mark.asyncio
    async def test_silent_dealer_times_out(self, serve: Callable) -> None:
        """Test that a dealer that never greets hits the deadline."""

        async def dealer(request: web.Request) -> web.WebSocketResponse:
            ws = web.WebSocketResponse()
            await ws.prepare(request)
            await asyncio.sleep(1)
            await ws.close()
            return ws

        app = web.Application()
        app.router.add_get("/", dealer)
        async with serve(app) as server:
            url = str(server.make_url("/")).replace("http://", "ws://")
            with pytest.raises(asyncio.TimeoutError):
                await get_connection_id(url, "access-token", timeout=0.1)
