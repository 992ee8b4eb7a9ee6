"""Tests for the pathfinder query client."""

import json
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest
from aiohttp import web

from spotctl.auth.session import ConnectAuth
from spotctl.backends.auto import should_fallback
from spotctl.connect.hashes import HashResolver
from spotctl.connect.pathfinder import PathfinderClient, pathfinder_error
from spotctl.endpoints import Endpoints
from spotctl.errors import PathfinderError

TRACK_HASH = "d" * 64

AUTH = ConnectAuth(
    access_token="access-123",
    client_token="client-456",
    client_version="1.2.3",
    connect_version="harmony:4.43.2-a61ecaf5",
    device_id="device-1234",
)


class FakePathfinder:
    """Pathfinder endpoint answering with a fixed payload."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload
        self.requests: list[dict[str, str]] = []

    async def query(self, request: web.Request) -> web.Response:
        self.requests.append(dict(request.query))
        return web.json_response(self.payload)

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/pathfinder", self.query)
        return app


def make_client(url: str) -> PathfinderClient:
    session = AsyncMock()
    session.authorize.return_value = AUTH
    hashes = HashResolver()
    hashes.seed({"getTrack": TRACK_HASH})
    return PathfinderClient(session, hashes, Endpoints(pathfinder=url), language="de")


class TestPathfinderError:
    """Tests for GraphQL error extraction."""

    def test_message_from_first_error(self) -> None:
        error = pathfinder_error({"errors": [{"message": "boom"}, {"message": "later"}]})
        assert isinstance(error, PathfinderError)
        assert str(error) == "boom"
        assert error.status == 200

    def test_default_message(self) -> None:
        assert str(pathfinder_error({"errors": [{}]})) == "pathfinder error"
        assert str(pathfinder_error({"errors": ["not an object"]})) == "pathfinder error"

    def test_no_errors(self) -> None:
        assert pathfinder_error({"errors": [], "data": {}}) is None
        assert pathfinder_error({"data": {}}) is None
        assert pathfinder_error(["not", "a", "dict"]) is None


class TestPathfinderClient:
    """Tests for persisted queries against a local endpoint."""

    @pytest.mark.asyncio
    async def test_query_params(self, serve: Callable) -> None:
        """Test that the operation, variables and hash go in the query string."""
        fake = FakePathfinder({"data": {"trackUnion": {"name": "x"}}})
        async with serve(fake.app()) as server:
            client = make_client(str(server.make_url("/pathfinder")))
            payload = await client.query("getTrack", {"uri": "spotify:track:t1"})

        assert payload == {"data": {"trackUnion": {"name": "x"}}}
        params = fake.requests[0]
        assert params["operationName"] == "getTrack"
        assert json.loads(params["variables"]) == {"uri": "spotify:track:t1"}
        extensions = json.loads(params["extensions"])
        assert extensions["persistedQuery"] == {"version": 1, "sha256Hash": TRACK_HASH}

    @pytest.mark.asyncio
    async def test_graphql_error_message(self, serve: Callable) -> None:
        """Test that errors[0].message is raised without triggering fallback."""
        fake = FakePathfinder({"errors": [{"message": "boom"}]})
        async with serve(fake.app()) as server:
            client = make_client(str(server.make_url("/pathfinder")))
            with pytest.raises(PathfinderError) as exc_info:
                await client.query("getTrack")

        assert str(exc_info.value) == "boom"
        assert exc_info.value.is_rate_limited is False
        assert should_fallback(exc_info.value) is False

    @pytest.mark.asyncio
    async def test_graphql_error_without_message(self, serve: Callable) -> None:
        """Test the default message for an error without text."""
        fake = FakePathfinder({"errors": [{}]})
        async with serve(fake.app()) as server:
            client = make_client(str(server.make_url("/pathfinder")))
            with pytest.raises(PathfinderError, match="pathfinder error"):
                await client.query("getTrack")

    @pytest.mark.asyncio
    async def test_empty_errors_pass_through(self, serve: Callable) -> None:
        """Test that an empty errors list is not a failure."""
        payload = {"errors": [], "data": {"trackUnion": {"uri": "spotify:track:t1"}}}
        fake = FakePathfinder(payload)
        async with serve(fake.app()) as server:
            client = make_client(str(server.make_url("/pathfinder")))
            assert await client.query("getTrack") == payload
