"""Tests for persisted-query hash discovery."""

import asyncio
from typing import Callable

import pytest
from aiohttp import web

from spotctl.connect.hashes import (
    HashResolver,
    bundle_base_url,
    combine_chunk_names,
    find_operation_hashes,
    parse_map_literal,
    parse_webpack_maps,
    pick_bundle,
)
from spotctl.endpoints import Endpoints
from spotctl.errors import HashResolutionError

SEARCH_HASH = "a" * 64
TRACK_HASH = "b" * 64

BUNDLE_PATH = "/cdn/build/web-player/web-player.1a2b3c4d.js"

BUNDLE_JS = (
    'var o={101:"xpui-routes-search",102:"xpui-routes-track",103:"xpui-routes-broken"};'
    'var s={101:"0f1e2d3c",102:"4b5a6978",103:"deadbeef"};'
    'var q={1:"x"};'
)


def chunk_body(operation: str, sha256: str) -> str:
    return (
        f'const e=new n.l("{operation}","query",'
        f'{{persistedQuery:{{version:1,"sha256Hash":"{sha256}"}}}},null);'
    )


class FakeCdn:
    """Local web player page, bundle and chunks."""

    def __init__(self, stall: str = "", stall_seconds: float = 1.0) -> None:
        self.bundle_requests = 0
        self.chunk_requests: list[str] = []
        self.stall = stall
        self.stall_seconds = stall_seconds

    async def page(self, request: web.Request) -> web.Response:
        html = (
            "<html><head>"
            '<script src="/cdn/build/vendor.js"></script>'
            f'<script src="{BUNDLE_PATH}"></script>'
            "</head></html>"
        )
        return web.Response(text=html, content_type="text/html")

    async def bundle(self, request: web.Request) -> web.Response:
        self.bundle_requests += 1
        await asyncio.sleep(0.02)
        return web.Response(text=BUNDLE_JS, content_type="application/javascript")

    async def chunk(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        self.chunk_requests.append(name)
        if self.stall and name.startswith(self.stall):
            await asyncio.sleep(self.stall_seconds)
        if name.startswith("xpui-routes-search"):
            return web.Response(text=chunk_body("searchDesktop", SEARCH_HASH))
        if name.startswith("xpui-routes-track"):
            return web.Response(text=chunk_body("getTrack", TRACK_HASH))
        return web.Response(status=404, text="not found")

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.page)
        app.router.add_get(BUNDLE_PATH, self.bundle)
        app.router.add_get("/cdn/build/web-player/{name}", self.chunk)
        return app


class TestBundleParsing:
    """Tests for bundle and map parsing helpers."""

    def test_pick_bundle_resolves_relative_src(self) -> None:
        """Test that the player bundle is found and made absolute."""
        html = f'<script src="/other.js"></script><script src="{BUNDLE_PATH}"></script>'
        url = pick_bundle(html, "https://open.spotify.com/")
        assert url == f"https://open.spotify.com{BUNDLE_PATH}"

    def test_pick_bundle_missing(self) -> None:
        """Test that a page without the bundle fails."""
        with pytest.raises(HashResolutionError):
            pick_bundle('<script src="/other.js"></script>', "https://open.spotify.com/")

    def test_bundle_base_url(self) -> None:
        """Test that chunks are resolved next to the bundle."""
        assert bundle_base_url("https://cdn/x/web-player/a.js") == "https://cdn/x/web-player/"

    def test_parse_map_literal(self) -> None:
        """Test parsing an unquoted-key object literal."""
        assert parse_map_literal('{12:"abc",34:"def"}') == {12: "abc", 34: "def"}

    def test_parse_webpack_maps(self) -> None:
        """Test that the name and hash maps are told apart by score."""
        names, hashes = parse_webpack_maps(BUNDLE_JS)
        assert names[101] == "xpui-routes-search"
        assert hashes[101] == "0f1e2d3c"

    def test_parse_webpack_maps_without_literals(self) -> None:
        """Test that a bundle without map literals fails."""
        with pytest.raises(HashResolutionError, match="no maps found"):
            parse_webpack_maps("var a = 1;")

    def test_parse_webpack_maps_without_qualifying_maps(self) -> None:
        """Test that literals below the score threshold are rejected."""
        with pytest.raises(HashResolutionError, match="no suitable maps"):
            parse_webpack_maps('var q={1:"x",2:"y"};')

    def test_combine_chunk_names(self) -> None:
        """Test that only keys present in both maps produce file names."""
        names = {1: "a-b", 2: "c-d", 3: "e-f"}
        hashes = {1: "abc123", 3: "def456"}
        assert combine_chunk_names(names, hashes) == ["a-b.abc123.js", "e-f.def456.js"]

    def test_find_operation_hashes(self) -> None:
        """Test that the hash following the operation name is captured."""
        body = chunk_body("searchDesktop", SEARCH_HASH) + chunk_body("getTrack", TRACK_HASH)
        found = find_operation_hashes(body, ["searchDesktop", "getTrack", "missing"])
        assert found == {"searchDesktop": SEARCH_HASH, "getTrack": TRACK_HASH}

    def test_find_operation_hashes_window(self) -> None:
        """Test that hashes too far from the name are ignored."""
        body = '"getTrack"' + " " * 500 + f'"sha256Hash":"{TRACK_HASH}"'
        assert find_operation_hashes(body, ["getTrack"]) == {}


class TestHashResolver:
    """Tests for the memoised resolver."""

    @pytest.mark.asyncio
    async def test_seeded_hash_needs_no_network(self) -> None:
        """Test that seeded hashes are returned directly."""
        resolver = HashResolver(Endpoints(web_player="http://127.0.0.1:9/"))
        resolver.seed({"searchDesktop": SEARCH_HASH})
        assert await resolver.resolve("searchDesktop") == SEARCH_HASH

    @pytest.mark.asyncio
    async def test_empty_operation(self) -> None:
        """Test that an empty operation name is rejected."""
        with pytest.raises(ValueError):
            await HashResolver().resolve("")

    @pytest.mark.asyncio
    async def test_resolves_from_synthetic_bundle(self, serve: Callable) -> None:
        """Test discovery through page, bundle and chunks."""
        cdn = FakeCdn()
        async with serve(cdn.app()) as server:
            resolver = HashResolver(Endpoints(web_player=str(server.make_url("/"))))
            assert await resolver.resolve("getTrack") == TRACK_HASH
            assert resolver.cached("getTrack") == TRACK_HASH

    @pytest.mark.asyncio
    async def test_slow_chunk_is_skipped(self, serve: Callable) -> None:
        """Test that a chunk timing out does not stop the scan."""
        cdn = FakeCdn(stall="xpui-routes-search")
        async with serve(cdn.app()) as server:
            resolver = HashResolver(Endpoints(web_player=str(server.make_url("/"))), timeout=0.3)
            assert await resolver.resolve("getTrack") == TRACK_HASH

        assert cdn.chunk_requests[0].startswith("xpui-routes-search")
        assert resolver.cached("searchDesktop") is None

    @pytest.mark.asyncio
    async def test_load_stops_when_all_found(self, serve: Callable) -> None:
        """Test that scanning stops once every operation is resolved."""
        cdn = FakeCdn()
        async with serve(cdn.app()) as server:
            resolver = HashResolver(Endpoints(web_player=str(server.make_url("/"))))
            await resolver.load(["searchDesktop"])

        assert resolver.cached("searchDesktop") == SEARCH_HASH
        assert len(cdn.chunk_requests) == 1

    @pytest.mark.asyncio
    async def test_missing_operations_are_listed(self, serve: Callable) -> None:
        """Test that unresolved operations are named in the error."""
        cdn = FakeCdn()
        async with serve(cdn.app()) as server:
            resolver = HashResolver(Endpoints(web_player=str(server.make_url("/"))))
            with pytest.raises(HashResolutionError) as exc_info:
                await resolver.load(["searchDesktop", "fetchPlaylist", "getAlbum"])

        message = str(exc_info.value)
        assert "fetchPlaylist" in message
        assert "getAlbum" in message
        assert "searchDesktop" not in message
        # Found hashes are kept even though the load failed
        assert resolver.cached("searchDesktop") == SEARCH_HASH

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_discovery(self, serve: Callable) -> None:
        """Test that concurrent callers do not repeat discovery."""
        cdn = FakeCdn()
        async with serve(cdn.app()) as server:
            resolver = HashResolver(Endpoints(web_player=str(server.make_url("/"))))
            results = await asyncio.gather(*(resolver.resolve("getTrack") for _ in range(5)))

        assert set(results) == {TRACK_HASH}
        assert cdn.bundle_requests == 1
