"""Tests for cookie sources."""

import json
import os
import stat
from pathlib import Path

import pytest

from spotctl.cookies import (
    COOKIE_FILE_MODE,
    CookieError,
    FileCookieSource,
    StaticCookieSource,
    StoredCookie,
    cookie_dict,
    find_cookie,
    read_cookies,
    write_cookies,
)


class TestCookieFile:
    """Tests for the JSON cookie file."""

    def test_round_trip_sets_owner_only_mode(self, tmp_path: Path) -> None:
        """Test writing and reading back, with 0600 permissions."""
        path = tmp_path / "nested" / "cookies.json"
        cookies = [StoredCookie(name="sp_dc", value="v1"), StoredCookie(name="sp_t", value="v2")]

        write_cookies(path, cookies)

        assert stat.S_IMODE(os.stat(path).st_mode) == COOKIE_FILE_MODE
        assert read_cookies(path) == cookies

    def test_defaults_for_sparse_entries(self, tmp_path: Path) -> None:
        """Test that minimal entries get default attributes."""
        path = tmp_path / "cookies.json"
        path.write_text(json.dumps([{"name": "sp_dc", "value": "v"}, {"value": "nameless"}]))

        cookies = read_cookies(path)

        assert len(cookies) == 1
        assert cookies[0].domain == ".spotify.com"
        assert cookies[0].path == "/"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(CookieError, match="not found"):
            read_cookies(tmp_path / "missing.json")

    def test_not_a_list(self, tmp_path: Path) -> None:
        path = tmp_path / "cookies.json"
        path.write_text(json.dumps({"sp_dc": "v"}))
        with pytest.raises(CookieError):
            read_cookies(path)


class TestCookieSources:
    """Tests for CookieSource implementations."""

    @pytest.mark.asyncio
    async def test_file_source_rereads(self, tmp_path: Path) -> None:
        """Test that the file is read on every call."""
        path = tmp_path / "cookies.json"
        write_cookies(path, [StoredCookie(name="sp_dc", value="old")])
        source = FileCookieSource(path)
        assert find_cookie(await source.cookies(), "sp_dc") == "old"

        write_cookies(path, [StoredCookie(name="sp_dc", value="new")])
        assert find_cookie(await source.cookies(), "sp_dc") == "new"

    @pytest.mark.asyncio
    async def test_static_source_returns_copy(self) -> None:
        """Test that callers cannot mutate the static list."""
        source = StaticCookieSource([StoredCookie(name="a", value="1")])
        (await source.cookies()).clear()
        assert len(await source.cookies()) == 1

    def test_helpers(self) -> None:
        cookies = [StoredCookie(name="a", value="1"), StoredCookie(name="b", value="2")]
        assert cookie_dict(cookies) == {"a": "1", "b": "2"}
        assert find_cookie(cookies, "b") == "2"
        assert find_cookie(cookies, "c") == ""
