"""Tests for Spotify reference parsing."""

import pytest

from spotctl.errors import UnsupportedTypeError
from spotctl.resources import Resource, parse_resource, parse_typed_id


class TestParseResource:
    """Tests for URI, link and id parsing."""

    def test_uri(self) -> None:
        assert parse_resource("spotify:track:abc") == Resource(
            id="abc", type="track", uri="spotify:track:abc"
        )

    def test_url(self) -> None:
        resource = parse_resource("https://open.spotify.com/album/xyz?si=123")
        assert resource.type == "album"
        assert resource.id == "xyz"
        assert resource.uri == "spotify:album:xyz"

    def test_url_without_scheme(self) -> None:
        assert parse_resource("open.spotify.com/playlist/p1").uri == "spotify:playlist:p1"

    def test_localised_url(self) -> None:
        assert parse_resource("https://open.spotify.com/intl-de/track/t1").uri == "spotify:track:t1"

    def test_bare_id(self) -> None:
        assert parse_resource("  abc123 ") == Resource(id="abc123")

    def test_empty(self) -> None:
        with pytest.raises(ValueError):
            parse_resource("   ")

    def test_short_uri(self) -> None:
        with pytest.raises(ValueError):
            parse_resource("spotify:track")

    def test_short_url(self) -> None:
        with pytest.raises(ValueError):
            parse_resource("https://open.spotify.com/track")

    def test_unsupported_type(self) -> None:
        with pytest.raises(UnsupportedTypeError):
            parse_resource("spotify:user:someone")

    def test_unsupported_type_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_resource("https://open.spotify.com/user/someone")


class TestParseTypedId:
    """Tests for single-type references."""

    def test_bare_id_takes_expected_type(self) -> None:
        assert parse_typed_id("abc", "artist").uri == "spotify:artist:abc"

    def test_matching_type(self) -> None:
        assert parse_typed_id("spotify:artist:abc", "artist").id == "abc"

    def test_mismatched_type(self) -> None:
        with pytest.raises(ValueError, match="expected artist"):
            parse_typed_id("spotify:track:abc", "artist")

    def test_no_expected_type(self) -> None:
        assert parse_typed_id("abc", "") == Resource(id="abc")
