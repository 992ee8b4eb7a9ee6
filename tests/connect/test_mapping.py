"""Tests for GraphQL payload normalisation."""

from spotctl.connect.mapping import (
    dedupe_strings,
    extract_item,
    extract_item_from_payload,
    extract_search_items,
    id_from_uri,
    type_from_uri,
)


def search_payload() -> dict:
    return {
        "data": {
            "searchV2": {
                "tracksV2": {
                    "totalCount": 120,
                    "items": [
                        {
                            "item": {
                                "data": {
                                    "uri": "spotify:track:4uLU6hMCjMI75M1A2tKUQC",
                                    "name": "Never Gonna Give You Up",
                                    "artists": {"items": [{"profile": {"name": "Rick Astley"}}]},
                                    "albumOfTrack": {
                                        "uri": "spotify:album:6XhjNHCyCDyyGJRM5mg40G",
                                        "name": "Whenever You Need Somebody",
                                    },
                                }
                            }
                        },
                        {"item": {"data": {"uri": "spotify:track:0000000000000000000002", "name": "B"}}},
                    ],
                },
                "artists": {
                    "items": [{"data": {"uri": "spotify:artist:0gxyHStUsqpMadRV0Di1Qt", "profile": {"name": "Rick Astley"}}}]
                },
            }
        }
    }


class TestUriHelpers:
    """Tests for URI splitting."""

    def test_id_and_type(self) -> None:
        """Test that the id is the third segment and the type the second."""
        assert id_from_uri("spotify:track:abc") == "abc"
        assert type_from_uri("spotify:track:abc") == "track"

    def test_malformed(self) -> None:
        """Test that non-URIs pass through."""
        assert id_from_uri("abc") == "abc"
        assert type_from_uri("abc") == ""

    def test_dedupe_strings(self) -> None:
        """Test trimming, empties and order preservation."""
        assert dedupe_strings([" a", "b", "a", "", "c "]) == ["a", "b", "c"]


class TestExtractItem:
    """Tests for single-entity extraction."""

    def test_track(self) -> None:
        """Test that the id comes from the URI and the type is track."""
        item = extract_item(
            {"uri": "spotify:track:abc", "name": "Song", "duration_ms": 1000}, "track"
        )
        assert item is not None
        assert item.id == "abc"
        assert item.type == "track"
        assert item.name == "Song"
        assert item.duration_ms == 1000
        assert item.url == "https://open.spotify.com/track/abc"

    def test_builds_uri_from_id(self) -> None:
        """Test that a bare id is typed with the requested kind."""
        item = extract_item({"id": "xyz", "name": "Album"}, "album")
        assert item is not None
        assert item.uri == "spotify:album:xyz"

    def test_rejects_other_kind(self) -> None:
        """Test that entities of another kind are skipped."""
        assert extract_item({"uri": "spotify:album:abc"}, "track") is None

    def test_non_dict(self) -> None:
        """Test that non-objects yield nothing."""
        assert extract_item(["spotify:track:abc"], "track") is None

    def test_nested_fields(self) -> None:
        """Test artist, album and owner extraction from nested objects."""
        value = {
            "uri": "spotify:track:abc",
            "name": "Song",
            "artists": [{"name": "One"}, {"profile": {"name": "Two"}}, {"name": "One"}],
            "album": {"name": "Record"},
        }
        item = extract_item(value, "track")
        assert item is not None
        assert item.artists == ["One", "Two"]
        assert item.album == "Record"

    def test_playlist_owner(self) -> None:
        """Test that the owner name is found."""
        value = {"uri": "spotify:playlist:p1", "name": "Mix", "ownerV2": {"data": {"name": "x"}}, "owner": {"name": "Alice"}}
        item = extract_item(value, "playlist")
        assert item is not None
        assert item.owner == "Alice"


class TestExtractSearchItems:
    """Tests for search payload extraction."""

    def test_tracks(self) -> None:
        """Test items and total from the known container."""
        items, total = extract_search_items(search_payload(), "track")
        assert total == 120
        assert [item.id for item in items] == ["4uLU6hMCjMI75M1A2tKUQC", "0000000000000000000002"]
        first = items[0]
        assert first.type == "track"
        assert first.name == "Never Gonna Give You Up"
        assert first.artists == ["Rick Astley"]
        assert first.album == "Whenever You Need Somebody"

    def test_artists(self) -> None:
        """Test a container without totalCount counts its items."""
        items, total = extract_search_items(search_payload(), "artist")
        assert total == 1
        assert items[0].name == "Rick Astley"

    def test_unknown_layout_walks_tree(self) -> None:
        """Test that unknown layouts are searched recursively."""
        payload = {"data": {"somethingNew": [{"uri": "spotify:episode:e1", "name": "Ep"}]}}
        items, total = extract_search_items(payload, "episode")
        assert total == 1
        assert items[0].id == "e1"

    def test_extract_item_from_payload(self) -> None:
        """Test the first-match lookup used for info queries."""
        payload = {"data": {"trackUnion": {"uri": "spotify:track:t1", "name": "T"}}}
        item = extract_item_from_payload(payload, "track")
        assert item is not None
        assert item.id == "t1"
        assert extract_item_from_payload(payload, "album") is None
