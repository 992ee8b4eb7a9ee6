"""
Normalisation of loosely structured GraphQL payloads into Items.

Pathfinder responses nest entities at varying depths, so extraction is done
by shape: anything carrying a URI of the requested kind becomes an Item.
"""

from typing import Any, Callable, Optional

from spotctl.backends.types import Item

WEB_URL_BASE = "https://open.spotify.com"

# Known container locations of search results, per kind
SEARCH_PATHS: dict[str, list[tuple[str, ...]]] = {
    "track": [("data", "searchV2", "tracksV2")],
    "album": [("data", "searchV2", "albumsV2"), ("data", "searchV2", "albums")],
    "artist": [("data", "searchV2", "artists")],
    "playlist": [("data", "searchV2", "playlists")],
    "show": [("data", "searchV2", "podcasts"), ("data", "searchV2", "shows")],
    "episode": [("data", "searchV2", "episodes")],
}


# =============================================================================
# JSON-tree helpers
# =============================================================================


def get_map(value: Any, *path: str) -> Optional[dict[str, Any]]:
    """Follow a key path; return the dict at the end or None."""
    current = value
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current if isinstance(current, dict) else None


def get_str(m: Any, key: str) -> str:
    value = m.get(key) if isinstance(m, dict) else None
    return value if isinstance(value, str) else ""


def get_int(m: Any, key: str) -> int:
    value = m.get(key) if isinstance(m, dict) else None
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def get_bool(m: Any, key: str) -> bool:
    value = m.get(key) if isinstance(m, dict) else None
    return value if isinstance(value, bool) else False


def walk_maps(value: Any, fn: Callable[[dict[str, Any]], None]) -> None:
    """Call fn on every dict in a JSON tree, depth first."""
    if isinstance(value, dict):
        fn(value)
        for child in value.values():
            walk_maps(child, fn)
    elif isinstance(value, list):
        for child in value:
            walk_maps(child, fn)


def find_first_uri(value: Any, kind: str) -> str:
    """First nested ``uri`` string, optionally restricted to one kind."""
    if isinstance(value, dict):
        uri = value.get("uri")
        if isinstance(uri, str) and (not kind or uri.startswith(f"spotify:{kind}:")):
            return uri
        children = value.values()
    elif isinstance(value, list):
        children = value
    else:
        return ""
    for child in children:
        found = find_first_uri(child, kind)
        if found:
            return found
    return ""


def find_first_name(value: Any) -> str:
    """First nested ``name`` or ``title`` string."""
    if isinstance(value, dict):
        for key in ("name", "title"):
            if isinstance(value.get(key), str):
                return value[key]
        children = value.values()
    elif isinstance(value, list):
        children = value
    else:
        return ""
    for child in children:
        found = find_first_name(child)
        if found:
            return found
    return ""


def dedupe_strings(values: list[str]) -> list[str]:
    """Strip, drop empties and remove duplicates preserving order."""
    seen: set[str] = set()
    out = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return out


def id_from_uri(uri: str) -> str:
    parts = uri.split(":")
    return parts[-1] if len(parts) >= 3 else uri


def type_from_uri(uri: str) -> str:
    parts = uri.split(":")
    return parts[-2] if len(parts) >= 3 else ""


# =============================================================================
# Field extraction
# =============================================================================


def extract_artist_names(value: Any) -> list[str]:
    artists: list[str] = []

    def visit(m: dict[str, Any]) -> None:
        entries = m.get("artists")
        # GraphQL wraps lists as {"items": [...]}
        if isinstance(entries, dict):
            entries = entries.get("items")
        if isinstance(entries, list):
            artists.extend(name for name in map(find_first_name, entries) if name)

    walk_maps(value, visit)
    if not artists:
        name = get_str(value, "artistName")
        if name:
            artists.append(name)
    return dedupe_strings(artists)


def _first_nested_name(value: Any, keys: tuple[str, ...]) -> str:
    found: list[str] = []

    def visit(m: dict[str, Any]) -> None:
        if found:
            return
        for key in keys:
            name = get_str(m.get(key), "name")
            if name:
                found.append(name)
                return

    walk_maps(value, visit)
    return found[0] if found else ""


def extract_album_name(value: Any) -> str:
    return _first_nested_name(value, ("album", "albumOfTrack"))


def extract_owner_name(value: Any) -> str:
    return _first_nested_name(value, ("owner", "user"))


def extract_item(value: Any, kind: str) -> Optional[Item]:
    """
    Build an Item from a JSON object if it represents an entity of ``kind``.

    Args:
        value: Any JSON value
        kind: Entity kind (track, album, ...); empty matches any kind

    Returns:
        The Item, or None when the object is not such an entity
    """
    if not isinstance(value, dict):
        return None

    uri = get_str(value, "uri")
    if not uri and kind:
        entity_id = get_str(value, "id")
        if entity_id:
            uri = f"spotify:{kind}:{entity_id}"
    if not uri:
        uri = find_first_uri(value, kind)
    if not uri:
        return None
    if kind and not uri.startswith(f"spotify:{kind}:"):
        return None

    name = get_str(value, "name") or get_str(value, "title") or find_first_name(value)
    item = Item(uri=uri, id=id_from_uri(uri), name=name, type=type_from_uri(uri))
    item.url = f"{WEB_URL_BASE}/{item.type}/{item.id}"
    item.artists = extract_artist_names(value)
    item.album = extract_album_name(value)
    item.owner = extract_owner_name(value)
    item.explicit = get_bool(value, "explicit")
    item.duration_ms = get_int(value, "duration_ms") or get_int(value, "durationMs")
    item.total_tracks = get_int(value, "totalTracks") or get_int(value, "total")
    item.release_date = get_str(value, "releaseDate")
    item.description = get_str(value, "description")
    item.is_playable = get_bool(value, "isPlayable")
    item.publisher = get_str(value, "publisher")
    item.total_episodes = get_int(value, "totalEpisodes")
    return item


def collect_items(value: Any, kind: str) -> list[Item]:
    """
    Recursively collect every entity of ``kind`` in a JSON tree.

    Wrappers resolve to the URI of their first nested entity, so each URI is
    kept once: from the object that carries it directly when there is one,
    else from its outermost wrapper.
    """
    items: list[Item] = []
    index: dict[str, int] = {}
    direct: set[str] = set()

    def visit(m: dict[str, Any]) -> None:
        item = extract_item(m, kind)
        if item is None:
            return
        owns_uri = get_str(m, "uri") == item.uri
        if item.uri not in index:
            index[item.uri] = len(items)
            items.append(item)
        elif owns_uri and item.uri not in direct:
            items[index[item.uri]] = item
        else:
            return
        if owns_uri:
            direct.add(item.uri)

    walk_maps(value, visit)
    return items


def extract_items_from_container(container: dict[str, Any], kind: str) -> list[Item]:
    raw_items = container.get("items")
    if not isinstance(raw_items, list):
        return collect_items(container, kind)
    items = [item for item in (extract_item(raw, kind) for raw in raw_items) if item]
    return items or collect_items(container, kind)


def extract_search_items(payload: Any, kind: str) -> tuple[list[Item], int]:
    """
    Extract search hits of one kind.

    Returns:
        Tuple of (items, total)
    """
    for path in SEARCH_PATHS.get(kind, []):
        container = get_map(payload, *path)
        if container is not None:
            items = extract_items_from_container(container, kind)
            total = get_int(container, "totalCount") or len(items)
            return items, total
    items = collect_items(payload, kind)
    return items, len(items)


def extract_item_from_payload(payload: Any, kind: str) -> Optional[Item]:
    """First entity of ``kind`` found in a payload."""
    items = collect_items(payload, kind)
    return items[0] if items else None
