"""
spotctl CLI entry point.

Provides the command-line interface for searching and controlling Spotify.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, TextIO

import aiohttp

from spotctl import __version__
from spotctl.backends.base import (
    LIBRARY_ALBUMS_PATH,
    LIBRARY_TRACKS_PATH,
    METHOD_ADD,
    METHOD_REMOVE,
    SpotifyAPI,
)
from spotctl.backends.factory import BackendFactory, BackendNotFoundError
from spotctl.backends.types import Device, Item, Page, PlaybackStatus, Queue, SearchResult
from spotctl.config import (
    VALID_ENGINES,
    VALID_FORMATS,
    VALID_LOG_LEVELS,
    Config,
    ConfigError,
    load_config,
)
from spotctl.cookies import CookieError, StoredCookie, find_cookie, read_cookies, write_cookies
from spotctl.errors import AuthenticationError, SpotifyAPIError, SpotifyError
from spotctl.resources import SUPPORTED_TYPES, parse_resource, parse_typed_id

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_USAGE_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_NETWORK_ERROR = 4

MAX_LIMIT = 50
DEFAULT_SEARCH_LIMIT = 20
DEFAULT_PAGE_LIMIT = 50
REPEAT_MODES = ("off", "track", "context")


@dataclass
class Output:
    """Command result in its three renderings."""

    value: Any = None
    plain: list[str] = field(default_factory=list)
    human: list[str] = field(default_factory=list)


def setup_logging(level: str = "warning") -> None:
    """Configure logging to stderr so stdout stays machine-readable."""
    log_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


# =============================================================================
# Rendering
# =============================================================================


def format_duration(ms: int) -> str:
    """Format milliseconds as m:ss."""
    seconds = max(ms, 0) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def item_plain(item: Item) -> str:
    """Tab-separated line for scripts."""
    artists = ", ".join(item.artists)
    if item.type == "track":
        return f"track\t{item.id}\t{item.name}\t{artists}\t{item.album}\t{item.uri}"
    if item.type == "album":
        return f"album\t{item.id}\t{item.name}\t{artists}\t{item.release_date}\t{item.total_tracks}"
    if item.type == "artist":
        return f"artist\t{item.id}\t{item.name}\t{item.followers}"
    if item.type == "playlist":
        return f"playlist\t{item.id}\t{item.name}\t{item.owner}\t{item.total_tracks}"
    if item.type == "show":
        return f"show\t{item.id}\t{item.name}\t{item.publisher}\t{item.total_episodes}"
    if item.type == "episode":
        return f"episode\t{item.id}\t{item.name}\t{item.duration_ms}"
    return f"item\t{item.id}\t{item.name}\t{item.uri}"


def item_human(item: Item) -> str:
    """Readable one-line summary of an item."""
    line = item.name or item.uri
    if item.artists:
        line += f" - {', '.join(item.artists)}"
    if item.type == "track" and item.album:
        line += f" [{item.album}]"
    elif item.type == "playlist" and item.owner:
        line += f" by {item.owner}"
    elif item.type == "show" and item.publisher:
        line += f" by {item.publisher}"
    if item.duration_ms:
        line += f" ({format_duration(item.duration_ms)})"
    return f"{line}  {item.uri}" if item.uri else line


def device_plain(device: Device) -> str:
    active = "active" if device.active else ""
    return f"{device.id}\t{device.name}\t{device.type}\t{device.volume}\t{active}"


def status_output(status: PlaybackStatus) -> Output:
    if status.item is None:
        return Output(status, ["stopped"], ["Nothing playing"])
    item = status.item
    state = "playing" if status.is_playing else "paused"
    plain = [
        f"{state}\t{item.uri}\t{item.name}\t{', '.join(item.artists)}"
        f"\t{status.progress_ms}\t{item.duration_ms}\t{status.device.name}"
    ]
    position = format_duration(status.progress_ms)
    if item.duration_ms:
        position += f"/{format_duration(item.duration_ms)}"
    human = [
        f"{state.capitalize()}: {item_human(item)}",
        f"Position: {position}",
    ]
    if status.device.name:
        human.append(f"Device: {status.device.name} ({status.device.volume}%)")
    human.append(f"Shuffle: {'on' if status.shuffle else 'off'}, repeat: {status.repeat or 'off'}")
    return Output(status, plain, human)


def items_output(value: Any, items: list[Item], header: str = "") -> Output:
    human = [item_human(item) for item in items]
    if header:
        human.insert(0, header)
    return Output(value, [item_plain(item) for item in items], human)


def ok_output(count: int = 0) -> Output:
    human = f"Updated {count} items" if count else "OK"
    return Output({"status": "ok", "count": count}, ["ok"], [human])


def to_jsonable(value: Any) -> Any:
    """Convert result values to JSON-ready structures."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def emit(output: Output, fmt: str, stream: Optional[TextIO] = None) -> None:
    """Write a command result in the requested format."""
    stream = stream or sys.stdout
    if fmt == "json":
        print(json.dumps(to_jsonable(output.value), indent=2), file=stream)
        return
    lines = output.plain if fmt == "plain" else output.human
    if lines:
        print("\n".join(lines), file=stream)


# =============================================================================
# Argument helpers
# =============================================================================


def clamp_limit(limit: int) -> int:
    """Clamp a page size to the server maximum."""
    if limit > MAX_LIMIT:
        logger.warning(f"limit capped at {MAX_LIMIT}")
        return MAX_LIMIT
    return max(limit, 1)


def parse_position(text: str) -> int:
    """
    Parse a seek position.

    Accepts milliseconds ("90000") or minutes and seconds ("1:30").

    Raises:
        ValueError: If the position cannot be parsed or is negative
    """
    text = text.strip()
    if ":" in text:
        minutes, _, seconds = text.partition(":")
        ms = (int(minutes) * 60 + int(seconds)) * 1000
    else:
        ms = int(text)
    if ms < 0:
        raise ValueError(f"invalid position: {text}")
    return ms


def resolve_uri(text: str, default_type: str) -> str:
    """Resolve a reference to a URI, typing bare ids with default_type."""
    resource = parse_resource(text)
    if resource.type:
        return resource.uri
    return parse_typed_id(resource.id, default_type).uri


def parse_ids(inputs: list[str], kind: str) -> list[str]:
    return [parse_typed_id(text, kind).id for text in inputs]


def parse_uris(inputs: list[str], kind: str = "track") -> list[str]:
    return [parse_typed_id(text, kind).uri for text in inputs]


def parse_toggle(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"Invalid value: {value}. Use on or off")


def parse_volume(value: str) -> int:
    try:
        percent = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid volume: {value}. Use 0-100")
    if not 0 <= percent <= 100:
        raise argparse.ArgumentTypeError(f"Invalid volume: {value}. Use 0-100")
    return percent


# =============================================================================
# Commands
# =============================================================================


async def cmd_search(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    query = " ".join(args.query)
    result: SearchResult = await api.search(args.kind, query, clamp_limit(args.limit), args.offset)
    header = f"{args.kind.upper()} results: {result.total}"
    return items_output(result, result.items, header)


async def cmd_info(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    resource = parse_resource(args.ref)
    kind = resource.type or args.type
    if not kind:
        raise ValueError("type required for bare ids (use --type)")
    if args.type and resource.type and resource.type != args.type:
        raise ValueError(f"unexpected spotify type: {resource.type} (expected {args.type})")
    item = await api.get_item(kind, resource.id)
    return Output(item, [item_plain(item)], [item_human(item)])


async def cmd_status(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    return status_output(await api.playback())


async def cmd_play(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    uri = resolve_uri(args.ref, args.type) if args.ref else ""
    await api.play(uri)
    return ok_output()


async def cmd_pause(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.pause()
    return ok_output()


async def cmd_next(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.next()
    return ok_output()


async def cmd_prev(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.previous()
    return ok_output()


async def cmd_seek(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.seek(parse_position(args.position))
    return ok_output()


async def cmd_volume(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.volume(args.percent)
    return ok_output()


async def cmd_shuffle(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.shuffle(args.state)
    return ok_output()


async def cmd_repeat(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.repeat(args.mode)
    return ok_output()


async def cmd_devices(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    devices = await api.devices()
    return Output(devices, [device_plain(d) for d in devices], [str(d) for d in devices])


async def cmd_transfer(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    await api.transfer(args.device_id)
    return ok_output()


async def cmd_queue_show(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    queue: Queue = await api.queue()
    output = items_output(queue, queue.queue)
    if queue.currently_playing is not None:
        output.human.insert(0, f"Now: {item_human(queue.currently_playing)}")
        output.plain.insert(0, item_plain(queue.currently_playing))
    return output


async def cmd_queue_add(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    uris = [resolve_uri(ref, args.type) for ref in args.refs]
    for uri in uris:
        await api.queue_add(uri)
    return ok_output(len(uris))


async def cmd_library(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    kind = "track" if args.library_kind == "tracks" else "album"
    path = LIBRARY_TRACKS_PATH if kind == "track" else LIBRARY_ALBUMS_PATH
    action = args.action or "list"
    if action == "list":
        limit = clamp_limit(args.limit)
        if kind == "track":
            page: Page = await api.library_tracks(limit, args.offset)
        else:
            page = await api.library_albums(limit, args.offset)
        return items_output(page, page.items, f"Saved {args.library_kind}: {page.total}")
    if not args.ids:
        raise ValueError(f"{action} requires at least one id")
    ids = parse_ids(args.ids, kind)
    await api.library_modify(path, ids, METHOD_ADD if action == "add" else METHOD_REMOVE)
    return ok_output(len(ids))


async def cmd_follow(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    ids = parse_ids(args.ids, "artist")
    await api.follow_artists(ids, METHOD_ADD)
    return ok_output(len(ids))


async def cmd_unfollow(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    ids = parse_ids(args.ids, "artist")
    await api.follow_artists(ids, METHOD_REMOVE)
    return ok_output(len(ids))


async def cmd_followed(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    page = await api.followed_artists(clamp_limit(args.limit), args.after)
    output = items_output(page, page.items, f"Followed artists: {page.total}")
    if page.next_after:
        output.human.append(f"Next: --after {page.next_after}")
    return output


async def cmd_playlist_list(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    page = await api.playlists(clamp_limit(args.limit), args.offset)
    return items_output(page, page.items, f"Playlists: {page.total}")


async def cmd_playlist_create(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    item = await api.create_playlist(args.name, args.public, args.collaborative)
    return Output(item, [item_plain(item)], [f"Created {item_human(item)}"])


async def cmd_playlist_tracks(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    playlist_id = parse_typed_id(args.playlist, "playlist").id
    page = await api.playlist_tracks(playlist_id, clamp_limit(args.limit), args.offset)
    return items_output(page, page.items, f"Tracks: {page.total}")


async def cmd_playlist_add(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    playlist_id = parse_typed_id(args.playlist, "playlist").id
    uris = parse_uris(args.refs)
    await api.add_tracks(playlist_id, uris)
    return ok_output(len(uris))


async def cmd_playlist_remove(api: SpotifyAPI, args: argparse.Namespace) -> Output:
    playlist_id = parse_typed_id(args.playlist, "playlist").id
    uris = parse_uris(args.refs)
    await api.remove_tracks(playlist_id, uris)
    return ok_output(len(uris))


# Cookie commands run without an engine


def cmd_auth_status(config: Config, args: argparse.Namespace) -> Output:
    path = Path(config.spotify.cookie_path).expanduser()
    cookies = read_cookies(path)
    has_sp_dc = bool(find_cookie(cookies, "sp_dc"))
    value = {"cookie_count": len(cookies), "has_sp_dc": has_sp_dc, "source": str(path)}
    human = [f"Cookies: {len(cookies)} ({path})"]
    human.append("Session cookie: sp_dc" if has_sp_dc else "Session cookie: missing sp_dc")
    return Output(value, [f"{len(cookies)}\t{str(has_sp_dc).lower()}\t{path}"], human)


def cmd_auth_set(config: Config, args: argparse.Namespace) -> Output:
    """Store session cookies, keeping any others already in the file."""
    path = Path(config.spotify.cookie_path).expanduser()
    cookies = read_cookies(path) if path.exists() else []
    updates = {"sp_dc": args.sp_dc.strip(), "sp_t": (args.sp_t or "").strip()}
    updates = {name: value for name, value in updates.items() if value}
    if "sp_dc" not in updates:
        raise ValueError("sp_dc value required")
    cookies = [c for c in cookies if c.name not in updates]
    cookies.extend(StoredCookie(name=name, value=value) for name, value in updates.items())
    write_cookies(path, cookies)
    return ok_output(len(updates))


# =============================================================================
# Argument parsing
# =============================================================================


def _add_paging(parser: argparse.ArgumentParser, limit: int = DEFAULT_PAGE_LIMIT) -> None:
    parser.add_argument("--limit", type=int, default=limit, metavar="INT", help="Limit results")
    parser.add_argument("--offset", type=int, default=0, metavar="INT", help="Offset results")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="spotctl",
        description="Search and control Spotify from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  spotctl search track "daft punk"
  spotctl info spotify:album:4m2880jivSbbyEGAKfITCa
  spotctl play https://open.spotify.com/track/0DiWol3AO6WpXZgp0goxAV
  spotctl --json status
  spotctl auth set --sp-dc "$SP_DC"

Environment Variables:
  SPOTCTL_COOKIE_PATH, SPOTCTL_MARKET, SPOTCTL_LANGUAGE, SPOTCTL_DEVICE
  SPOTCTL_ENGINE, SPOTCTL_TIMEOUT, SPOTCTL_FORMAT, SPOTCTL_LOG_LEVEL
""",
    )

    # General
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Path to config file (default: ~/.config/spotctl/config.yaml)",
    )

    # Account
    account_group = parser.add_argument_group("Account")
    account_group.add_argument(
        "--cookies",
        metavar="PATH",
        help="Path to the exported cookie file",
    )
    account_group.add_argument(
        "--market",
        metavar="CC",
        help="Market (2-letter country code)",
    )
    account_group.add_argument(
        "--language",
        metavar="TEXT",
        help="Response language (e.g. en, de-DE)",
    )
    account_group.add_argument(
        "--device",
        metavar="ID",
        help="Target device id",
    )

    # Engine
    engine_group = parser.add_argument_group("Engine")
    engine_group.add_argument(
        "--engine",
        choices=sorted(VALID_ENGINES),
        help="Engine: connect, web, auto, applescript",
    )
    engine_group.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Request timeout in seconds",
    )

    # Output
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "--format",
        choices=sorted(VALID_FORMATS),
        help="Output format: human, plain, json",
    )
    output_group.add_argument(
        "--json",
        action="store_const",
        const="json",
        dest="format",
        help="Shorthand for --format json",
    )
    output_group.add_argument(
        "--plain",
        action="store_const",
        const="plain",
        dest="format",
        help="Shorthand for --format plain",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=sorted(VALID_LOG_LEVELS),
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    # Lookup
    search = commands.add_parser("search", help="Search the catalogue")
    search.add_argument("kind", choices=SUPPORTED_TYPES, help="Item type")
    search.add_argument("query", nargs="+", help="Search query")
    _add_paging(search, DEFAULT_SEARCH_LIMIT)
    search.set_defaults(handler=cmd_search)

    info = commands.add_parser("info", help="Show an item")
    info.add_argument("ref", help="URI, link or id")
    info.add_argument("--type", choices=SUPPORTED_TYPES, default="", help="Type for bare ids")
    info.set_defaults(handler=cmd_info)

    # Playback
    commands.add_parser("status", help="Show playback status").set_defaults(handler=cmd_status)

    play = commands.add_parser("play", help="Resume or start playback")
    play.add_argument("ref", nargs="?", default="", help="URI, link or id to play")
    play.add_argument("--type", choices=SUPPORTED_TYPES, default="track", help="Type for bare ids")
    play.set_defaults(handler=cmd_play)

    commands.add_parser("pause", help="Pause playback").set_defaults(handler=cmd_pause)
    commands.add_parser("next", help="Skip to next").set_defaults(handler=cmd_next)
    commands.add_parser("prev", help="Skip to previous").set_defaults(handler=cmd_prev)

    seek = commands.add_parser("seek", help="Seek within the current item")
    seek.add_argument("position", help="Milliseconds or m:ss")
    seek.set_defaults(handler=cmd_seek)

    volume = commands.add_parser("volume", help="Set volume")
    volume.add_argument("percent", type=parse_volume, help="0-100")
    volume.set_defaults(handler=cmd_volume)

    shuffle = commands.add_parser("shuffle", help="Toggle shuffle")
    shuffle.add_argument("state", type=parse_toggle, help="on or off")
    shuffle.set_defaults(handler=cmd_shuffle)

    repeat = commands.add_parser("repeat", help="Set repeat mode")
    repeat.add_argument("mode", choices=REPEAT_MODES)
    repeat.set_defaults(handler=cmd_repeat)

    # Devices
    commands.add_parser("devices", help="List devices").set_defaults(handler=cmd_devices)

    transfer = commands.add_parser("transfer", help="Transfer playback to a device")
    transfer.add_argument("device_id", help="Target device id")
    transfer.set_defaults(handler=cmd_transfer)

    # Queue
    queue = commands.add_parser("queue", help="Show or extend the queue")
    queue_commands = queue.add_subparsers(dest="queue_command", metavar="ACTION", required=True)
    queue_commands.add_parser("show", help="Show the queue").set_defaults(handler=cmd_queue_show)
    queue_add = queue_commands.add_parser("add", help="Add items to the queue")
    queue_add.add_argument("refs", nargs="+", help="URIs, links or ids")
    queue_add.add_argument("--type", choices=SUPPORTED_TYPES, default="track", help="Type for bare ids")
    queue_add.set_defaults(handler=cmd_queue_add)

    # Library
    library = commands.add_parser("library", help="Saved tracks and albums")
    library.add_argument("library_kind", choices=("tracks", "albums"))
    library.add_argument("action", nargs="?", choices=("list", "add", "remove"), default="list")
    library.add_argument("ids", nargs="*", help="URIs, links or ids")
    _add_paging(library)
    library.set_defaults(handler=cmd_library)

    # Following
    follow = commands.add_parser("follow", help="Follow artists")
    follow.add_argument("ids", nargs="+", help="Artist URIs, links or ids")
    follow.set_defaults(handler=cmd_follow)

    unfollow = commands.add_parser("unfollow", help="Unfollow artists")
    unfollow.add_argument("ids", nargs="+", help="Artist URIs, links or ids")
    unfollow.set_defaults(handler=cmd_unfollow)

    followed = commands.add_parser("followed", help="List followed artists")
    followed.add_argument("--limit", type=int, default=DEFAULT_PAGE_LIMIT, metavar="INT")
    followed.add_argument("--after", default="", metavar="ID", help="Cursor from the previous page")
    followed.set_defaults(handler=cmd_followed)

    # Playlists
    playlist = commands.add_parser("playlist", help="Manage playlists")
    playlist_commands = playlist.add_subparsers(
        dest="playlist_command", metavar="ACTION", required=True
    )
    playlist_list = playlist_commands.add_parser("list", help="List your playlists")
    _add_paging(playlist_list)
    playlist_list.set_defaults(handler=cmd_playlist_list)

    playlist_create = playlist_commands.add_parser("create", help="Create a playlist")
    playlist_create.add_argument("name")
    playlist_create.add_argument("--public", action="store_true")
    playlist_create.add_argument("--collaborative", action="store_true")
    playlist_create.set_defaults(handler=cmd_playlist_create)

    playlist_tracks = playlist_commands.add_parser("tracks", help="List playlist tracks")
    playlist_tracks.add_argument("playlist", help="Playlist URI, link or id")
    _add_paging(playlist_tracks)
    playlist_tracks.set_defaults(handler=cmd_playlist_tracks)

    for action, handler in (("add", cmd_playlist_add), ("remove", cmd_playlist_remove)):
        sub = playlist_commands.add_parser(action, help=f"{action.capitalize()} playlist tracks")
        sub.add_argument("playlist", help="Playlist URI, link or id")
        sub.add_argument("refs", nargs="+", help="Track URIs, links or ids")
        sub.set_defaults(handler=handler)

    # Cookies
    auth = commands.add_parser("auth", help="Manage the stored session cookies")
    auth_commands = auth.add_subparsers(dest="auth_command", metavar="ACTION", required=True)
    auth_commands.add_parser("status", help="Show cookie status").set_defaults(
        handler=cmd_auth_status, local=True
    )
    auth_set = auth_commands.add_parser("set", help="Store session cookie values")
    auth_set.add_argument("--sp-dc", required=True, metavar="VALUE", help="sp_dc cookie value")
    auth_set.add_argument("--sp-t", metavar="VALUE", help="sp_t cookie value (device id)")
    auth_set.set_defaults(handler=cmd_auth_set, local=True)

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    # Map CLI args to config paths
    mappings = {
        "cookies": ("spotify", "cookie_path"),
        "market": ("spotify", "market"),
        "language": ("spotify", "language"),
        "device": ("spotify", "device"),
        "engine": ("engine", "type"),
        "timeout": ("engine", "timeout"),
        "format": ("output", "format"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        _set_nested(result, path, value)

    return result


def exit_code(err: BaseException) -> int:
    """Map an error to a process exit code."""
    if isinstance(err, (AuthenticationError, CookieError)):
        return EXIT_AUTH_ERROR
    if isinstance(err, SpotifyAPIError) and err.is_auth_error:
        return EXIT_AUTH_ERROR
    if isinstance(err, (ConfigError, BackendNotFoundError, ValueError)):
        return EXIT_USAGE_ERROR
    if isinstance(err, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError, OSError)):
        return EXIT_NETWORK_ERROR
    return EXIT_ERROR


async def run_command(config: Config, args: argparse.Namespace) -> Output:
    """Build the configured engine and run one command against it."""
    api = BackendFactory.create_from_config(config)
    try:
        return await args.handler(api, args)
    finally:
        await api.close()


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=error, 2=usage error, 3=auth error, 4=network error
    """
    args = parse_args(argv)

    # Setup basic logging first (will be reconfigured after config load)
    setup_logging(args.log_level or "warning")

    try:
        config = load_config(args.config, args_to_dict(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_USAGE_ERROR

    setup_logging(config.logging.level)

    try:
        if getattr(args, "local", False):
            output = args.handler(config, args)
        else:
            output = asyncio.run(run_command(config, args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_ERROR
    except (AuthenticationError, CookieError) as e:
        logger.error(f"Authentication failed: {e}")
        return exit_code(e)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Network error: {e}")
        return exit_code(e)
    except Exception as e:
        code = exit_code(e)
        if code == EXIT_ERROR and not isinstance(e, SpotifyError):
            logger.exception(f"Unexpected error: {e}")
        else:
            logger.error(f"{e}")
        return code

    emit(output, config.output.format)
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
