"""
Parsing of user-supplied Spotify references.

Accepts ``spotify:<type>:<id>`` URIs, ``open.spotify.com/<type>/<id>`` links
(with or without scheme) and bare ids.
"""

import posixpath
from dataclasses import dataclass
from urllib.parse import urlparse

from spotctl.errors import UnsupportedTypeError

SUPPORTED_TYPES = ("track", "album", "artist", "playlist", "show", "episode")
WEB_HOST = "open.spotify.com"


@dataclass(frozen=True)
class Resource:
    """A parsed reference. Type and URI are empty for bare ids."""

    id: str
    type: str = ""
    uri: str = ""


def _typed(kind: str, id: str) -> Resource:
    if kind not in SUPPORTED_TYPES:
        raise UnsupportedTypeError(f"unsupported spotify type: {kind}")
    return Resource(id=id, type=kind, uri=f"spotify:{kind}:{id}")


def parse_resource(text: str) -> Resource:
    """
    Parse a URI, web link or bare id.

    Raises:
        ValueError: On empty or malformed input
        UnsupportedTypeError: If the type is not a supported kind
    """
    text = text.strip()
    if not text:
        raise ValueError("empty input")

    if text.startswith("spotify:"):
        parts = text.split(":")
        if len(parts) < 3:
            raise ValueError("invalid spotify uri")
        return _typed(parts[1], parts[2])

    if text.startswith(f"{WEB_HOST}/"):
        text = f"https://{text}"
    if f"{WEB_HOST}/" in text:
        path = posixpath.normpath(urlparse(text).path).strip("/")
        segments = path.split("/")
        # Localised links carry an "intl-xx" prefix
        if segments and segments[0].startswith("intl-"):
            segments = segments[1:]
        if len(segments) < 2:
            raise ValueError("invalid spotify url")
        return _typed(segments[0], segments[1])

    return Resource(id=text)


def parse_typed_id(text: str, expected: str) -> Resource:
    """
    Parse a reference that must be of one type.

    Bare ids take the expected type; typed references must match it.
    """
    resource = parse_resource(text)
    if not expected:
        return resource
    if not resource.type:
        return _typed(expected, resource.id)
    if resource.type != expected:
        raise ValueError(f"unexpected spotify type: {resource.type} (expected {expected})")
    return resource
