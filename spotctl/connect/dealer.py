"""
Dealer websocket handshake.

The dealer pushes a greeting whose headers carry the connection id a Connect
device must register with. The socket is read once and closed.
"""

import asyncio
import json
import logging
from typing import Any

import websockets

from spotctl.endpoints import USER_AGENT
from spotctl.errors import ConnectionIdError

logger = logging.getLogger(__name__)

DEALER_TIMEOUT = 10.0  # seconds
CONNECTION_ID_HEADER = "Spotify-Connection-Id"


def dealer_url_with_token(dealer_url: str, access_token: str) -> str:
    """Append the access token to the dealer URL's query string."""
    if "?" not in dealer_url:
        sep = "?"
    elif dealer_url.endswith(("?", "&")):
        sep = ""
    else:
        sep = "&"
    return f"{dealer_url}{sep}access_token={access_token}"


def parse_connection_id(message: Any) -> str:
    """
    Extract the connection id from the dealer greeting.

    Raises:
        ConnectionIdError: If the headers or id are missing
    """
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    try:
        payload = json.loads(message)
    except ValueError as e:
        raise ConnectionIdError(f"invalid dealer message: {e}")
    headers = payload.get("headers") if isinstance(payload, dict) else None
    if not isinstance(headers, dict):
        raise ConnectionIdError("missing headers")
    for key, value in headers.items():
        if key.lower() == CONNECTION_ID_HEADER.lower() and isinstance(value, str) and value:
            return value
    raise ConnectionIdError("missing connection id")


async def get_connection_id(
    dealer_url: str, access_token: str, timeout: float = DEALER_TIMEOUT
) -> str:
    """
    Open the dealer socket, read the greeting and return the connection id.

    Args:
        dealer_url: Dealer websocket URL
        access_token: Bearer token used for the handshake
        timeout: Deadline for connect plus first message

    Raises:
        ConnectionIdError: If the greeting has no connection id
        asyncio.TimeoutError: If the dealer does not answer in time
    """
    url = dealer_url_with_token(dealer_url, access_token)

    async def read_greeting() -> Any:
        async with websockets.connect(url, user_agent_header=USER_AGENT) as ws:
            return await ws.recv()

    message = await asyncio.wait_for(read_greeting(), timeout=timeout)
    connection_id = parse_connection_id(message)
    logger.debug(f"Dealer connection id {connection_id[:8]}...")
    return connection_id
