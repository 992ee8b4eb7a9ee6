"""
Pathfinder (private GraphQL) query client.

Only persisted queries are supported: requests carry an operation name and
the hash discovered by HashResolver, never a query document.
"""

import json
import logging
from typing import Any, Optional

import aiohttp

from spotctl.auth.session import ConnectSession
from spotctl.endpoints import DEFAULT_TIMEOUT, Endpoints, web_player_headers
from spotctl.errors import PathfinderError, raise_for_status

from .hashes import HashResolver

logger = logging.getLogger(__name__)


def pathfinder_error(payload: Any) -> Optional[PathfinderError]:
    """Return the first GraphQL error in a payload, if any."""
    if not isinstance(payload, dict):
        return None
    errors = payload.get("errors")
    if not isinstance(errors, list) or not errors:
        return None
    first = errors[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, str) or not message:
        message = "pathfinder error"
    return PathfinderError(message, body=json.dumps(errors))


class PathfinderClient:
    """Executes persisted GraphQL operations against the partner API."""

    def __init__(
        self,
        session: ConnectSession,
        hashes: HashResolver,
        endpoints: Optional[Endpoints] = None,
        language: str = "",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.session = session
        self.hashes = hashes
        self.endpoints = endpoints or Endpoints()
        self.language = language
        self.timeout = timeout

    async def query(self, operation: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Run a persisted query.

        Args:
            operation: GraphQL operation name (e.g. "searchDesktop")
            variables: Operation variables

        Returns:
            Decoded JSON response

        Raises:
            SpotifyAPIError: On non-2xx responses
            PathfinderError: If the response carries GraphQL errors
        """
        auth = await self.session.authorize()
        sha256 = await self.hashes.resolve(operation)

        params = {
            "operationName": operation,
            "variables": json.dumps(variables or {}, separators=(",", ":")),
            "extensions": json.dumps(
                {"persistedQuery": {"version": 1, "sha256Hash": sha256}},
                separators=(",", ":"),
            ),
        }
        headers = web_player_headers(auth.access_token, auth.client_token, auth.client_version)
        headers["Accept"] = "application/json"
        if self.language:
            headers["Accept-Language"] = self.language

        logger.debug(f"Pathfinder query {operation}")
        async with aiohttp.ClientSession() as http:
            async with http.post(
                self.endpoints.pathfinder,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                await raise_for_status(resp)
                payload = await resp.json(content_type=None)

        error = pathfinder_error(payload)
        if error is not None:
            raise error
        if not isinstance(payload, dict):
            raise PathfinderError("unexpected pathfinder response")
        return payload
