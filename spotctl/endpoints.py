"""
Remote endpoints and request headers used by the engines.

All URLs live on one dataclass so tests can point every component at a
local server.
"""

from dataclasses import dataclass

DEFAULT_TIMEOUT = 10.0  # seconds

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


@dataclass
class Endpoints:
    """Base URLs for the private and public Spotify surfaces."""

    web_player: str = "https://open.spotify.com/"
    client_token: str = "https://clienttoken.spotify.com/v1/clienttoken"
    pathfinder: str = "https://api-partner.spotify.com/pathfinder/v1/query"
    connect_state: str = "https://gue1-spclient.spotify.com/connect-state/v1"
    track_playback: str = "https://gue1-spclient.spotify.com/track-playback/v1"
    dealer: str = "wss://dealer.spotify.com/"
    web_api: str = "https://api.spotify.com/v1"

    def __post_init__(self) -> None:
        if not self.web_player.endswith("/"):
            self.web_player += "/"
        self.connect_state = self.connect_state.rstrip("/")
        self.track_playback = self.track_playback.rstrip("/")
        self.web_api = self.web_api.rstrip("/")

    @property
    def token_url(self) -> str:
        """Cookie-to-bearer token exchange endpoint."""
        return f"{self.web_player}api/token"


def web_player_headers(access_token: str, client_token: str, app_version: str) -> dict[str, str]:
    """Headers the web player attaches to authenticated private API calls."""
    return {
        "Authorization": f"Bearer {access_token}",
        "Client-Token": client_token,
        "Spotify-App-Version": app_version,
        "User-Agent": USER_AGENT,
        "app-platform": "WebPlayer",
    }
