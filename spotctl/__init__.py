"""
spotctl - Spotify from the terminal.

Controls playback and browses the catalog using browser session cookies.
"""

__version__ = "0.1.0"

from .config import Config, ConfigError, load_config
from .errors import SpotifyAPIError, SpotifyError, UnsupportedError

__all__ = [
    "__version__",
    "Config",
    "ConfigError",
    "load_config",
    "SpotifyAPIError",
    "SpotifyError",
    "UnsupportedError",
]
