"""
Engine factory and registry.

Builds the configured engine composition from the loaded Config.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from spotctl.auth.token_provider import CookieTokenProvider
from spotctl.config import Config
from spotctl.cookies import CookieSource, FileCookieSource
from spotctl.endpoints import Endpoints

from .applescript import AppleScriptClient
from .auto import AutoClient
from .base import SpotifyAPI
from .fallback import PlaybackFallbackClient
from .web import WebClient

logger = logging.getLogger(__name__)

EngineBuilder = Callable[["BackendFactory"], SpotifyAPI]


class BackendNotFoundError(Exception):
    """Raised when requested engine type is not available."""

    pass


class BackendRegistry:
    """
    Registry of available engine compositions.

    Each entry maps an engine name to a builder on BackendFactory.
    """

    _builders: dict[str, EngineBuilder] = {}

    @classmethod
    def register(cls, type_name: str, builder: EngineBuilder) -> None:
        """Register an engine builder."""
        cls._builders[type_name] = builder
        logger.debug(f"Registered engine type: {type_name}")

    @classmethod
    def get(cls, type_name: str) -> Optional[EngineBuilder]:
        """Get engine builder by type name."""
        return cls._builders.get(type_name)

    @classmethod
    def available_types(cls) -> list[str]:
        """Get list of registered engine type names."""
        return list(cls._builders.keys())


class BackendFactory:
    """
    Factory for creating engine instances.

    Usage:
        api = BackendFactory.create_from_config(config)
    """

    def __init__(
        self,
        config: Config,
        source: Optional[CookieSource] = None,
        endpoints: Optional[Endpoints] = None,
    ):
        self.config = config
        self.source = source or FileCookieSource(Path(config.spotify.cookie_path).expanduser())
        self.endpoints = endpoints or Endpoints()

    @classmethod
    def create_from_config(
        cls,
        config: Config,
        source: Optional[CookieSource] = None,
        endpoints: Optional[Endpoints] = None,
    ) -> SpotifyAPI:
        """Create the engine named by config.engine.type."""
        engine_type = config.engine.type
        builder = BackendRegistry.get(engine_type)
        if builder is None:
            available = BackendRegistry.available_types()
            raise BackendNotFoundError(
                f"Engine type '{engine_type}' not available. Available types: {available}"
            )
        logger.info(f"Using {engine_type} engine")
        return builder(cls(config, source, endpoints))

    def web(self) -> WebClient:
        """Documented Web API engine."""
        spotify = self.config.spotify
        return WebClient(
            CookieTokenProvider(self.source, self.endpoints, timeout=self.config.engine.timeout),
            self.endpoints,
            market=spotify.market,
            language=spotify.language,
            device=spotify.device,
            timeout=self.config.engine.timeout,
        )

    def connect(self) -> SpotifyAPI:
        """Private connect engine."""
        # Imported here: the connect package depends on this package's modules
        from spotctl.connect.client import ConnectClient

        spotify = self.config.spotify
        return ConnectClient(
            self.source,
            self.endpoints,
            market=spotify.market,
            language=spotify.language,
            device=spotify.device,
            timeout=self.config.engine.timeout,
        )

    def create_connect(self) -> SpotifyAPI:
        return AutoClient(self.connect(), self.web())

    def create_web(self) -> SpotifyAPI:
        return PlaybackFallbackClient(self.web(), self.connect())

    def create_auto(self) -> SpotifyAPI:
        return AutoClient(self.connect(), self.web())

    def create_applescript(self) -> SpotifyAPI:
        return AppleScriptClient(fallback=self.create_auto())


# Register engines
BackendRegistry.register("connect", BackendFactory.create_connect)
BackendRegistry.register("web", BackendFactory.create_web)
BackendRegistry.register("auto", BackendFactory.create_auto)
BackendRegistry.register("applescript", BackendFactory.create_applescript)
