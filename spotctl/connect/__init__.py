"""
Connect engine module.

Private web-player surfaces: persisted-query discovery, pathfinder queries
and the connect-state device protocol.
"""

from .client import ConnectClient
from .hashes import HashResolver
from .pathfinder import PathfinderClient
from .state import ConnectState

__all__ = [
    "ConnectClient",
    "ConnectState",
    "HashResolver",
    "PathfinderClient",
]
