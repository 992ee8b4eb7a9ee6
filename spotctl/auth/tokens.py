"""
Token types for web-player authentication.
"""

import time
from dataclasses import dataclass


@dataclass
class AccessToken:
    """Bearer token minted from the browser cookies."""

    token: str = ""
    expires_at: float = 0.0  # Unix seconds
    anonymous: bool = False
    client_id: str = ""

    def is_expired(self, buffer_s: int = 60) -> bool:
        """Check if token is expired or will expire within buffer."""
        if not self.token or not self.expires_at:
            return True
        return time.time() + buffer_s >= self.expires_at


@dataclass
class ClientToken:
    """Client token granted to the emulated web-player install."""

    token: str = ""
    expires_at: float = 0.0  # Unix seconds

    def is_expired(self, buffer_s: int = 60) -> bool:
        """Check if token is expired or will expire within buffer."""
        if not self.token or not self.expires_at:
            return True
        return time.time() + buffer_s >= self.expires_at


def token_prefix(token: str, length: int = 8) -> str:
    """Shorten a token for log output."""
    if len(token) <= length:
        return "***"
    return f"{token[:length]}..."
