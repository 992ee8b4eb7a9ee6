"""
Authentication module.

Turns browser session cookies into the credentials the private web-player
APIs require.
"""

from .session import ConnectAuth, ConnectSession
from .token_provider import CookieTokenProvider, TokenProvider
from .tokens import AccessToken, ClientToken
from .totp import TotpSecret, TotpSecretCache, generate_totp

__all__ = [
    "AccessToken",
    "ClientToken",
    "ConnectAuth",
    "ConnectSession",
    "CookieTokenProvider",
    "TokenProvider",
    "TotpSecret",
    "TotpSecretCache",
    "generate_totp",
]
