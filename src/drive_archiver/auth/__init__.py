"""
OAuth credential lifecycle for Google Drive access.
"""

from .credentials import AppCredentials, Credential, TokenStore
from .loopback import RedirectListener, parse_redirect_request
from .oauth import TokenManager, parse_token_response

__all__ = [
    "AppCredentials",
    "Credential",
    "TokenStore",
    "RedirectListener",
    "parse_redirect_request",
    "TokenManager",
    "parse_token_response",
]
