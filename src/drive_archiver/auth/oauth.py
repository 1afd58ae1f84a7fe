"""
Google OAuth 2.0 authorization-code flow for Drive access.

The token manager hides acquisition and refresh from callers: it hands out
a credential that stays valid for at least the staleness margin, refreshing
it or running the browser flow when needed.
"""

import logging
import secrets
import webbrowser
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..exceptions import (
    AuthenticationError,
    CsrfMismatchError,
    MissingAuthorizationCodeError,
    MissingTokenFieldError,
    TokenExchangeRejectedError,
)
from .credentials import AppCredentials, Credential, TokenStore, utcnow
from .loopback import RedirectListener

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


def parse_token_response(
    data: Any,
    existing_refresh_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Credential:
    """
    Build a credential from a token endpoint response.

    Args:
        data: Decoded JSON body
        existing_refresh_token: Refresh token to carry forward when the
            response omits one
        now: Issue time used to compute the absolute expiry

    Raises:
        TokenExchangeRejectedError: If the response reports an error
        MissingTokenFieldError: If a mandatory token is absent
    """
    if not isinstance(data, dict):
        raise TokenExchangeRejectedError("invalid_response")

    if "error" in data:
        error = data["error"]
        raise TokenExchangeRejectedError(error if isinstance(error, str) else "unknown")

    access_token = data.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise MissingTokenFieldError("access_token")

    refresh_token = data.get("refresh_token") or existing_refresh_token
    if not refresh_token:
        raise MissingTokenFieldError("refresh_token")

    expires_in = data.get("expires_in")
    if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
        expires_in = DEFAULT_EXPIRES_IN

    return Credential(
        access_token=access_token,
        refresh_token=refresh_token,
        expiry=(now or utcnow()) + timedelta(seconds=expires_in),
    )


class TokenManager:
    """
    Supplies a valid Drive credential, refreshing or re-authenticating as needed.
    """

    GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    SCOPE = "https://www.googleapis.com/auth/drive"

    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials_path,
        token_store: TokenStore,
        browser_opener: Optional[Callable[[str], Any]] = None,
        redirect_timeout: Optional[float] = None,
    ):
        """
        Initialize token manager.

        Args:
            http: Shared HTTP client for token endpoint calls
            credentials_path: Application credentials JSON file
            token_store: Persistent storage for the credential
            browser_opener: Callable that opens a URL, ``webbrowser.open`` by default
            redirect_timeout: Seconds to wait for the browser redirect (None waits forever)
        """
        self.http = http
        self.credentials_path = credentials_path
        self.token_store = token_store
        self.browser_opener = browser_opener or webbrowser.open
        self.redirect_timeout = redirect_timeout
        self._app_credentials: Optional[AppCredentials] = None

    @property
    def app_credentials(self) -> AppCredentials:
        """Application credentials, read on first use."""
        if self._app_credentials is None:
            self._app_credentials = AppCredentials.from_file(self.credentials_path)
        return self._app_credentials

    async def obtain_credential(self) -> Credential:
        """
        Return a credential valid for at least the staleness margin.

        Order of preference: the persisted credential as-is, a refreshed
        one, then a fresh browser authorization.

        Raises:
            AuthenticationError: If the browser flow fails
        """
        credential = self.token_store.load()

        if credential is not None:
            if not credential.is_stale():
                logger.debug("Using persisted credential")
                return credential

            try:
                refreshed = await self.refresh(credential)
            except (AuthenticationError, httpx.HTTPError) as e:
                logger.warning(f"Token refresh failed ({e}), re-authenticating ...")
            else:
                self.token_store.persist(refreshed)
                logger.info("Refreshed access token")
                return refreshed

        credential = await self.authenticate()
        self.token_store.persist(credential)
        logger.info("Stored new credential")
        return credential

    async def refresh(self, credential: Credential) -> Credential:
        """Exchange the stored refresh token for a new access token."""
        app = self.app_credentials
        data = await self._post_token_request({
            "refresh_token": credential.refresh_token,
            "client_id": app.client_id,
            "client_secret": app.client_secret,
            "grant_type": "refresh_token",
        })
        return parse_token_response(data, existing_refresh_token=credential.refresh_token)

    def build_authorization_url(self, redirect_uri: str, state: str) -> str:
        """Build the consent URL for the given redirect target and state token."""
        params = {
            "client_id": self.app_credentials.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.SCOPE,
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Always show consent to get refresh token
            "state": state,
        }
        return f"{self.GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def authenticate(self) -> Credential:
        """
        Run the browser authorization flow.

        Raises:
            CsrfMismatchError: If the redirect's state is not ours
            MissingAuthorizationCodeError: If the redirect has no code
            TokenExchangeRejectedError: If the code exchange is rejected
        """
        app = self.app_credentials

        async with RedirectListener() as listener:
            redirect_uri = listener.redirect_uri
            state = secrets.token_urlsafe(32)
            auth_url = self.build_authorization_url(redirect_uri, state)

            print("Opening browser for Google authentication ...")
            print(f"If it doesn't open automatically, visit:\n  {auth_url}")
            self._open_browser(auth_url)

            params = await listener.wait_for_redirect(self.redirect_timeout)

        returned_state = params.get("state", "")
        if not secrets.compare_digest(returned_state.encode(), state.encode()):
            raise CsrfMismatchError("OAuth state mismatch - possible CSRF attack, aborting")

        code = params.get("code")
        if not code:
            raise MissingAuthorizationCodeError("No auth code in redirect URL")

        data = await self._post_token_request({
            "code": code,
            "client_id": app.client_id,
            "client_secret": app.client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        })
        return parse_token_response(data)

    def _open_browser(self, url: str) -> None:
        try:
            self.browser_opener(url)
        except webbrowser.Error as e:
            logger.debug(f"Could not launch browser: {e}")

    async def _post_token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        """POST to the token endpoint and decode the JSON body, whatever the status."""
        response = await self.http.post(self.GOOGLE_TOKEN_URL, data=form)
        try:
            return response.json()
        except ValueError:
            logger.error(f"Token endpoint returned non-JSON response ({response.status_code})")
            raise TokenExchangeRejectedError("invalid_response")
