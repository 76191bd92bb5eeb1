"""
Dropbox OAuth 2.0 helpers.

Two flows, both against https://api.dropboxapi.com/oauth2/token:
    - refresh_token -> short-lived access token (before every operation)
    - authorization code -> refresh + access token pair (one-time setup)

Access tokens are never cached: each operation asks for a fresh one.
"""

import logging
from typing import Any, Dict
from urllib.parse import urlencode

from dropbox_mcp.config import ServerConfig
from dropbox_mcp.errors import AuthorizationError, ConfigurationError
from dropbox_mcp.http_client import DropboxHTTPClient
from dropbox_mcp.models import TokenPair
from dropbox_mcp.token_store import TokenStore

logger = logging.getLogger(__name__)

API_HOST = "api.dropboxapi.com"
TOKEN_PATH = "/oauth2/token"
AUTHORIZE_URL = "https://www.dropbox.com/oauth2/authorize"

MISSING_REFRESH_TOKEN_MESSAGE = "\n".join([
    "Dropbox refresh token is not configured.",
    "Set DROPBOX_REFRESH_TOKEN (recommended) or create a token file.",
    "You can also use MCP tools:",
    "- dropbox_auth_get_url (open the URL, authorize, copy the code)",
    "- dropbox_auth_exchange_code (exchange code -> refresh token; optionally save)",
])


class DropboxAuth:
    """Turns stored credentials into access tokens."""

    def __init__(self, config: ServerConfig, http: DropboxHTTPClient, store: TokenStore):
        self.config = config
        self.http = http
        self.store = store

    # ------------------------------------------------------------------
    # Refresh token
    # ------------------------------------------------------------------
    def _configured_token(self) -> str:
        return (self.config.refresh_token or "").strip()

    def resolve_refresh_token(self) -> str:
        """
        Return the active refresh token: configuration first, then the token file.

        Never prompts; stdin belongs to the MCP transport.
        """
        token = self._configured_token() or (self.store.load() or "")
        if not token:
            raise ConfigurationError(MISSING_REFRESH_TOKEN_MESSAGE)
        return token

    def refresh_token_source(self) -> str:
        """Where the active refresh token comes from: env, file:<path> or none."""
        if self._configured_token():
            return "env"
        if self.store.load():
            return f"file:{self.store.path}"
        return "none"

    def activate_refresh_token(self, token: str) -> None:
        """Make ``token`` the configured refresh token for the rest of this process."""
        self.config.refresh_token = token

    # ------------------------------------------------------------------
    # Token endpoint
    # ------------------------------------------------------------------
    async def _post_token_form(self, form: Dict[str, str]) -> Dict[str, Any]:
        body = urlencode({
            **form,
            "client_id": self.config.app_key,
            "client_secret": self.config.app_secret,
        })
        response = await self.http.request(
            API_HOST,
            TOKEN_PATH,
            "POST",
            {"Content-Type": "application/x-www-form-urlencoded"},
            body,
        )
        return response if isinstance(response, dict) else {}

    async def get_access_token(self) -> str:
        refresh_token = self.resolve_refresh_token()
        data = await self._post_token_form({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        access_token = data.get("access_token")
        if not access_token:
            raise AuthorizationError("Dropbox token endpoint did not return an access_token.")
        logger.debug("Obtained Dropbox access token (expires in %ss)", data.get("expires_in"))
        return access_token

    async def exchange_code_for_token(self, auth_code: str) -> TokenPair:
        """
        Exchange a one-time authorization code for a token pair.

        The caller decides whether to persist the refresh token.
        """
        data = await self._post_token_form({
            "code": auth_code,
            "grant_type": "authorization_code",
        })
        refresh_token = data.get("refresh_token")
        if not refresh_token:
            raise AuthorizationError(
                "Dropbox did not return a refresh_token. Ensure you requested offline access "
                "(token_access_type=offline) and the app is configured correctly."
            )
        logger.info("Exchanged authorization code for a Dropbox refresh token")
        return TokenPair(access_token=data.get("access_token", ""), refresh_token=refresh_token)

    def build_authorization_url(self) -> str:
        query = urlencode({
            "client_id": self.config.app_key,
            "response_type": "code",
            "token_access_type": "offline",
        })
        return f"{AUTHORIZE_URL}?{query}"
