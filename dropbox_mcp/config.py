"""
Configuration for the Dropbox MCP server.

Loads all settings from environment variables (and a ``.env`` file, if
present) once at startup. The resulting ServerConfig is passed to every
component that needs it; nothing else reads the environment.

Environment Variables:
    DROPBOX_APP_KEY         - Dropbox app key (required)
    DROPBOX_APP_SECRET      - Dropbox app secret (required)
    DROPBOX_REFRESH_TOKEN   - Refresh token, takes precedence over the token file
    DROPBOX_TOKEN_FILE      - Token file path (default: ~/.dropbox_token)
    DROPBOX_MCP_TRANSPORT   - Transport mode: stdio, sse, both (default: stdio)
    DROPBOX_MCP_HOST        - SSE bind address (default: 127.0.0.1)
    DROPBOX_MCP_PORT        - SSE port (default: 3015)
    DROPBOX_MCP_AUTH_TOKEN  - Bearer token required by the SSE endpoints (optional)
    DROPBOX_MCP_TIMEOUT     - Dropbox request timeout in seconds (default: 30)
    DROPBOX_MCP_LOG_LEVEL   - Logging level (default: INFO)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from dropbox_mcp.errors import ConfigurationError

DEFAULT_TOKEN_FILE = Path.home() / ".dropbox_token"
DEFAULT_PORT = 3015
DEFAULT_TIMEOUT = 30.0
TRANSPORTS = ("stdio", "sse", "both")


@dataclass
class ServerConfig:
    """Server configuration loaded from environment variables."""

    # --- Dropbox app ---
    app_key: str = ""
    app_secret: str = ""
    refresh_token: Optional[str] = None
    token_file: Path = field(default_factory=lambda: DEFAULT_TOKEN_FILE)

    # --- Server ---
    transport: str = "stdio"  # stdio | sse | both
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    auth_token: str = ""
    request_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create a ServerConfig from environment variables.

        A blank DROPBOX_REFRESH_TOKEN counts as unset.
        """
        env = os.environ if environ is None else environ

        refresh_token = env.get("DROPBOX_REFRESH_TOKEN", "").strip() or None
        token_file = env.get("DROPBOX_TOKEN_FILE", "")

        try:
            port = int(env.get("DROPBOX_MCP_PORT", str(DEFAULT_PORT)))
            request_timeout = float(env.get("DROPBOX_MCP_TIMEOUT", str(DEFAULT_TIMEOUT)))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            app_key=env.get("DROPBOX_APP_KEY", "").strip(),
            app_secret=env.get("DROPBOX_APP_SECRET", "").strip(),
            refresh_token=refresh_token,
            token_file=Path(token_file).expanduser() if token_file else DEFAULT_TOKEN_FILE,
            transport=env.get("DROPBOX_MCP_TRANSPORT", "stdio").lower(),
            host=env.get("DROPBOX_MCP_HOST", "127.0.0.1"),
            port=port,
            auth_token=env.get("DROPBOX_MCP_AUTH_TOKEN", ""),
            request_timeout=request_timeout,
            log_level=env.get("DROPBOX_MCP_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """Raise ConfigurationError if the server cannot start."""
        if not self.app_key or not self.app_secret:
            raise ConfigurationError(
                "DROPBOX_APP_KEY and DROPBOX_APP_SECRET environment variables are required. "
                "Please set them before starting the server."
            )
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(
                f"Unsupported transport '{self.transport}'. Expected one of: {', '.join(TRANSPORTS)}"
            )


def load_config(dotenv_path: Optional[str] = None) -> ServerConfig:
    """Load a .env file (if any) and build the ServerConfig from the environment."""
    load_dotenv(dotenv_path)
    return ServerConfig.from_env()
