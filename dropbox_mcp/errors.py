"""
Error kinds raised by the Dropbox MCP server.

Every failure carries a ``kind`` tag. The tool dispatcher turns these into
``isError`` tool results; nothing below the dispatcher catches them.
"""

from typing import Optional


class DropboxMCPError(Exception):
    """Base class for all errors surfaced to tool callers."""

    kind = "error"


class ConfigurationError(DropboxMCPError):
    """Missing app credentials or refresh token."""

    kind = "configuration"


class ToolArgumentError(ConfigurationError):
    """Tool arguments are missing or have the wrong type."""

    kind = "validation"


class NetworkError(DropboxMCPError):
    """DNS, TLS or connection failure before a response arrived."""

    kind = "network"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RequestTimeoutError(NetworkError):
    kind = "timeout"


class DropboxAPIError(DropboxMCPError):
    """Dropbox answered with a status outside 2xx."""

    kind = "api"

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Request failed: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class AuthorizationError(DropboxMCPError):
    """OAuth response is missing a field we need."""

    kind = "authorization"


class TokenStorageError(DropboxMCPError):
    kind = "io"


class UnknownToolError(DropboxMCPError):
    kind = "unknown_tool"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name
