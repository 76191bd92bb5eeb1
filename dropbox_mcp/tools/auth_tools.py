"""
OAuth setup tools.

Lets the assistant host walk a user through Dropbox authorization without
touching stdin: get the authorize URL, then exchange the code it yields.

Export:
    TOOLS          - Tool definition dicts (for tools/list)
    build_handlers - Handler functions bound to a DropboxContext
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Dict

from dropbox_mcp.browser import open_browser
from dropbox_mcp.context import DropboxContext
from dropbox_mcp.tools.arguments import optional_bool, require_str


# ===========================================================================
# Tool Definitions
# ===========================================================================

AUTH_STATUS_TOOL = {
    "name": "dropbox_auth_status",
    "description": "Check whether Dropbox refresh token is configured (env or token file)",
    "inputSchema": {
        "type": "object",
        "properties": {},
    },
}

AUTH_GET_URL_TOOL = {
    "name": "dropbox_auth_get_url",
    "description": "Get Dropbox OAuth authorization URL (optionally opens browser on the MCP host)",
    "inputSchema": {
        "type": "object",
        "properties": {
            "openBrowser": {
                "type": "boolean",
                "description": "If true, attempt to open the authorization URL in a browser on the MCP host",
            },
        },
    },
}

AUTH_EXCHANGE_CODE_TOOL = {
    "name": "dropbox_auth_exchange_code",
    "description": "Exchange an authorization code for tokens. Optionally save refresh token to token file.",
    "inputSchema": {
        "type": "object",
        "properties": {
            "authCode": {
                "type": "string",
                "description": "Authorization code from Dropbox OAuth redirect",
            },
            "save": {
                "type": "boolean",
                "description": "If true (default), save refresh token to token file for future use",
            },
        },
        "required": ["authCode"],
    },
}


# ===========================================================================
# Inputs
# ===========================================================================

@dataclass(frozen=True)
class AuthGetUrlInput:
    open_browser: bool = False

    @classmethod
    def from_args(cls, arguments: Dict[str, Any]) -> "AuthGetUrlInput":
        return cls(open_browser=optional_bool(arguments, "openBrowser", False))


@dataclass(frozen=True)
class AuthExchangeCodeInput:
    auth_code: str
    save: bool = True

    @classmethod
    def from_args(cls, arguments: Dict[str, Any]) -> "AuthExchangeCodeInput":
        return cls(
            auth_code=require_str(arguments, "authCode"),
            save=optional_bool(arguments, "save", True),
        )


# ===========================================================================
# Handlers
# ===========================================================================

def build_handlers(ctx: DropboxContext) -> Dict[str, Callable[..., Coroutine]]:

    async def handle_auth_status(arguments: Dict[str, Any]) -> str:
        source = ctx.auth.refresh_token_source()
        return json.dumps({"configured": source != "none", "source": source}, indent=2)

    async def handle_auth_get_url(arguments: Dict[str, Any]) -> str:
        params = AuthGetUrlInput.from_args(arguments)
        url = ctx.auth.build_authorization_url()
        if params.open_browser:
            await open_browser(url)
        return url

    async def handle_auth_exchange_code(arguments: Dict[str, Any]) -> str:
        params = AuthExchangeCodeInput.from_args(arguments)
        tokens = await ctx.auth.exchange_code_for_token(params.auth_code)

        if params.save:
            ctx.store.save(tokens.refresh_token)
        ctx.auth.activate_refresh_token(tokens.refresh_token)

        result: Dict[str, Any] = {
            "refresh_token": tokens.refresh_token,
            "saved": params.save,
        }
        if params.save:
            result["tokenFile"] = str(ctx.store.path)
        return json.dumps(result, indent=2)

    return {
        "dropbox_auth_status": handle_auth_status,
        "dropbox_auth_get_url": handle_auth_get_url,
        "dropbox_auth_exchange_code": handle_auth_exchange_code,
    }


TOOLS = [AUTH_STATUS_TOOL, AUTH_GET_URL_TOOL, AUTH_EXCHANGE_CODE_TOOL]
