"""
Tool registry and dispatcher for the Dropbox MCP server.

Aggregates tool definitions and handlers from the sub-modules and runs tool
calls. The dispatcher is the error boundary: whatever a handler raises comes
back as an ``isError`` result, never as an exception into the transport.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Dict, List, Optional

from dropbox_mcp.context import DropboxContext
from dropbox_mcp.errors import DropboxMCPError, ToolArgumentError, UnknownToolError
from dropbox_mcp.tools import auth_tools, file_tools

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Coroutine[Any, Any, str]]

# ---------------------------------------------------------------------------
# Aggregate all tool definitions
# ---------------------------------------------------------------------------

ALL_TOOLS: List[Dict[str, Any]] = [
    *auth_tools.TOOLS,
    *file_tools.TOOLS,
]


def build_handlers(ctx: DropboxContext) -> Dict[str, Handler]:
    return {
        **auth_tools.build_handlers(ctx),
        **file_tools.build_handlers(ctx),
    }


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call: text, or a tagged error message."""

    text: str
    is_error: bool = False
    kind: Optional[str] = None

    @classmethod
    def failure(cls, message: str, kind: str) -> "ToolResult":
        return cls(text=f"Error: {message}", is_error=True, kind=kind)

    def to_mcp(self) -> Dict[str, Any]:
        """MCP tools/call result payload."""
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }


class ToolDispatcher:
    """Routes tools/call requests to handlers."""

    def __init__(self, ctx: DropboxContext, tools: Optional[List[Dict[str, Any]]] = None):
        self.tools = tools if tools is not None else ALL_TOOLS
        self.handlers = build_handlers(ctx)

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.tools

    async def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        try:
            handler = self.handlers.get(name)
            if handler is None:
                raise UnknownToolError(name)
            if arguments is None:
                arguments = {}
            elif not isinstance(arguments, dict):
                raise ToolArgumentError("Tool arguments must be an object")
            text = await handler(arguments)
        except DropboxMCPError as e:
            logger.warning("Tool %s failed [%s]: %s", name, e.kind, e)
            return ToolResult.failure(str(e), e.kind)
        except Exception as e:
            # last-resort boundary: an escaping exception would kill the transport
            logger.exception("Tool %s raised an unexpected error", name)
            return ToolResult.failure(str(e) or e.__class__.__name__, "internal")

        logger.info("Tool %s succeeded", name)
        return ToolResult(text=text)
