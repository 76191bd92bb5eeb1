"""
Dropbox MCP Server (Protocol 2024-11-05)

Exposes Dropbox auth, download, upload, list and filename tools to MCP
hosts over stdio (default, for desktop assistants) or HTTP+SSE.

Transports:
    - stdio: newline-delimited JSON-RPC on stdin/stdout (logs go to stderr)
    - SSE:   GET /sse, POST /message?sessionId=<id>, GET /health

Usage:
    dropbox-mcp                 # stdio
    dropbox-mcp --sse           # SSE on port 3015
    dropbox-mcp --both          # SSE + stdio
    dropbox-mcp --sse --port 9090
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import Any, Callable, Dict, Optional

from aiohttp import web

from dropbox_mcp import __version__
from dropbox_mcp.config import ServerConfig, load_config
from dropbox_mcp.context import create_context
from dropbox_mcp.errors import ConfigurationError
from dropbox_mcp.tools import ToolDispatcher

logger = logging.getLogger("dropbox_mcp")

# ---------------------------------------------------------------------------
# Server metadata
# ---------------------------------------------------------------------------

SERVER_INFO = {
    "name": "dropbox-mcp",
    "version": __version__,
}

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

# stdio requests carry whole file contents for dropbox_upload
STDIO_LINE_LIMIT = 64 * 1024 * 1024


def _error_response(msg_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": msg_id,
        "error": {"code": code, "message": message},
    }


# ===========================================================================
# JSON-RPC MCP Protocol Handler
# ===========================================================================

async def handle_jsonrpc(message: Dict[str, Any], dispatcher: ToolDispatcher) -> Optional[Dict[str, Any]]:
    """
    Process a single JSON-RPC message according to the MCP protocol.

    Handles:
        - initialize: Capability negotiation
        - notifications/*: Client notifications (no response)
        - tools/list: Return available tools
        - tools/call: Execute a tool; failures come back as isError results
        - ping: Health check
    """
    msg_id = message.get("id")
    method = message.get("method", "")
    params = message.get("params")
    if params is None:
        params = {}
    if not isinstance(method, str) or not isinstance(params, dict):
        return _error_response(msg_id, INVALID_REQUEST, "Invalid Request")

    # --- initialize --------------------------------------------------------
    if method == "initialize":
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "result": {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {
                    "tools": {"listChanged": False},
                },
                "serverInfo": SERVER_INFO,
            },
        }

    # --- notifications (no response) --------------------------------------
    if method.startswith("notifications/"):
        return None

    # --- tools/list --------------------------------------------------------
    if method == "tools/list":
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "result": {"tools": dispatcher.list_tools()},
        }

    # --- tools/call --------------------------------------------------------
    if method == "tools/call":
        tool_name = params.get("name", "")
        arguments = params.get("arguments")

        result = await dispatcher.call(tool_name, arguments)
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "result": result.to_mcp(),
        }

    # --- ping --------------------------------------------------------------
    if method == "ping":
        return {"jsonrpc": "2.0", "id": msg_id, "result": {}}

    return _error_response(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")


# ===========================================================================
# SSE Transport (aiohttp)
# ===========================================================================

KEEPALIVE_SECONDS = 30


def _sse_event(event: str, data: str) -> bytes:
    return f"event: {event}\ndata: {data}\n\n".encode()


class SSETransport:
    """
    MCP over Server-Sent Events.

    A client opens GET /sse, learns its session's POST URL from the first
    'endpoint' event, and receives every response on that stream as well as
    in the POST reply.
    """

    def __init__(self, app: web.Application, dispatcher: ToolDispatcher, auth_token: str = ""):
        self.dispatcher = dispatcher
        self.auth_token = auth_token
        self._sessions: Dict[str, web.StreamResponse] = {}

        app.router.add_get("/sse", self.handle_sse)
        app.router.add_post("/message", self.handle_message)
        app.router.add_post("/messages", self.handle_message)
        app.router.add_get("/health", self.handle_health)

    def _authorized(self, request: web.Request) -> bool:
        if not self.auth_token:
            return True
        return request.headers.get("Authorization", "") == f"Bearer {self.auth_token}"

    async def _push(self, session_id: str, payload: Dict[str, Any]) -> None:
        stream = self._sessions.get(session_id)
        if stream is None:
            return
        try:
            await stream.write(_sse_event("message", json.dumps(payload)))
        except ConnectionError:
            self._sessions.pop(session_id, None)

    async def handle_sse(self, request: web.Request) -> web.StreamResponse:
        if not self._authorized(request):
            return web.Response(status=401, text="Unauthorized")

        session_id = uuid.uuid4().hex
        stream = web.StreamResponse(headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        })
        await stream.prepare(request)
        await stream.write(_sse_event("endpoint", f"/message?sessionId={session_id}"))

        self._sessions[session_id] = stream
        logger.info("SSE session %s opened", session_id)
        try:
            while True:
                await asyncio.sleep(KEEPALIVE_SECONDS)
                await stream.write(b": keepalive\n\n")
        except ConnectionError:
            pass
        finally:
            self._sessions.pop(session_id, None)
            logger.info("SSE session %s closed", session_id)
        return stream

    async def handle_message(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401, text="Unauthorized")

        session_id = request.query.get("sessionId") or request.query.get("session_id", "")
        if session_id and session_id not in self._sessions:
            return web.json_response({"error": "Unknown session"}, status=404)

        try:
            message = await request.json()
        except json.JSONDecodeError:
            return web.json_response(_error_response(None, PARSE_ERROR, "Parse error"), status=400)
        if not isinstance(message, dict):
            return web.json_response(_error_response(None, INVALID_REQUEST, "Invalid Request"), status=400)

        result = await handle_jsonrpc(message, self.dispatcher)
        if result is None:
            return web.Response(status=204)

        await self._push(session_id, result)
        return web.json_response(result)

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "server": SERVER_INFO["name"],
            "version": SERVER_INFO["version"],
            "protocol": PROTOCOL_VERSION,
            "tools": len(self.dispatcher.list_tools()),
            "sessions": len(self._sessions),
        })


# ===========================================================================
# stdio Transport
# ===========================================================================

Writer = Callable[[Dict[str, Any]], None]


def _write_stdout(payload: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload) + "\n")
    sys.stdout.flush()


async def process_line(line: str, dispatcher: ToolDispatcher) -> Optional[Dict[str, Any]]:
    """Handle one stdio line; returns the response to write, if any."""
    line = line.strip()
    if not line:
        return None
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return _error_response(None, PARSE_ERROR, "Parse error")
    if not isinstance(message, dict):
        return _error_response(None, INVALID_REQUEST, "Invalid Request")
    return await handle_jsonrpc(message, dispatcher)


async def serve_lines(reader: asyncio.StreamReader, dispatcher: ToolDispatcher, write: Writer = _write_stdout):
    """
    Answer newline-delimited JSON-RPC messages until EOF.

    A bad line gets an error reply; it never ends the loop.
    """
    while True:
        try:
            raw = await reader.readline()
        except ValueError:
            # readline discards what it buffered; any rest of the line fails to parse on its own
            logger.error("Discarded an oversized stdio message")
            write(_error_response(None, INVALID_REQUEST, "Request too large"))
            continue
        if not raw:
            break

        try:
            result = await process_line(raw.decode("utf-8", errors="replace"), dispatcher)
        except Exception:
            logger.exception("Unhandled error while processing a stdio message")
            result = _error_response(None, INTERNAL_ERROR, "Internal error")
        if result is not None:
            write(result)


async def run_stdio(dispatcher: ToolDispatcher):
    """Run the MCP server over stdin/stdout, one JSON-RPC message per line."""
    logger.info("Dropbox MCP Server running on stdio")

    reader = asyncio.StreamReader(limit=STDIO_LINE_LIMIT)
    protocol = asyncio.StreamReaderProtocol(reader)
    await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)
    await serve_lines(reader, dispatcher)


# ===========================================================================
# Application Factory & Entry Point
# ===========================================================================

def create_app(dispatcher: ToolDispatcher, auth_token: str = "") -> web.Application:
    """Create the aiohttp application with the SSE transport."""
    app = web.Application()
    SSETransport(app, dispatcher, auth_token)
    return app


async def run_both(dispatcher: ToolDispatcher, config: ServerConfig):
    """Run both SSE and stdio transports concurrently."""
    app = create_app(dispatcher, config.auth_token)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.host, config.port)
    await site.start()
    logger.info("SSE transport listening on http://%s:%d", config.host, config.port)

    try:
        await run_stdio(dispatcher)
    finally:
        await runner.cleanup()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dropbox MCP Server")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--stdio", dest="transport", action="store_const", const="stdio",
                      help="Run in stdio mode (default)")
    mode.add_argument("--sse", dest="transport", action="store_const", const="sse",
                      help="Run the HTTP+SSE transport")
    mode.add_argument("--both", dest="transport", action="store_const", const="both",
                      help="Run both SSE and stdio transports")
    parser.add_argument("--port", type=int, default=None, help="SSE server port (default: 3015)")
    parser.add_argument("--host", type=str, default=None, help="SSE server host (default: 127.0.0.1)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
        logger.error("%s", e)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    if args.transport:
        config.transport = args.transport
    if args.port:
        config.port = args.port
    if args.host:
        config.host = args.host

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)

    dispatcher = ToolDispatcher(create_context(config))

    logger.info("Starting %s v%s", SERVER_INFO["name"], SERVER_INFO["version"])
    logger.info("Registered tools: %s", [t["name"] for t in dispatcher.list_tools()])

    if config.transport == "stdio":
        asyncio.run(run_stdio(dispatcher))
    elif config.transport == "both":
        asyncio.run(run_both(dispatcher, config))
    else:
        app = create_app(dispatcher, config.auth_token)
        logger.info("SSE transport starting on http://%s:%d", config.host, config.port)
        web.run_app(app, host=config.host, port=config.port, print=None)


if __name__ == "__main__":
    main()
