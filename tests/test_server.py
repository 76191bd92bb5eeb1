"""Tests for the MCP JSON-RPC handler, transports and startup."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock, patch

import pytest
from aiohttp import test_utils

from dropbox_mcp.config import ServerConfig
from dropbox_mcp.server import (
    PROTOCOL_VERSION,
    STDIO_LINE_LIMIT,
    create_app,
    handle_jsonrpc,
    main,
    process_line,
    serve_lines,
)
from dropbox_mcp.tools import ToolDispatcher


@pytest.fixture
def dispatcher(ctx):
    return ToolDispatcher(ctx)


class TestHandleJsonRpc:
    @pytest.mark.asyncio
    async def test_initialize(self, dispatcher):
        response = await handle_jsonrpc({"jsonrpc": "2.0", "id": 1, "method": "initialize"}, dispatcher)

        assert response["id"] == 1
        assert response["result"]["protocolVersion"] == PROTOCOL_VERSION
        assert response["result"]["serverInfo"]["name"] == "dropbox-mcp"

    @pytest.mark.asyncio
    async def test_notification_has_no_response(self, dispatcher):
        message = {"jsonrpc": "2.0", "method": "notifications/initialized"}
        assert await handle_jsonrpc(message, dispatcher) is None

    @pytest.mark.asyncio
    async def test_tools_list(self, dispatcher):
        response = await handle_jsonrpc({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}, dispatcher)

        names = [tool["name"] for tool in response["result"]["tools"]]
        assert "dropbox_list_folder" in names
        assert len(names) == 7

    @pytest.mark.asyncio
    async def test_tools_call_success(self, dispatcher):
        response = await handle_jsonrpc({
            "jsonrpc": "2.0",
            "id": 3,
            "method": "tools/call",
            "params": {"name": "dropbox_auth_status", "arguments": {}},
        }, dispatcher)

        result = response["result"]
        assert result["isError"] is False
        assert json.loads(result["content"][0]["text"]) == {"configured": False, "source": "none"}

    @pytest.mark.asyncio
    async def test_tools_call_failure_is_a_result_not_an_rpc_error(self, dispatcher):
        response = await handle_jsonrpc({
            "jsonrpc": "2.0",
            "id": 4,
            "method": "tools/call",
            "params": {"name": "dropbox_nope"},
        }, dispatcher)

        assert "error" not in response
        assert response["result"]["isError"] is True
        assert response["result"]["content"][0]["text"] == "Error: Unknown tool: dropbox_nope"

    @pytest.mark.asyncio
    async def test_ping(self, dispatcher):
        response = await handle_jsonrpc({"jsonrpc": "2.0", "id": 5, "method": "ping"}, dispatcher)
        assert response == {"jsonrpc": "2.0", "id": 5, "result": {}}

    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher):
        response = await handle_jsonrpc({"jsonrpc": "2.0", "id": 6, "method": "resources/list"}, dispatcher)
        assert response["error"]["code"] == -32601


class TestStdioLines:
    @pytest.mark.asyncio
    async def test_blank_line_is_ignored(self, dispatcher):
        assert await process_line("  \n", dispatcher) is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self, dispatcher):
        response = await process_line("{not json", dispatcher)
        assert response["error"]["code"] == -32700

    @pytest.mark.asyncio
    async def test_valid_line_is_dispatched(self, dispatcher):
        response = await process_line('{"jsonrpc": "2.0", "id": 7, "method": "ping"}\n', dispatcher)
        assert response["id"] == 7

    @pytest.mark.asyncio
    async def test_non_string_method_is_invalid_request(self, dispatcher):
        response = await process_line('{"jsonrpc": "2.0", "id": 8, "method": 5}', dispatcher)
        assert response["id"] == 8
        assert response["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_list_params_is_invalid_request(self, dispatcher):
        line = '{"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": ["x"]}'
        response = await process_line(line, dispatcher)
        assert response["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_non_object_message_is_invalid_request(self, dispatcher):
        response = await process_line("[1, 2]", dispatcher)
        assert response == {"jsonrpc": "2.0", "id": None, "error": {"code": -32600, "message": "Invalid Request"}}


PING = b'{"jsonrpc": "2.0", "id": 99, "method": "ping"}\n'


def _feed(reader: asyncio.StreamReader, *lines: bytes) -> None:
    for line in lines:
        reader.feed_data(line)
    reader.feed_eof()


class TestServeLines:
    @pytest.mark.asyncio
    async def test_large_upload_fits_on_one_line(self, dispatcher, ctx, dropbox_stub):
        ctx.config.refresh_token = "refresh-abc"
        dropbox_stub.route("content.dropboxapi.com", "/2/files/upload", json_body={"name": "big.md"})
        content = "x" * 70000
        upload = json.dumps({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tools/call",
            "params": {"name": "dropbox_upload", "arguments": {"filePath": "/big.md", "content": content}},
        }).encode() + b"\n"
        reader = asyncio.StreamReader(limit=STDIO_LINE_LIMIT)
        _feed(reader, upload, PING)
        responses = []

        await serve_lines(reader, dispatcher, write=responses.append)

        assert responses[0]["id"] == 1
        assert responses[0]["result"]["isError"] is False
        uploaded = dropbox_stub.requests_to("content.dropboxapi.com", "/2/files/upload")
        assert len(uploaded[0].content) == 70000
        assert responses[1] == {"jsonrpc": "2.0", "id": 99, "result": {}}

    @pytest.mark.asyncio
    async def test_line_over_limit_is_rejected_and_loop_continues(self, dispatcher):
        reader = asyncio.StreamReader(limit=64)
        _feed(reader, b'{"jsonrpc": "2.0", "id": 1, "method": "' + b"a" * 200 + b'"}\n', PING)
        responses = []

        await serve_lines(reader, dispatcher, write=responses.append)

        assert responses[0]["error"]["code"] == -32600
        assert responses[-1] == {"jsonrpc": "2.0", "id": 99, "result": {}}

    @pytest.mark.asyncio
    async def test_undecodable_bytes_are_a_parse_error(self, dispatcher):
        reader = asyncio.StreamReader()
        _feed(reader, b"\xff\xfe{\x80\n", PING)
        responses = []

        await serve_lines(reader, dispatcher, write=responses.append)

        assert [r.get("error", {}).get("code") for r in responses] == [-32700, None]
        assert responses[1]["id"] == 99

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_internal_error(self, dispatcher):
        reader = asyncio.StreamReader()
        _feed(reader, b'{"jsonrpc": "2.0", "id": 1, "method": "ping"}\n', PING)
        responses = []

        with patch("dropbox_mcp.server.handle_jsonrpc", new=AsyncMock(side_effect=[RuntimeError("boom"), {"id": 99}])):
            await serve_lines(reader, dispatcher, write=responses.append)

        assert responses[0]["error"]["code"] == -32603
        assert responses[1] == {"id": 99}

    @pytest.mark.asyncio
    async def test_eof_ends_the_loop_quietly(self, dispatcher):
        reader = asyncio.StreamReader()
        _feed(reader)
        responses = []

        await serve_lines(reader, dispatcher, write=responses.append)

        assert responses == []


class TestSSETransport:
    @pytest.mark.asyncio
    async def test_non_object_body_is_rejected(self, dispatcher):
        async with test_utils.TestClient(test_utils.TestServer(create_app(dispatcher))) as client:
            response = await client.post("/message", json=[{"jsonrpc": "2.0", "id": 1, "method": "ping"}])
            data = await response.json()

        assert response.status == 400
        assert data["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_malformed_body_is_parse_error(self, dispatcher):
        async with test_utils.TestClient(test_utils.TestServer(create_app(dispatcher))) as client:
            response = await client.post("/message", data="{oops", headers={"Content-Type": "application/json"})

        assert response.status == 400


    @pytest.mark.asyncio
    async def test_health(self, dispatcher):
        async with test_utils.TestClient(test_utils.TestServer(create_app(dispatcher))) as client:
            response = await client.get("/health")
            data = await response.json()

        assert response.status == 200
        assert data["status"] == "ok"
        assert data["tools"] == 7

    @pytest.mark.asyncio
    async def test_message_without_session(self, dispatcher):
        async with test_utils.TestClient(test_utils.TestServer(create_app(dispatcher))) as client:
            response = await client.post("/message", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})
            data = await response.json()

        assert data == {"jsonrpc": "2.0", "id": 1, "result": {}}

    @pytest.mark.asyncio
    async def test_unknown_session(self, dispatcher):
        async with test_utils.TestClient(test_utils.TestServer(create_app(dispatcher))) as client:
            response = await client.post("/message?sessionId=missing", json={"method": "ping"})

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_auth_token_required(self, dispatcher):
        async with test_utils.TestClient(test_utils.TestServer(create_app(dispatcher, auth_token="secret"))) as client:
            denied = await client.post("/message", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})
            allowed = await client.post(
                "/message",
                json={"jsonrpc": "2.0", "id": 1, "method": "ping"},
                headers={"Authorization": "Bearer secret"},
            )

        assert denied.status == 401
        assert allowed.status == 200


class TestMain:
    def test_missing_credentials_exit_with_status_1(self):
        with patch("dropbox_mcp.server.load_config", return_value=ServerConfig()):
            with pytest.raises(SystemExit) as exc_info:
                main([])
        assert exc_info.value.code == 1

    def test_stdio_is_the_default_transport(self, tmp_path):
        config = ServerConfig(app_key="k", app_secret="s", token_file=tmp_path / "tok")
        with patch("dropbox_mcp.server.load_config", return_value=config), \
                patch("dropbox_mcp.server.run_stdio", new=Mock()) as mock_run_stdio, \
                patch("dropbox_mcp.server.asyncio.run") as mock_asyncio_run:
            main([])

        mock_run_stdio.assert_called_once()
        mock_asyncio_run.assert_called_once()
