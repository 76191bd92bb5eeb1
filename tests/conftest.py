"""Shared test fixtures: a stubbed Dropbox API and an isolated config."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest

from dropbox_mcp.config import ServerConfig
from dropbox_mcp.context import create_context


class DropboxStub:
    """
    Records requests and answers them from a (host, path) routing table.

    Token requests succeed by default so operations can be tested without
    repeating the refresh step in every test.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.route("api.dropboxapi.com", "/oauth2/token", json_body={
            "access_token": "access-123",
            "token_type": "bearer",
            "expires_in": 14400,
        })

    def route(
        self,
        host: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        text: Optional[str] = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if json_body is not None:
                return httpx.Response(status, json=json_body)
            return httpx.Response(status, text=text or "")

        self._routes[(host, path)] = respond

    def route_error(self, host: str, path: str, exc_factory: Callable[[httpx.Request], Exception]) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            raise exc_factory(request)

        self._routes[(host, path)] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        respond = self._routes.get((request.url.host, request.url.path))
        if respond is None:
            return httpx.Response(404, text=f"no route for {request.url}")
        return respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, host: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host == host and (path is None or r.url.path == path)
        ]


def form_fields(request: httpx.Request) -> Dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}


def json_body(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def dropbox_stub():
    return DropboxStub()


@pytest.fixture
def token_file(tmp_path):
    return tmp_path / "dropbox_token"


@pytest.fixture
def config(token_file):
    return ServerConfig(app_key="test_key", app_secret="test_secret", token_file=token_file)


@pytest.fixture
def ctx(config, dropbox_stub):
    return create_context(config, transport=dropbox_stub.transport)
