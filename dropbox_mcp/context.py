"""Wires the Dropbox components together from a ServerConfig."""

from dataclasses import dataclass
from typing import Optional

import httpx

from dropbox_mcp.auth import DropboxAuth
from dropbox_mcp.config import ServerConfig
from dropbox_mcp.http_client import DropboxHTTPClient
from dropbox_mcp.operations import DropboxFiles
from dropbox_mcp.token_store import TokenStore


@dataclass
class DropboxContext:
    config: ServerConfig
    store: TokenStore
    http: DropboxHTTPClient
    auth: DropboxAuth
    files: DropboxFiles


def create_context(
    config: ServerConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DropboxContext:
    """Build every component once; ``transport`` lets tests stub the Dropbox API."""
    store = TokenStore(config.token_file)
    http = DropboxHTTPClient(timeout=config.request_timeout, transport=transport)
    auth = DropboxAuth(config, http, store)
    return DropboxContext(
        config=config,
        store=store,
        http=http,
        auth=auth,
        files=DropboxFiles(auth, http),
    )
