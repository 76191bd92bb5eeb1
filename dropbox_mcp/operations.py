"""
Dropbox file operations: download, upload, list_folder, plus note filenames.

Each network operation fetches a fresh access token and then makes exactly
one call to the Dropbox API.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from dropbox_mcp.auth import API_HOST, DropboxAuth
from dropbox_mcp.http_client import DropboxHTTPClient
from dropbox_mcp.models import DropboxEntry, FileMetadata

logger = logging.getLogger(__name__)

CONTENT_HOST = "content.dropboxapi.com"
DOWNLOAD_PATH = "/2/files/download"
UPLOAD_PATH = "/2/files/upload"
LIST_FOLDER_PATH = "/2/files/list_folder"

_NON_HEADER_SAFE_RE = re.compile("[\u007f-\U0010ffff]")
_UNSAFE_FILENAME_RE = re.compile(r'[/\\?%*:|"<>]')


def _escape_char(match: "re.Match[str]") -> str:
    code = ord(match.group(0))
    if code > 0xFFFF:
        # UTF-16 surrogate pair, as JSON expects
        code -= 0x10000
        return "\\u%04x\\u%04x" % (0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF))
    return "\\u%04x" % code


def escape_non_ascii(value: str) -> str:
    """Replace DEL and everything above it with ``\\uXXXX`` escapes."""
    return _NON_HEADER_SAFE_RE.sub(_escape_char, value)


def dropbox_api_arg(arg: Dict[str, Any]) -> str:
    """Encode a Dropbox-API-Arg header value: compact JSON, ASCII only."""
    return escape_non_ascii(json.dumps(arg, ensure_ascii=False, separators=(",", ":")))


def generate_file_name(title: str, now: Optional[datetime] = None) -> str:
    """
    Build a timestamped note filename: ``YYYYMMDDHHmm-<title>.md``.

    Uses local wall-clock time. Path and wildcard characters in the title
    become ``-``; nothing else is changed.
    """
    now = now or datetime.now()
    sanitized = _UNSAFE_FILENAME_RE.sub("-", title)
    return f"{now.strftime('%Y%m%d%H%M')}-{sanitized}.md"


class DropboxFiles:
    """The Dropbox API calls behind the file tools."""

    def __init__(self, auth: DropboxAuth, http: DropboxHTTPClient):
        self.auth = auth
        self.http = http

    async def download(self, file_path: str) -> str:
        """Return the file's content as text."""
        access_token = await self.auth.get_access_token()
        logger.info("Downloading %s", file_path)
        return await self.http.request(
            CONTENT_HOST,
            DOWNLOAD_PATH,
            "POST",
            {
                "Authorization": f"Bearer {access_token}",
                "Dropbox-API-Arg": dropbox_api_arg({"path": file_path}),
                "Content-Type": "text/plain; charset=utf-8",
            },
            raw=True,
        )

    async def upload(self, file_path: str, content: str) -> FileMetadata:
        """Upload without overwriting; Dropbox renames on conflict."""
        access_token = await self.auth.get_access_token()
        logger.info("Uploading %d characters to %s", len(content), file_path)
        result = await self.http.request(
            CONTENT_HOST,
            UPLOAD_PATH,
            "POST",
            {
                "Authorization": f"Bearer {access_token}",
                "Dropbox-API-Arg": dropbox_api_arg({
                    "path": file_path,
                    "mode": "add",
                    "autorename": True,
                    "mute": False,
                }),
                "Content-Type": "application/octet-stream",
            },
            content,
        )
        return FileMetadata.from_api(result if isinstance(result, dict) else {})

    async def list_folder(self, folder_path: str) -> List[DropboxEntry]:
        """
        List a folder's direct children.

        Only the first page is returned; ``has_more``/``cursor`` are not followed.
        """
        access_token = await self.auth.get_access_token()
        # Dropbox expects empty string for root, not "/"
        path = "" if folder_path == "/" else folder_path
        body = json.dumps({
            "path": path,
            "recursive": False,
            "include_media_info": False,
            "include_deleted": False,
            "include_has_explicit_shared_members": False,
        })
        result = await self.http.request(
            API_HOST,
            LIST_FOLDER_PATH,
            "POST",
            {
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            body,
        )
        data = result if isinstance(result, dict) else {}
        if data.get("has_more"):
            logger.info("Listing of %r has more entries; returning the first page only", folder_path or "/")
        return [DropboxEntry.from_api(entry) for entry in data.get("entries", [])]
