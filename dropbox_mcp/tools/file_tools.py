"""
Dropbox file tools: download, upload, list folder, and note filenames.

Export:
    TOOLS          - Tool definition dicts (for tools/list)
    build_handlers - Handler functions bound to a DropboxContext
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Dict

from dropbox_mcp.context import DropboxContext
from dropbox_mcp.operations import generate_file_name
from dropbox_mcp.tools.arguments import require_str


# ===========================================================================
# Tool Definitions
# ===========================================================================

DOWNLOAD_TOOL = {
    "name": "dropbox_download",
    "description": "Download a file from Dropbox",
    "inputSchema": {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "The path to the file in Dropbox (e.g., /path/to/file.txt)",
            },
        },
        "required": ["filePath"],
    },
}

UPLOAD_TOOL = {
    "name": "dropbox_upload",
    "description": "Upload a file to Dropbox",
    "inputSchema": {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "The destination path in Dropbox (e.g., /path/to/file.txt)",
            },
            "content": {
                "type": "string",
                "description": "The content to upload",
            },
        },
        "required": ["filePath", "content"],
    },
}

GENERATE_FILENAME_TOOL = {
    "name": "dropbox_generate_filename",
    "description": "Generate a filename with timestamp prefix for Obsidian notes",
    "inputSchema": {
        "type": "object",
        "properties": {
            "title": {
                "type": "string",
                "description": "The title for the note",
            },
        },
        "required": ["title"],
    },
}

LIST_FOLDER_TOOL = {
    "name": "dropbox_list_folder",
    "description": "List files and folders in a Dropbox directory (first page of results only)",
    "inputSchema": {
        "type": "object",
        "properties": {
            "folderPath": {
                "type": "string",
                "description": "The path to the folder in Dropbox (e.g., /path/to/folder). Use / for root.",
            },
        },
        "required": ["folderPath"],
    },
}


# ===========================================================================
# Inputs
# ===========================================================================

@dataclass(frozen=True)
class DownloadInput:
    file_path: str

    @classmethod
    def from_args(cls, arguments: Dict[str, Any]) -> "DownloadInput":
        return cls(file_path=require_str(arguments, "filePath"))


@dataclass(frozen=True)
class UploadInput:
    file_path: str
    content: str

    @classmethod
    def from_args(cls, arguments: Dict[str, Any]) -> "UploadInput":
        return cls(
            file_path=require_str(arguments, "filePath"),
            content=require_str(arguments, "content"),
        )


@dataclass(frozen=True)
class GenerateFilenameInput:
    title: str

    @classmethod
    def from_args(cls, arguments: Dict[str, Any]) -> "GenerateFilenameInput":
        return cls(title=require_str(arguments, "title"))


@dataclass(frozen=True)
class ListFolderInput:
    folder_path: str

    @classmethod
    def from_args(cls, arguments: Dict[str, Any]) -> "ListFolderInput":
        return cls(folder_path=require_str(arguments, "folderPath"))


# ===========================================================================
# Handlers
# ===========================================================================

def build_handlers(ctx: DropboxContext) -> Dict[str, Callable[..., Coroutine]]:

    async def handle_download(arguments: Dict[str, Any]) -> str:
        params = DownloadInput.from_args(arguments)
        return await ctx.files.download(params.file_path)

    async def handle_upload(arguments: Dict[str, Any]) -> str:
        params = UploadInput.from_args(arguments)
        metadata = await ctx.files.upload(params.file_path, params.content)
        return json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False)

    async def handle_generate_filename(arguments: Dict[str, Any]) -> str:
        params = GenerateFilenameInput.from_args(arguments)
        return generate_file_name(params.title)

    async def handle_list_folder(arguments: Dict[str, Any]) -> str:
        params = ListFolderInput.from_args(arguments)
        entries = await ctx.files.list_folder(params.folder_path)
        return json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False)

    return {
        "dropbox_download": handle_download,
        "dropbox_upload": handle_upload,
        "dropbox_generate_filename": handle_generate_filename,
        "dropbox_list_folder": handle_list_folder,
    }


TOOLS = [DOWNLOAD_TOOL, UPLOAD_TOOL, GENERATE_FILENAME_TOOL, LIST_FOLDER_TOOL]
