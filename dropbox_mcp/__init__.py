"""Dropbox MCP server: Dropbox file tools for AI assistant hosts."""

__version__ = "1.0.0"
