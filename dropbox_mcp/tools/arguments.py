"""Typed parsing of raw tool arguments."""

from typing import Any, Dict, Optional

from dropbox_mcp.errors import ToolArgumentError


def require_str(arguments: Dict[str, Any], name: str) -> str:
    value = arguments.get(name)
    if value is None:
        raise ToolArgumentError(f"Missing required argument: {name}")
    if not isinstance(value, str):
        raise ToolArgumentError(f"Argument '{name}' must be a string")
    return value


def optional_bool(arguments: Dict[str, Any], name: str, default: Optional[bool] = None) -> Optional[bool]:
    value = arguments.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ToolArgumentError(f"Argument '{name}' must be a boolean")
    return value
