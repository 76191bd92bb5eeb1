"""Value types returned by the Dropbox operations."""

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class FileMetadata:
    name: str
    path_lower: str
    path_display: str
    id: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "FileMetadata":
        return cls(
            name=data.get("name", ""),
            path_lower=data.get("path_lower", ""),
            path_display=data.get("path_display", ""),
            id=data.get("id", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DropboxEntry:
    """A file or folder from list_folder. ``tag`` is Dropbox's ``.tag``."""

    tag: str  # "file" | "folder"
    name: str
    path_lower: str
    path_display: str
    id: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DropboxEntry":
        return cls(
            tag=data.get(".tag", ""),
            name=data.get("name", ""),
            path_lower=data.get("path_lower", ""),
            path_display=data.get("path_display", ""),
            id=data.get("id", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            ".tag": self.tag,
            "name": self.name,
            "path_lower": self.path_lower,
            "path_display": self.path_display,
            "id": self.id,
        }


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
