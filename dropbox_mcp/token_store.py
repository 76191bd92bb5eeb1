"""Refresh token persistence in a single owner-only file."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from dropbox_mcp.errors import TokenStorageError

logger = logging.getLogger(__name__)

TOKEN_FILE_MODE = 0o600


class TokenStore:
    """Reads and writes one refresh token. Single writer, no locking."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        """Return the stored token (trimmed), or None when no token file exists."""
        try:
            return self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise TokenStorageError(f"Failed to read token file {self.path}: {e}") from e

    def save(self, token: str) -> None:
        """Create or truncate the token file and write the token, mode 0600."""
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, TOKEN_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token)
            # os.open only applies the mode to new files
            os.chmod(self.path, TOKEN_FILE_MODE)
        except OSError as e:
            raise TokenStorageError(f"Failed to write token file {self.path}: {e}") from e
        logger.info("Saved Dropbox refresh token to %s", self.path)
