"""Open the OAuth URL in a browser on the machine running the server."""

import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


async def open_browser(url: str) -> bool:
    """
    Launch the platform URL opener. Returns True if the opener exited cleanly.

    Never goes through a shell. On Windows nothing is launched; the URL has
    to be opened by hand.
    """
    if sys.platform == "win32":
        logger.warning(
            "Automatic browser open is not supported on Windows; please open this URL manually: %s",
            url,
        )
        return False

    opener = "open" if sys.platform == "darwin" else "xdg-open"
    try:
        process = await asyncio.create_subprocess_exec(
            opener,
            url,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        returncode = await process.wait()
    except OSError as e:
        logger.warning("Could not launch %s (%s). Please open this URL manually: %s", opener, e, url)
        return False

    if returncode != 0:
        logger.warning("%s exited with status %d. Please open this URL manually: %s", opener, returncode, url)
        return False
    return True
