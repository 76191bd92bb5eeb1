"""
Minimal HTTPS client for the Dropbox Web API.

One request per connection: each call opens its own httpx.AsyncClient and
closes it when the response has been read. No retries, no redirects.
"""

import logging
from typing import Any, Dict, Optional, Union

import httpx

from dropbox_mcp.config import DEFAULT_TIMEOUT
from dropbox_mcp.errors import DropboxAPIError, NetworkError, RequestTimeoutError

logger = logging.getLogger(__name__)

Body = Union[str, bytes]


class DropboxHTTPClient:
    """Issue a single HTTPS request and classify the outcome by status code."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def request(
        self,
        host: str,
        path: str,
        method: str,
        headers: Dict[str, str],
        body: Optional[Body] = None,
        raw: bool = False,
    ) -> Any:
        """
        Send ``method https://host/path`` and return the response payload.

        2xx responses are decoded as JSON; a body that is not JSON is returned
        as text. With ``raw=True`` the text is always returned as is.

        Raises:
            RequestTimeoutError: no progress within the timeout
            NetworkError: the request never got a response
            DropboxAPIError: the response status was outside 2xx
        """
        url = f"https://{host}{path}"
        content = body.encode("utf-8") if isinstance(body, str) else body

        logger.debug("%s %s", method, url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                response = await client.request(method, url, headers=headers, content=content)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Request timed out", cause=e) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error contacting {host}: {e}", cause=e) from e

        text = response.text
        if not 200 <= response.status_code < 300:
            logger.warning("%s %s failed with status %d", method, url, response.status_code)
            raise DropboxAPIError(response.status_code, text)

        if raw:
            return text
        try:
            return response.json()
        except ValueError:
            return text
