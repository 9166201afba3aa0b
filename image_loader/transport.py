"""
Image Transport

Fetches raw image bytes over HTTP. The loader only needs a one-shot GET;
no retries and no custom timeout unless one is configured.
"""

import logging
from typing import Dict, Optional, Protocol

import httpx

from .constants import LOG_URL_CHARS
from .errors import ImageFetchError, InvalidImageURLError

logger = logging.getLogger(__name__)


class ImageTransport(Protocol):
    """Byte-fetch-by-URL capability used on a cache miss."""

    async def fetch(self, url: str) -> bytes:
        """Return the response body, or raise ImageFetchError."""
        ...

    async def aclose(self) -> None:
        ...


class HttpxImageTransport:
    """
    Fetches images with httpx.

    A fresh AsyncClient is opened per request, so one transport can serve
    coroutines running on different event loops.

    Usage:
        transport = HttpxImageTransport()
        data = await transport.fetch("https://example.com/image.png")
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Request timeout in seconds. None keeps the httpx default.
            headers: Extra request headers
            follow_redirects: Follow 3xx responses
            transport: Custom httpx transport (e.g. httpx.MockTransport in tests)
        """
        self.timeout = timeout
        self.headers = headers or {}
        self.follow_redirects = follow_redirects
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        kwargs = {
            "follow_redirects": self.follow_redirects,
            "headers": self.headers,
            "transport": self._transport,
        }
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return httpx.AsyncClient(**kwargs)

    async def fetch(self, url: str) -> bytes:
        """
        Download the body of a URL.

        Raises:
            ImageFetchError: On timeout, connection failure or non-2xx status.
        """
        logger.info(f"[ImageTransport] Fetching: {url[:LOG_URL_CHARS]}...")
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            logger.error(f"[ImageTransport] Timeout: {url[:LOG_URL_CHARS]}...")
            raise ImageFetchError("Image fetch timeout", url) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"[ImageTransport] HTTP error {status}: {url[:LOG_URL_CHARS]}...")
            raise ImageFetchError(f"Failed to fetch image: {status}", url, status_code=status) from e
        except httpx.InvalidURL as e:
            logger.error(f"[ImageTransport] Invalid URL: {url[:LOG_URL_CHARS]}...")
            raise InvalidImageURLError(f"Invalid URL: {e}", url) from e
        except httpx.HTTPError as e:
            logger.error(f"[ImageTransport] Fetch error: {e}")
            raise ImageFetchError("Failed to fetch image", url) from e

    async def aclose(self) -> None:
        pass
