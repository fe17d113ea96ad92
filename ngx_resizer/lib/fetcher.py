"""Discover the dimensions of a remote image from its first bytes."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from urllib.parse import urlsplit

import httpx

from ngx_resizer.lib.exceptions import DimensionsUnavailableError, IncompleteHeaderError
from ngx_resizer.lib.imaging import Dimensions, header_range_for, parse_image_dimensions
from ngx_resizer.lib.observability import span

logger = logging.getLogger(__name__)

# Some origins refuse clients that do not look like a browser
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.12; rv:55.0) Gecko/20100101 Firefox/55.0"
)
MAX_RANGE = 32768
ACCEPTED_STATUS = frozenset({200, 206})


def url_extension(url: str) -> str:
    """Lowercase file extension of the URL path, without the dot."""
    return PurePosixPath(urlsplit(url).path).suffix[1:].lower()


class DimensionFetcher:
    """Fetch a byte range of an image and parse its header.

    PNG and GIF headers fit in their first 24 and 10 bytes. Anything else is
    treated as JPEG and fetched 2 KiB at a time; a JPEG whose frame header
    lies beyond that is retried once with ``max_range`` bytes.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        max_range: int = MAX_RANGE,
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self.user_agent = user_agent
        self.max_range = max_range
        self.timeout = timeout

    async def fetch(self, url: str) -> Dimensions | None:
        """Return ``(width, height)``, or ``None`` when it cannot be determined."""
        if not url:
            return None

        with span("resizer.fetch_dimensions", url=url):
            if self._client is not None:
                return await self._discover(self._client, url)
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                return await self._discover(client, url)

    async def require(self, url: str) -> Dimensions:
        """Like :meth:`fetch` but raise :class:`DimensionsUnavailableError`."""
        dimensions = await self.fetch(url)
        if dimensions is None:
            raise DimensionsUnavailableError(url, "header not readable")
        return dimensions

    async def _discover(self, client: httpx.AsyncClient, url: str) -> Dimensions | None:
        extension = url_extension(url)
        byte_range = header_range_for(extension)

        while True:
            data = await self._get_range(client, url, byte_range)
            if data is None:
                return None

            try:
                return parse_image_dimensions(data, extension)
            except IncompleteHeaderError:
                if byte_range >= self.max_range:
                    logger.warning(
                        "No JPEG frame header in the first %d bytes of %s", byte_range, url
                    )
                    return None
                logger.debug("Retrying %s with %d bytes", url, self.max_range)
                byte_range = self.max_range

    async def _get_range(
        self,
        client: httpx.AsyncClient,
        url: str,
        byte_range: int,
    ) -> bytes | None:
        headers = {
            "Accept": "*/*",
            "Range": f"bytes=0-{byte_range - 1}",
            "User-Agent": self.user_agent,
        }
        try:
            async with client.stream("GET", url, headers=headers) as response:
                if response.status_code not in ACCEPTED_STATUS:
                    logger.warning(
                        "Unexpected status %d fetching %s", response.status_code, url
                    )
                    return None

                # Servers that ignore Range send the whole file
                data = b""
                async for chunk in response.aiter_bytes():
                    data += chunk
                    if len(data) >= byte_range:
                        break
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.warning("Failed to fetch %s", url, exc_info=True)
            return None

        if not data:
            logger.warning("Empty response fetching %s", url)
            return None
        return data[:byte_range]
