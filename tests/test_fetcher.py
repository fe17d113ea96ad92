"""Tests for remote dimension discovery over HTTP byte ranges."""

import httpx
import pytest

from ngx_resizer.lib.exceptions import DimensionsUnavailableError
from ngx_resizer.lib.fetcher import DEFAULT_USER_AGENT, MAX_RANGE, DimensionFetcher, url_extension

from test_imaging import gif_header, jpeg_header, png_header


def range_server(body: bytes, status: int = 206, honour_range: bool = True):
    """A MockTransport serving ``body`` and recording every request."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        content = body
        if honour_range:
            _, _, spec = request.headers["Range"].partition("=")
            start, _, end = spec.partition("-")
            content = body[int(start):int(end) + 1]
        return httpx.Response(status, content=content)

    return httpx.MockTransport(handler), requests


def fetcher_for(transport: httpx.MockTransport) -> DimensionFetcher:
    return DimensionFetcher(httpx.AsyncClient(transport=transport))


class TestUrlExtension:
    def test_lowercases_and_ignores_query(self):
        assert url_extension("http://x.test/a/b.PNG?ver=2") == "png"

    def test_no_extension(self):
        assert url_extension("http://x.test/image") == ""


class TestDimensionFetcher:
    @pytest.mark.asyncio
    async def test_png_requests_24_bytes(self):
        transport, requests = range_server(png_header(640, 480) + b"\x00" * 100)

        result = await fetcher_for(transport).fetch("http://x.test/a.png")

        assert result == (640, 480)
        assert len(requests) == 1
        assert requests[0].headers["Range"] == "bytes=0-23"
        assert requests[0].headers["User-Agent"] == DEFAULT_USER_AGENT
        assert requests[0].headers["Accept"] == "*/*"

    @pytest.mark.asyncio
    async def test_gif_requests_10_bytes(self):
        transport, requests = range_server(gif_header(300, 200) + b"\x00" * 100)

        result = await fetcher_for(transport).fetch("http://x.test/a.gif")

        assert result == (300, 200)
        assert requests[0].headers["Range"] == "bytes=0-9"

    @pytest.mark.asyncio
    async def test_jpeg_within_first_range(self):
        transport, requests = range_server(jpeg_header(1024, 768))

        result = await fetcher_for(transport).fetch("http://x.test/photo.jpg")

        assert result == (1024, 768)
        assert [r.headers["Range"] for r in requests] == ["bytes=0-2047"]

    @pytest.mark.asyncio
    async def test_jpeg_retries_with_larger_range(self):
        transport, requests = range_server(jpeg_header(640, 480, app_length=6000))

        result = await fetcher_for(transport).fetch("http://x.test/photo.jpg")

        assert result == (640, 480)
        assert [r.headers["Range"] for r in requests] == [
            "bytes=0-2047",
            f"bytes=0-{MAX_RANGE - 1}",
        ]

    @pytest.mark.asyncio
    async def test_jpeg_retries_only_once(self):
        transport, requests = range_server(jpeg_header(640, 480, app_length=40000))

        result = await fetcher_for(transport).fetch("http://x.test/photo.jpg")

        assert result is None
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_server_ignoring_range(self):
        body = jpeg_header(50, 40) + b"\x00" * 5000
        transport, _ = range_server(body, status=200, honour_range=False)

        assert await fetcher_for(transport).fetch("http://x.test/a.jpeg") == (50, 40)

    @pytest.mark.asyncio
    async def test_unknown_extension_sniffs_signature(self):
        transport, _ = range_server(png_header(12, 34) + b"\x00" * 4000)

        assert await fetcher_for(transport).fetch("http://x.test/image?id=4") == (12, 34)

    @pytest.mark.asyncio
    async def test_unsupported_format(self):
        transport, _ = range_server(b"<html>not an image</html>")

        assert await fetcher_for(transport).fetch("http://x.test/page.jpg") is None

    @pytest.mark.asyncio
    async def test_error_status(self):
        transport, _ = range_server(png_header(1, 1), status=404)

        assert await fetcher_for(transport).fetch("http://x.test/a.png") is None

    @pytest.mark.asyncio
    async def test_empty_body(self):
        transport, _ = range_server(b"")

        assert await fetcher_for(transport).fetch("http://x.test/a.png") is None

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = fetcher_for(httpx.MockTransport(handler))

        assert await fetcher.fetch("http://x.test/a.png") is None

    @pytest.mark.asyncio
    async def test_empty_url(self):
        assert await DimensionFetcher().fetch("") is None

    @pytest.mark.asyncio
    async def test_custom_user_agent(self):
        transport, requests = range_server(png_header(1, 1))
        fetcher = DimensionFetcher(httpx.AsyncClient(transport=transport), user_agent="probe/1.0")

        await fetcher.fetch("http://x.test/a.png")

        assert requests[0].headers["User-Agent"] == "probe/1.0"

    @pytest.mark.asyncio
    async def test_require_raises(self):
        transport, _ = range_server(b"", status=500)

        with pytest.raises(DimensionsUnavailableError) as exc_info:
            await fetcher_for(transport).require("http://x.test/a.png")

        assert exc_info.value.url == "http://x.test/a.png"

    @pytest.mark.asyncio
    async def test_require_returns_dimensions(self):
        transport, _ = range_server(gif_header(2, 3))

        assert await fetcher_for(transport).require("http://x.test/a.gif") == (2, 3)
