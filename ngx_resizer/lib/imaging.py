"""Image header sniffing for PNG, GIF and JPEG.

Recovers pixel dimensions from the first bytes of a file without decoding
it, so a short byte range fetched over HTTP is enough.
"""

from __future__ import annotations

import struct

from ngx_resizer.lib.exceptions import IncompleteHeaderError, MalformedImageError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
JPEG_SOI = b"\xff\xd8"

# Baseline and progressive start-of-frame markers
JPEG_SOF_MARKERS = frozenset({0xC0, 0xC2})

# Bytes needed to read each format's dimensions
PNG_HEADER_BYTES = 24
GIF_HEADER_BYTES = 10
JPEG_HEADER_BYTES = 2048

Dimensions = tuple[int, int]


def detect_image_content_type(data: bytes) -> str | None:
    """Detect image content type from magic bytes.

    Returns ``None`` if the data does not match a known image signature.
    """
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == PNG_SIGNATURE:
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in GIF_SIGNATURES:
        return "image/gif"
    return None


def parse_png_dimensions(data: bytes) -> Dimensions | None:
    """Read width and height from the IHDR chunk of a PNG header."""
    if data[:8] != PNG_SIGNATURE or len(data) < PNG_HEADER_BYTES:
        return None
    width, height = struct.unpack(">II", data[16:24])
    return width, height


def parse_gif_dimensions(data: bytes) -> Dimensions | None:
    """Read the logical screen width and height of a GIF."""
    if data[:6] not in GIF_SIGNATURES or len(data) < GIF_HEADER_BYTES:
        return None
    width, height = struct.unpack("<HH", data[6:10])
    return width, height


def parse_jpeg_dimensions(data: bytes) -> Dimensions | None:
    """Walk the JPEG marker segments until a start-of-frame marker.

    The first segment after SOI (normally APP0/APP1) is skipped without
    inspecting its type. Each later segment is ``FF type length`` where the
    big-endian length counts itself but not the two marker bytes.

    Returns ``None`` for data that is not a JPEG or whose segment chain is
    broken. Raises :class:`IncompleteHeaderError` when the buffer ends before
    the frame header, which means a longer byte range is needed.
    """
    if data[:2] != JPEG_SOI:
        return None

    size = len(data)
    if size < 6:
        raise IncompleteHeaderError(size)

    (length,) = struct.unpack(">H", data[4:6])
    if length < 2:
        return None
    pos = 4 + length

    while True:
        if pos + 4 > size:
            raise IncompleteHeaderError(size)

        marker, segment_type, length = struct.unpack(">BBH", data[pos:pos + 4])
        if marker != 0xFF or length < 2:
            return None

        if segment_type not in JPEG_SOF_MARKERS:
            pos += length + 2
            continue

        # FF Cx, length(2), precision(1), then height(2) and width(2)
        pos += 5
        if pos + 4 > size:
            raise IncompleteHeaderError(size)
        height, width = struct.unpack(">HH", data[pos:pos + 4])
        return width, height


def header_range_for(extension: str) -> int:
    """Number of leading bytes to fetch for a file extension."""
    extension = extension.lower()
    if extension == "png":
        return PNG_HEADER_BYTES
    if extension == "gif":
        return GIF_HEADER_BYTES
    return JPEG_HEADER_BYTES


def parse_image_dimensions(data: bytes, extension: str = "") -> Dimensions | None:
    """Parse dimensions using the parser for ``extension``.

    Unknown extensions are treated as JPEG candidates. When the data does not
    match the expected format the signature is sniffed instead, so a
    misnamed file still resolves and unsupported data returns ``None``.
    ``IncompleteHeaderError`` from the JPEG parser propagates.
    """
    extension = extension.lower()
    if extension == "png":
        parsed = parse_png_dimensions(data)
    elif extension == "gif":
        parsed = parse_gif_dimensions(data)
    else:
        parsed = parse_jpeg_dimensions(data)

    if parsed is not None:
        return parsed

    content_type = detect_image_content_type(data)
    if content_type == "image/png" and extension != "png":
        return parse_png_dimensions(data)
    if content_type == "image/gif" and extension != "gif":
        return parse_gif_dimensions(data)
    if content_type == "image/jpeg" and extension in ("png", "gif"):
        return parse_jpeg_dimensions(data)
    return None


def require_image_dimensions(data: bytes, extension: str = "") -> Dimensions:
    """Like :func:`parse_image_dimensions` but raise on unrecognized data."""
    dimensions = parse_image_dimensions(data, extension)
    if dimensions is None:
        content_type = detect_image_content_type(data) or "unknown data"
        raise MalformedImageError(f"Cannot read dimensions from {content_type}")
    return dimensions
