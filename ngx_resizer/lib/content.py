"""Rewrite ``<img>`` tags in HTML to go through the resizing proxy.

Each image (optionally wrapped in a link) is sized from its ``width`` and
``height`` attributes, its ``size-<name>`` class, its ``wp-image-<id>``
attachment and the theme's content width, then its URL is replaced with a
proxy URL and its dimension attributes with the resolved values.

Scanning is a single regular expression pass in document order. The
original tag text is replaced wherever it occurs, so identical tags are
rewritten identically. Running the rewriter twice is not idempotent.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlsplit

from ngx_resizer.lib.secure_link import ResizedURLBuilder, strip_scheme
from ngx_resizer.lib.sizes import (
    FULL,
    Crop,
    SizeDefinition,
    resize_dimensions,
    round_half_up,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("gif", "jpg", "jpeg", "png")
_EXTENSIONS = "|".join(IMAGE_EXTENSIONS)

IMAGE_PATTERN = re.compile(
    r"""(?:<a[^>]+?href=["'](?P<link_url>[^\s]+?)["'][^>]*?>\s*)?"""
    r"""(?P<img_tag><img[^>]*?\s+?src=["'](?P<img_url>[^\s]+?)["'].*?>)"""
    r"""(?:\s*</a>)?""",
    re.IGNORECASE | re.DOTALL,
)
WIDTH_PATTERN = re.compile(r"""width=["']?([\d%]+)["']?""", re.IGNORECASE)
HEIGHT_PATTERN = re.compile(r"""height=["']?([\d%]+)["']?""", re.IGNORECASE)
SIZE_CLASS_PATTERN = re.compile(
    r"""class=["']?[^"']*size-([^"'\s]+)[^"']*["']?""", re.IGNORECASE
)
ATTACHMENT_CLASS_PATTERN = re.compile(
    r"""class=["']?[^"']*wp-image-(\d+)[^"']*["']?""", re.IGNORECASE
)
WIDTH_ATTR_PATTERN = re.compile(r"""(?<=\s)(width=["']?)[\d%]+(["']?)\s?""", re.IGNORECASE)
HEIGHT_ATTR_PATTERN = re.compile(r"""(?<=\s)(height=["']?)[\d%]+(["']?)\s?""", re.IGNORECASE)
FILENAME_DIMENSIONS_PATTERN = re.compile(
    rf"-(\d+)x(\d+)\.(?:{_EXTENSIONS})$", re.IGNORECASE
)
DIMENSION_SUFFIX_PATTERN = re.compile(rf"(-\d+x\d+)\.(?:{_EXTENSIONS})$", re.IGNORECASE)


class FullSizeImage(Protocol):
    """The original upload behind an attachment: URL and natural size."""

    url: str
    width: int
    height: int


@dataclass(frozen=True)
class ImageTagMatch:
    full_match: str
    link_url: str | None
    img_tag: str
    img_url: str


def parse_images_from_html(content: str) -> list[ImageTagMatch]:
    """Find every image, with its wrapping link if any, in document order."""
    return [
        ImageTagMatch(
            full_match=match.group(0),
            link_url=match.group("link_url"),
            img_tag=match.group("img_tag"),
            img_url=match.group("img_url"),
        )
        for match in IMAGE_PATTERN.finditer(content)
    ]


def find_attachment_ids(content: str) -> list[int]:
    """Attachment ids named by ``wp-image-<id>`` classes, in order, unique."""
    ids: dict[int, None] = {}
    for image in parse_images_from_html(content):
        match = ATTACHMENT_CLASS_PATTERN.search(image.img_tag)
        if match:
            ids[int(match.group(1))] = None
    return list(ids)


def validate_image_url(url: str) -> bool:
    """Accept only absolute URLs with both a host and a path."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.hostname) and bool(parts.path)


def parse_dimensions_from_filename(url: str) -> tuple[int | None, int | None]:
    """Read the ``-WIDTHxHEIGHT`` suffix the CMS appends to resized copies."""
    match = FILENAME_DIMENSIONS_PATTERN.search(url)
    if match:
        width, height = int(match.group(1)), int(match.group(2))
        if width and height:
            return width, height
    return None, None


def _is_percent(value: str | int | None) -> bool:
    return isinstance(value, str) and "%" in value


def _as_int(value: str | int) -> int:
    return value if isinstance(value, int) else int(value)


class ContentRewriter:
    """Rewrite image tags in post content through the resizing proxy."""

    def __init__(
        self,
        builder: ResizedURLBuilder,
        registry: Mapping[str, SizeDefinition],
        upload_dir: Path | None = None,
        content_width: int | None = None,
    ) -> None:
        self.builder = builder
        self.registry = registry
        self.upload_dir = upload_dir
        self.content_width = content_width

    def strip_image_dimensions_maybe(self, src: str) -> str:
        """Point a local resized copy back at its original upload.

        The ``-WxH`` suffix is only removed when the original file exists in
        the upload directory.
        """
        if self.upload_dir is None or not self.builder.image_is_local(src):
            return src

        match = DIMENSION_SUFFIX_PATTERN.search(src)
        if not match:
            return src

        stripped = src.replace(match.group(1), "")
        base = strip_scheme(self.builder.upload_base_url)
        relative = strip_scheme(stripped)
        index = relative.find(base)
        file_path = relative[index + len(base):].lstrip("/")

        if file_path and (self.upload_dir / file_path).is_file():
            return stripped
        return src

    def rewrite(
        self,
        content: str,
        content_width: int | None = None,
        attachments: Mapping[int, FullSizeImage] | None = None,
    ) -> str:
        """Rewrite every image in ``content``.

        Args:
            content: HTML to filter
            content_width: Maximum display width; defaults to the rewriter's
            attachments: Full-size images of local attachments by id

        Returns:
            The HTML with image URLs and dimension attributes replaced
        """
        images = parse_images_from_html(content)
        if not images:
            return content

        if content_width is None:
            content_width = self.content_width
        attachments = attachments or {}

        for image in images:
            new_tag = self._rewrite_image(image, content_width, attachments)
            if new_tag is not None:
                content = content.replace(image.full_match, new_tag)

        return content

    def _rewrite_image(
        self,
        image: ImageTagMatch,
        content_width: int | None,
        attachments: Mapping[int, FullSizeImage],
    ) -> str | None:
        src = src_orig = image.img_url
        tag = image.img_tag

        if not validate_image_url(src):
            logger.debug("Skipping image with invalid URL %s", src)
            return None

        crop: Crop | None = None
        fullsize_url = False

        width: str | int | None = None
        height: str | int | None = None
        if match := WIDTH_PATTERN.search(tag):
            width = match.group(1)
        if match := HEIGHT_PATTERN.search(tag):
            height = match.group(1)

        # A relative width and height cannot both be honoured
        if _is_percent(width) and _is_percent(height):
            width = height = None

        size_name = None
        if match := SIZE_CLASS_PATTERN.search(tag):
            size_name = match.group(1)
            definition = self.registry.get(size_name)
            if width is None and height is None and size_name != FULL and definition:
                width, height, crop = definition.width, definition.height, definition.crop

        match = ATTACHMENT_CLASS_PATTERN.search(tag)
        if match and self.builder.image_is_local(src):
            attachment = attachments.get(int(match.group(1)))
            if attachment is not None:
                src = attachment.url
                fullsize_url = True

                # Editor markup scales the preview; the registered box wins,
                # fitted to the original so the aspect ratio survives
                definition = self.registry.get(size_name) if size_name != FULL else None
                if definition is not None and (definition.width or definition.height):
                    crop = definition.crop
                    box = resize_dimensions(
                        attachment.width,
                        attachment.height,
                        definition.width,
                        definition.height,
                        definition.crop,
                    )
                    if box is not None:
                        width, height = box.width, box.height
                    else:
                        width, height = definition.width, definition.height

                # Never exceed the natural size of the original
                if width is not None and not _is_percent(width):
                    width = min(_as_int(width), attachment.width)
                if height is not None and not _is_percent(height):
                    height = min(_as_int(height), attachment.height)

                if width is None and height is None:
                    width, height = attachment.width, attachment.height
                elif size_name and size_name in self.registry:
                    crop = self.registry[size_name].crop

        if width is not None and not _is_percent(width) and content_width:
            width = _as_int(width)
            if width > content_width:
                if height is not None and not _is_percent(height):
                    height = round_half_up(content_width * _as_int(height) / width)
                width = content_width

        # Without a width, fill the content area and let the height follow
        if width is None and content_width:
            width = content_width
            height = None

        if not fullsize_url:
            src = self.strip_image_dimensions_maybe(src)

        new_url = self.builder.build(
            src,
            0 if width is None or _is_percent(width) else width,
            0 if height is None or _is_percent(height) else height,
            crop,
        )
        new_tag = image.full_match.replace(src_orig, new_url)

        if width is not None and not _is_percent(width):
            new_tag = WIDTH_ATTR_PATTERN.sub(rf"\g<1>{_as_int(width)}\g<2> ", new_tag)
        if height is not None and not _is_percent(height):
            new_tag = HEIGHT_ATTR_PATTERN.sub(rf"\g<1>{_as_int(height)}\g<2> ", new_tag)

        return new_tag
