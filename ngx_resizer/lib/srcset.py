"""Responsive image ``srcset`` and ``sizes`` rewriting."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from ngx_resizer.lib.content import parse_dimensions_from_filename, validate_image_url
from ngx_resizer.lib.secure_link import ResizedURLBuilder

# Assumed layout width when the theme declares none
DEFAULT_CONTENT_WIDTH = 1000


@dataclass(frozen=True)
class SrcsetSource:
    """One ``srcset`` candidate: URL plus a ``w`` or ``x`` descriptor."""

    url: str
    descriptor: str
    value: int | float


def rewrite_srcset(
    sources: Sequence[SrcsetSource],
    builder: ResizedURLBuilder,
    strip: Callable[[str], str] | None = None,
    attachment_url: str | None = None,
) -> list[SrcsetSource]:
    """Point every candidate at a cropped proxy rendition.

    Width and height come from the ``-WxH`` filename suffix. For ``w``
    descriptors the declared width wins when the suffix gave no height or
    disagrees with it. The proxy always receives the original: the
    attachment's full-size URL when known, otherwise the candidate URL with
    its suffix stripped by ``strip``.
    """
    rewritten = []
    for source in sources:
        if not validate_image_url(source.url):
            rewritten.append(source)
            continue

        width, height = parse_dimensions_from_filename(source.url)

        if attachment_url:
            url = attachment_url
        elif strip is not None:
            url = strip(source.url)
        else:
            url = source.url

        if source.descriptor == "w" and (not height or source.value != width):
            width = int(source.value)

        rewritten.append(replace(source, url=builder.build(url, width, height, crop=True)))
    return rewritten


def rewrite_sizes(
    sizes: str,
    size: Any,
    content_width: int | None = None,
    in_content: bool = True,
) -> str:
    """Cap the ``sizes`` attribute at the content width.

    Only applies while post content is being filtered. Images narrower than
    the content area keep their own ``sizes`` value.
    """
    if not in_content:
        return sizes

    content_width = content_width or DEFAULT_CONTENT_WIDTH

    if isinstance(size, (list, tuple)) and (size[0] or 0) < content_width:
        return sizes

    return f"(max-width: {content_width}px) 100vw, {content_width}px"
