"""Resizing proxy URLs, optionally signed for nginx ``secure_link``.

Local uploads are addressed directly with ``w``/``h``/``crop`` query
arguments. Remote images go through the ``/safe_image`` endpoint on the
upload host with the original URL passed as ``url``.

When a secure link template is configured, its ``%uri%``, ``%w%``, ``%h%``,
``%crop%`` and ``%url%`` tokens are replaced and the MD5 digest of the
result is appended as ``d`` in unpadded URL-safe base64, the format
``secure_link_md5`` expects.
"""

from __future__ import annotations

import base64
import hashlib
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

SAFE_IMAGE_PATH = "/safe_image"

_SCHEME_PATTERN = re.compile(r"^https?:", re.IGNORECASE)


def strip_scheme(url: str) -> str:
    """Drop a leading ``http:`` or ``https:``, keeping the ``//``."""
    return _SCHEME_PATTERN.sub("", url, count=1)


def set_url_scheme(url: str, scheme: str | None) -> str:
    """Force ``url`` onto ``scheme``; no scheme leaves the URL untouched."""
    if not scheme:
        return url
    url = url.strip()
    if url.startswith("//"):
        return f"{scheme}:{url}"
    return _SCHEME_PATTERN.sub(f"{scheme}:", url, count=1)


def add_query_args(url: str, args: Mapping[str, str]) -> str:
    """Append already-encoded query arguments, replacing same-named ones."""
    parts = urlsplit(url)
    pairs = [
        pair
        for pair in parts.query.split("&")
        if pair and pair.split("=", 1)[0] not in args
    ]
    pairs.extend(f"{key}={value}" for key, value in args.items())
    return urlunsplit(parts._replace(query="&".join(pairs)))


def secure_link_hash(template: str, replacements: Mapping[str, str]) -> str:
    """Fill a secure link template and hash it.

    Tokens are substituted in order with no escaping. The MD5 digest is
    base64 encoded with ``+``/``/`` mapped to ``-``/``_`` and padding removed.
    """
    for token, value in replacements.items():
        template = template.replace(token, value)
    digest = hashlib.md5(template.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def _absint(value: Any) -> int:
    try:
        return abs(int(value))
    except (TypeError, ValueError):
        return 0


class ResizedURLBuilder:
    """Build proxy URLs for images under (or outside) the upload base URL."""

    def __init__(
        self,
        upload_base_url: str,
        secure_link: str = "",
        scheme: str | None = None,
    ) -> None:
        self.upload_base_url = upload_base_url.rstrip("/")
        self.secure_link = secure_link or ""
        self.scheme = scheme

    @property
    def safe_image_url(self) -> str:
        """Proxy endpoint for remote images, on the upload host."""
        parts = urlsplit(self.upload_base_url)
        return urlunsplit((parts.scheme, parts.netloc, SAFE_IMAGE_PATH, "", ""))

    def image_is_local(self, url: str) -> bool:
        """Whether ``url`` lives under the upload base URL, ignoring scheme."""
        base = strip_scheme(self.upload_base_url)
        if not base:
            return False
        return base in strip_scheme(url)

    def build(
        self,
        url: str,
        width: Any = 0,
        height: Any = 0,
        crop: Any = None,
    ) -> str:
        """Return the proxy URL for ``url`` resized to ``width`` x ``height``.

        Zero or missing dimensions are left out, so ``build(url)`` requests
        the original pixels.
        """
        width = _absint(width)
        height = _absint(height)
        is_local = self.image_is_local(url)
        target = url if is_local else self.safe_image_url

        args = {
            "url": "" if is_local else quote(url, safe=""),
            "w": str(width) if width else "",
            "h": str(height) if height else "",
            "crop": "1" if crop else "",
        }

        if self.secure_link:
            args["d"] = secure_link_hash(
                self.secure_link,
                {
                    "%uri%": urlsplit(target).path,
                    "%w%": args["w"],
                    "%h%": args["h"],
                    "%crop%": args["crop"],
                    "%url%": args["url"],
                },
            )

        query = {key: value for key, value in args.items() if value}
        return set_url_scheme(add_query_args(target, query), self.scheme)
