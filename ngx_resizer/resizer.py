"""Resolve images to resizing-proxy URLs and display dimensions.

:class:`ImageResizer` ties the size registry, the URL builder and the
content and ``srcset`` rewriters together behind the operations the host
calls.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from ngx_resizer.db.services import attachment_service, thumbnail_service
from ngx_resizer.lib.content import ContentRewriter, FullSizeImage, find_attachment_ids
from ngx_resizer.lib.secure_link import ResizedURLBuilder
from ngx_resizer.lib.sizes import SizeDefinition, resolve_size
from ngx_resizer.lib.srcset import SrcsetSource, rewrite_sizes, rewrite_srcset

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

    from ngx_resizer.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalAttachment:
    """An image uploaded to this site."""

    id: int


@dataclass(frozen=True)
class ExternalThumbnail:
    """A featured image hosted elsewhere, with its dimensions when known."""

    url: str
    dimensions: tuple[int, int] | None = None


ImageSource = Union[LocalAttachment, ExternalThumbnail]


@dataclass(frozen=True)
class DownsizedImage:
    url: str
    width: int | None
    height: int | None
    is_intermediate: bool


class ImageResizer:
    def __init__(
        self,
        builder: ResizedURLBuilder,
        registry: Mapping[str, SizeDefinition],
        upload_dir: Path | None = None,
        content_width: int | None = None,
        external_thumbnails: bool = True,
    ) -> None:
        self.builder = builder
        self.registry = registry
        self.content_width = content_width
        self.external_thumbnails = external_thumbnails
        self.content = ContentRewriter(builder, registry, upload_dir, content_width)

    @classmethod
    def from_settings(cls, settings: Settings) -> ImageResizer:
        from ngx_resizer.config import registry_from_settings

        builder = ResizedURLBuilder(
            settings.uploads.base_url,
            secure_link=settings.secure_link,
            scheme=settings.scheme,
        )
        return cls(
            builder,
            registry_from_settings(settings),
            upload_dir=settings.uploads.base_dir,
            content_width=settings.content_width,
            external_thumbnails=settings.enable_external_thumbnail,
        )

    def get_resized_image_src(
        self,
        url: str,
        size: Any = "medium",
        original: tuple[int, int] | None = None,
    ) -> DownsizedImage | None:
        """Resolve ``url`` at ``size``.

        Args:
            url: The original image URL
            size: A registered size name or a ``(width, height)`` box
            original: The original's ``(width, height)``, when known

        Returns:
            The proxy URL with display dimensions, or None for an empty URL
            or an unregistered size name
        """
        if not url:
            return None

        target = resolve_size(size, original, self.registry, self.content_width)
        if target is None:
            return None

        if target.is_intermediate:
            new_url = self.builder.build(url, target.width, target.height, target.crop)
        else:
            new_url = self.builder.build(url)

        return DownsizedImage(new_url, target.width, target.height, target.is_intermediate)

    async def thumbnail_source(
        self,
        db_session: AsyncSession,
        content_id: int,
    ) -> ExternalThumbnail | None:
        """The external thumbnail of a content item as an image source.

        Always None while external thumbnails are disabled.
        """
        if not self.external_thumbnails:
            return None
        record = await thumbnail_service.get_thumbnail(db_session, content_id)
        if record is None or not record.url:
            return None
        return ExternalThumbnail(record.url, record.dimensions)

    async def resolve_downsized_image(
        self,
        db_session: AsyncSession | None,
        source: ImageSource,
        size: Any = "medium",
    ) -> DownsizedImage | None:
        """Resolve an attachment or external thumbnail at ``size``.

        Attachments need a session to look up their URL and natural size;
        external thumbnails carry both already.
        """
        if isinstance(source, ExternalThumbnail):
            return self.get_resized_image_src(source.url, size, source.dimensions)

        if db_session is None:
            return None

        attachment = await attachment_service.get_attachment(db_session, source.id)
        if attachment is None or not attachment.url:
            return None
        return self.get_resized_image_src(attachment.url, size, attachment.dimensions)

    def rewrite_content(
        self,
        html: str,
        content_width: int | None = None,
        attachments: Mapping[int, FullSizeImage] | None = None,
    ) -> str:
        return self.content.rewrite(html, content_width, attachments)

    async def rewrite_content_with_attachments(
        self,
        db_session: AsyncSession,
        html: str,
        content_width: int | None = None,
    ) -> str:
        """Rewrite ``html``, loading the attachments its images reference."""
        ids = find_attachment_ids(html)
        attachments = await attachment_service.get_attachments(db_session, ids)
        return self.rewrite_content(html, content_width, attachments)

    async def rewrite_srcset(
        self,
        sources: Sequence[SrcsetSource],
        attachment_id: int | None = None,
        *,
        db_session: AsyncSession | None = None,
    ) -> list[SrcsetSource]:
        """Rewrite ``srcset`` candidates, preferring the attachment's original.

        The attachment is only looked up when a session is given; otherwise
        each candidate falls back to its stripped local URL.
        """
        attachment_url = None
        if attachment_id and db_session is not None:
            attachment = await attachment_service.get_attachment(db_session, attachment_id)
            if attachment is not None:
                attachment_url = attachment.url
            else:
                logger.debug("Attachment %s not found for srcset", attachment_id)

        return rewrite_srcset(
            sources,
            self.builder,
            strip=self.content.strip_image_dimensions_maybe,
            attachment_url=attachment_url,
        )

    def rewrite_sizes(
        self,
        sizes: str,
        size: Any,
        in_content: bool = True,
        content_width: int | None = None,
    ) -> str:
        if content_width is None:
            content_width = self.content_width
        return rewrite_sizes(sizes, size, content_width, in_content)
