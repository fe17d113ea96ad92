"""External thumbnail records: a content item's remote featured image."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ngx_resizer.db.models.thumbnail import Thumbnail
from ngx_resizer.lib.content import validate_image_url
from ngx_resizer.lib.exceptions import MalformedImageError
from ngx_resizer.lib.fetcher import DimensionFetcher
from ngx_resizer.lib.hooks import AFTER_THUMBNAIL_URL_SAVE, hooks

logger = logging.getLogger(__name__)


async def get_thumbnail(
    db_session: AsyncSession,
    content_id: int,
) -> Thumbnail | None:
    """Get the external thumbnail of a content item, if it has one."""
    result = await db_session.execute(
        select(Thumbnail).where(Thumbnail.content_id == content_id)
    )
    return result.scalar_one_or_none()


async def delete_thumbnail(
    db_session: AsyncSession,
    content_id: int,
) -> bool:
    """Delete a content item's external thumbnail.

    Returns:
        True if deleted, False if there was none
    """
    thumbnail = await get_thumbnail(db_session, content_id)
    if not thumbnail:
        return False

    await db_session.delete(thumbnail)
    await db_session.commit()
    return True


async def set_thumbnail_url(
    db_session: AsyncSession,
    content_id: int,
    url: str | None,
    size: Sequence[int] | None = None,
    fetcher: DimensionFetcher | None = None,
) -> Thumbnail | None:
    """Set or clear the external thumbnail of a content item.

    When ``size`` does not give both dimensions they are read from the
    remote image header. Dimensions are cached only when both are positive;
    otherwise any cached values are cleared. An empty URL removes the record.

    Args:
        db_session: Database session
        content_id: Content item the thumbnail belongs to
        url: Remote image URL, or empty to remove the thumbnail
        size: Known ``(width, height)`` of the image
        fetcher: Fetcher used to discover missing dimensions

    Returns:
        The saved record, or None when the thumbnail was removed

    Raises:
        MalformedImageError: If the URL has no host or path
    """
    url = (url or "").strip()

    if not url:
        await delete_thumbnail(db_session, content_id)
        await hooks.do_action(AFTER_THUMBNAIL_URL_SAVE, content_id, None)
        return None

    if not validate_image_url(url):
        raise MalformedImageError(f"Not an absolute image URL: {url}")

    if size is not None and len(size) >= 2:
        dimensions = (size[0], size[1])
    else:
        dimensions = await (fetcher or DimensionFetcher()).fetch(url)
        if dimensions is None:
            logger.info("Saving thumbnail %s without dimensions", url)

    thumbnail = await get_thumbnail(db_session, content_id)
    if thumbnail:
        thumbnail.url = url
    else:
        thumbnail = Thumbnail(content_id=content_id, url=url)
        db_session.add(thumbnail)

    if dimensions and dimensions[0] and dimensions[1]:
        thumbnail.width = abs(int(dimensions[0]))
        thumbnail.height = abs(int(dimensions[1]))
    else:
        thumbnail.width = None
        thumbnail.height = None

    await db_session.commit()
    await db_session.refresh(thumbnail)

    await hooks.do_action(AFTER_THUMBNAIL_URL_SAVE, content_id, thumbnail)
    return thumbnail
