"""Attachment lookups for full-size image URLs and natural dimensions."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ngx_resizer.db.models.attachment import Attachment


async def get_attachment(
    db_session: AsyncSession,
    attachment_id: int,
) -> Attachment | None:
    """Get an attachment by id.

    Args:
        db_session: Database session
        attachment_id: Attachment id

    Returns:
        The attachment or None if not found
    """
    result = await db_session.execute(select(Attachment).where(Attachment.id == attachment_id))
    return result.scalar_one_or_none()


async def get_attachments(
    db_session: AsyncSession,
    attachment_ids: Iterable[int],
) -> dict[int, Attachment]:
    """Get several attachments at once, keyed by id. Missing ids are omitted."""
    ids = list(attachment_ids)
    if not ids:
        return {}

    result = await db_session.execute(select(Attachment).where(Attachment.id.in_(ids)))
    return {attachment.id: attachment for attachment in result.scalars().all()}


async def add_attachment(
    db_session: AsyncSession,
    url: str,
    width: int,
    height: int,
) -> Attachment:
    """Record an uploaded original."""
    attachment = Attachment(url=url, width=width, height=height)
    db_session.add(attachment)
    await db_session.commit()
    await db_session.refresh(attachment)
    return attachment
