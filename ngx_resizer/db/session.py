"""Async engine and session factory for the resizer tables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ngx_resizer.db.base import Base
from ngx_resizer.lib import observability

if TYPE_CHECKING:
    from ngx_resizer.config import Settings


def create_engine_and_sessionmaker(
    settings: Settings,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build the engine from ``settings.db`` and a matching session factory.

    Sessions keep loaded rows usable after commit, since services hand them
    back to callers.
    """
    engine = create_async_engine(settings.db.url, echo=settings.db.echo)
    observability.instrument_sqlalchemy(engine.sync_engine)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create the resizer tables if they do not exist."""
    # Register the models on Base.metadata
    import ngx_resizer.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
