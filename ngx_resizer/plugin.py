"""Attach the resizer to the host's hook points.

Usage:
    from ngx_resizer.config import get_settings
    from ngx_resizer.plugin import register_from_settings

    plugin = register_from_settings(get_settings())
    html = await hooks.apply_filters(THE_CONTENT, html, db_session=session)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ngx_resizer.lib.hooks import (
    CALCULATE_IMAGE_SIZES,
    CALCULATE_IMAGE_SRCSET,
    IMAGE_DOWNSIZE,
    INTERMEDIATE_IMAGE_SIZES,
    POST_GALLERIES,
    THE_CONTENT,
    HookRegistry,
    hooks,
)
from ngx_resizer.resizer import ImageResizer, ImageSource

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from ngx_resizer.config import Settings

# Late enough to see content after shortcodes and embeds are expanded
CONTENT_PRIORITY = 999


class ResizerPlugin:
    """Filter callbacks bound to one :class:`ImageResizer`."""

    def __init__(
        self,
        resizer: ImageResizer,
        registry: HookRegistry = hooks,
        disable_intermediate_sizes: bool = True,
    ) -> None:
        self.resizer = resizer
        self.hooks = registry
        self.disable_intermediate_sizes = disable_intermediate_sizes

    def _filters(self) -> list[tuple[str, Any, int]]:
        filters = [
            (IMAGE_DOWNSIZE, self.filter_image_downsize, 10),
            (THE_CONTENT, self.filter_the_content, CONTENT_PRIORITY),
            (POST_GALLERIES, self.filter_galleries, CONTENT_PRIORITY),
            (CALCULATE_IMAGE_SRCSET, self.filter_srcset, 10),
            # Early so themes can still adjust the result
            (CALCULATE_IMAGE_SIZES, self.filter_sizes, 1),
        ]
        if self.disable_intermediate_sizes:
            filters.append((INTERMEDIATE_IMAGE_SIZES, self.filter_intermediate_sizes, 10))
        return filters

    def register(self) -> None:
        for hook_name, callback, priority in self._filters():
            self.hooks.add_filter(hook_name, callback, priority)

    def unregister(self) -> None:
        for hook_name, callback, _ in self._filters():
            self.hooks.remove_filter(hook_name, callback)

    async def filter_image_downsize(
        self,
        image: Any,
        source: ImageSource,
        size: Any = "medium",
        *,
        db_session: AsyncSession | None = None,
    ) -> Any:
        """Resolve the image through the proxy, or leave ``image`` as is."""
        resolved = await self.resizer.resolve_downsized_image(db_session, source, size)
        return resolved if resolved is not None else image

    async def filter_the_content(
        self,
        content: str,
        *,
        db_session: AsyncSession | None = None,
        content_width: int | None = None,
    ) -> str:
        if db_session is None:
            return self.resizer.rewrite_content(content, content_width)
        return await self.resizer.rewrite_content_with_attachments(
            db_session, content, content_width
        )

    async def filter_galleries(self, galleries: Any, **kwargs: Any) -> Any:
        if not galleries or not isinstance(galleries, list):
            return galleries
        return [
            await self.filter_the_content(gallery, **kwargs) if isinstance(gallery, str) else gallery
            for gallery in galleries
        ]

    async def filter_srcset(
        self,
        sources: Any,
        size: Any = None,
        image_src: str | None = None,
        image_meta: Any = None,
        attachment_id: int | None = None,
        *,
        db_session: AsyncSession | None = None,
    ) -> Any:
        if not isinstance(sources, list):
            return sources
        return await self.resizer.rewrite_srcset(sources, attachment_id, db_session=db_session)

    def filter_sizes(self, sizes: str, size: Any) -> str:
        # Follow the width hint of the content pass in progress
        content_kwargs = self.hooks.current_filter_kwargs(THE_CONTENT) or {}
        return self.resizer.rewrite_sizes(
            sizes,
            size,
            in_content=self.hooks.doing_filter(THE_CONTENT),
            content_width=content_kwargs.get("content_width"),
        )

    def filter_intermediate_sizes(self, sizes: Any) -> dict:
        """Have the host generate no resized copies on upload."""
        return {}


def register(
    resizer: ImageResizer,
    registry: HookRegistry = hooks,
    disable_intermediate_sizes: bool = True,
) -> ResizerPlugin:
    """Create a plugin for ``resizer`` and register its filters."""
    plugin = ResizerPlugin(resizer, registry, disable_intermediate_sizes)
    plugin.register()
    return plugin


def register_from_settings(settings: Settings, registry: HookRegistry = hooks) -> ResizerPlugin:
    """Build the resizer from ``settings`` and register its filters."""
    return register(
        ImageResizer.from_settings(settings),
        registry,
        disable_intermediate_sizes=settings.disable_intermediate_sizes,
    )


def unregister(plugin: ResizerPlugin) -> None:
    plugin.unregister()
