"""WordPress-like hook/filter registry the resizer plugs into.

The host application owns the hook points (content rendering, image
downsizing, responsive ``srcset`` calculation). The resizer registers
filters on them with :func:`ngx_resizer.plugin.register`.

Actions: Execute callbacks without modifying a value (side effects)
Filters: Execute callbacks that can modify a value (transformations)

Usage:
    from ngx_resizer.lib.hooks import hooks, THE_CONTENT

    hooks.add_filter(THE_CONTENT, my_callback, priority=999)
    html = await hooks.apply_filters(THE_CONTENT, html)
"""

import asyncio
from collections import defaultdict
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

T = TypeVar("T")

# Filters currently being applied with their keyword arguments, innermost last
_filter_stack: ContextVar[tuple[tuple[str, dict[str, Any]], ...]] = ContextVar(
    "filter_stack", default=()
)


@dataclass(order=True)
class HookHandler:
    """A registered hook handler with priority."""

    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Call the handler, handling both sync and async callbacks."""
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Central registry for all hooks (actions and filters)."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)
        self._filters: dict[str, list[HookHandler]] = defaultdict(list)

    def add_action(
        self,
        hook_name: str,
        callback: Callable[..., Any],
        priority: int = 10,
    ) -> None:
        """Register an action callback.

        Args:
            hook_name: Name of the action hook
            callback: Function to call when action is triggered
            priority: Lower numbers execute first (default: 10)
        """
        handler = HookHandler(priority=priority, callback=callback)
        self._actions[hook_name].append(handler)
        self._actions[hook_name].sort()

    def add_filter(
        self,
        hook_name: str,
        callback: Callable[..., T],
        priority: int = 10,
    ) -> None:
        """Register a filter callback.

        Args:
            hook_name: Name of the filter hook
            callback: Function to call to modify value
            priority: Lower numbers execute first (default: 10)
        """
        handler = HookHandler(priority=priority, callback=callback)
        self._filters[hook_name].append(handler)
        self._filters[hook_name].sort()

    def remove_filter(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        """Remove a filter callback. Returns True if it was registered."""
        handlers = self._filters.get(hook_name, [])
        for i, handler in enumerate(handlers):
            # Bound methods compare equal but are never identical
            if handler.callback == callback:
                handlers.pop(i)
                return True
        return False

    def doing_filter(self, hook_name: str | None = None) -> bool:
        """Check whether a filter is currently being applied.

        With no name, reports whether any filter is running.
        """
        stack = _filter_stack.get()
        if hook_name is None:
            return bool(stack)
        return any(name == hook_name for name, _ in stack)

    def current_filter_kwargs(self, hook_name: str) -> dict[str, Any] | None:
        """Keyword arguments of the innermost running ``hook_name`` filter."""
        for name, kwargs in reversed(_filter_stack.get()):
            if name == hook_name:
                return kwargs
        return None

    async def do_action(
        self,
        hook_name: str,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Execute all registered action callbacks.

        Args:
            hook_name: Name of the action hook
            *args: Positional arguments to pass to callbacks
            **kwargs: Keyword arguments to pass to callbacks
        """
        from ngx_resizer.lib.observability import span

        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            handlers = self._actions.get(hook_name, [])
            for handler in handlers:
                await handler.call(*args, **kwargs)

    async def apply_filters(
        self,
        hook_name: str,
        value: T,
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Apply all registered filter callbacks to a value.

        Args:
            hook_name: Name of the filter hook
            value: Initial value to filter
            *args: Additional positional arguments to pass to callbacks
            **kwargs: Keyword arguments to pass to callbacks

        Returns:
            The filtered value after all callbacks have been applied
        """
        from ngx_resizer.lib.observability import span

        token = _filter_stack.set(_filter_stack.get() + ((hook_name, kwargs),))
        try:
            with span(f"hook.filter:{hook_name}", hook_name=hook_name):
                handlers = self._filters.get(hook_name, [])
                for handler in handlers:
                    value = await handler.call(value, *args, **kwargs)
                return value
        finally:
            _filter_stack.reset(token)


# Global singleton registry
hooks = HookRegistry()


# Filters the resizer attaches to
IMAGE_DOWNSIZE = "image_downsize"
THE_CONTENT = "the_content"
POST_GALLERIES = "post_galleries"
CALCULATE_IMAGE_SRCSET = "calculate_image_srcset"
CALCULATE_IMAGE_SIZES = "calculate_image_sizes"
INTERMEDIATE_IMAGE_SIZES = "intermediate_image_sizes"

# Actions
AFTER_THUMBNAIL_URL_SAVE = "after_thumbnail_url_save"
