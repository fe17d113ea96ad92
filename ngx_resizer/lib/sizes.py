"""Named image sizes and target dimension resolution.

A size request is either a registered name (``"medium"``) or an explicit
``(width, height)`` box. Given the original dimensions, when known, the
resolver picks the width and height the proxy should produce and the page
should display.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple, Union

FULL = "full"
THUMBNAIL_NAMES = ("thumb", "thumbnail")
CONTENT_WIDTH_CLAMPED = ("medium_large", "large")

X_ANCHORS = ("left", "center", "right")
Y_ANCHORS = ("top", "center", "bottom")

# Used by the editor clamp when no thumbnail box is configured
DEFAULT_THUMBNAIL_BOX = (128, 96)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    rounded = math.floor(abs(value) + 0.5)
    return int(rounded if value >= 0 else -rounded)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Crop:
    """Crop to an exact box, keeping the region at the given anchor."""

    x: str = "center"
    y: str = "center"

    @classmethod
    def coerce(cls, value: Any) -> Crop | None:
        """Normalize the host's crop setting.

        ``False``/``None``/``0`` mean no crop, ``True`` crops centred, and a
        positional sequence gives the ``(x, y)`` anchor. Sequences of four
        items carry the anchor in their first two positions. Unrecognized
        anchors fall back to ``center``.
        """
        if isinstance(value, Crop):
            return value
        if isinstance(value, (list, tuple)):
            if len(value) not in (2, 4):
                return cls()
            x, y = str(value[0]).lower(), str(value[1]).lower()
            return cls(
                x=x if x in X_ANCHORS else "center",
                y=y if y in Y_ANCHORS else "center",
            )
        return cls() if value else None


@dataclass(frozen=True)
class SizeDefinition:
    """A registered size: bounding box and crop policy."""

    width: int | None = None
    height: int | None = None
    crop: Crop | None = None

    @classmethod
    def from_value(cls, value: Any) -> SizeDefinition:
        """Build from a mapping with ``width``/``height``/``crop`` keys."""
        if isinstance(value, SizeDefinition):
            return value
        return cls(
            width=_to_int(value.get("width")) or None,
            height=_to_int(value.get("height")) or None,
            crop=Crop.coerce(value.get("crop")),
        )


@dataclass(frozen=True)
class NamedSize:
    name: str


@dataclass(frozen=True)
class ExplicitSize:
    width: int | None = None
    height: int | None = None


SizeSpec = Union[NamedSize, ExplicitSize]


def as_size_spec(value: Any) -> SizeSpec:
    """Turn a size name or a ``(width, height)`` sequence into a SizeSpec."""
    if isinstance(value, (NamedSize, ExplicitSize)):
        return value
    if isinstance(value, str):
        return NamedSize(value)
    if isinstance(value, Sequence):
        width = _to_int(value[0]) if len(value) > 0 else 0
        height = _to_int(value[1]) if len(value) > 1 else 0
        return ExplicitSize(width or None, height or None)
    raise TypeError(f"Unsupported image size: {value!r}")


@dataclass(frozen=True)
class ResolvedTarget:
    """Dimensions to request from the proxy and to display.

    ``is_intermediate`` is False when the unmodified original should be
    requested; width and height then only describe the layout.
    """

    width: int | None
    height: int | None
    crop: Crop | None = None
    is_intermediate: bool = True


class ResizeBox(NamedTuple):
    src_x: int
    src_y: int
    width: int
    height: int
    src_width: int
    src_height: int


def build_size_map(
    thumbnail: SizeDefinition,
    medium: SizeDefinition,
    large: SizeDefinition,
    additional: Mapping[str, Any] | None = None,
) -> dict[str, SizeDefinition]:
    """Assemble the platform sizes plus any extra registered sizes."""
    sizes = {
        "thumb": thumbnail,
        "medium": SizeDefinition(medium.width, medium.height),
        "large": SizeDefinition(large.width, large.height),
        FULL: SizeDefinition(),
    }
    sizes["thumbnail"] = sizes["thumb"]
    for name, value in (additional or {}).items():
        sizes[name] = SizeDefinition.from_value(value)
    return sizes


class SizeRegistry(Mapping[str, SizeDefinition]):
    """Named sizes, read once from a provider on first access.

    The mapping is immutable once loaded; call :meth:`reset` to have the next
    lookup query the provider again.
    """

    def __init__(self, provider: Callable[[], Mapping[str, SizeDefinition]]) -> None:
        self._provider = provider
        self._sizes: dict[str, SizeDefinition] | None = None

    @classmethod
    def from_mapping(cls, sizes: Mapping[str, Any]) -> SizeRegistry:
        definitions = {name: SizeDefinition.from_value(value) for name, value in sizes.items()}
        return cls(lambda: definitions)

    @property
    def is_loaded(self) -> bool:
        return self._sizes is not None

    def _load(self) -> dict[str, SizeDefinition]:
        if self._sizes is None:
            sizes = dict(self._provider())
            sizes[FULL] = SizeDefinition()
            self._sizes = sizes
        return self._sizes

    def reset(self) -> None:
        self._sizes = None

    def __getitem__(self, name: str) -> SizeDefinition:
        return self._load()[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())


def constrain_dimensions(
    current_width: int,
    current_height: int,
    max_width: int | None = None,
    max_height: int | None = None,
) -> tuple[int, int]:
    """Scale down to fit within a box, preserving aspect ratio.

    Never scales up. A missing or zero bound leaves that side unconstrained.
    """
    max_width = max_width or 0
    max_height = max_height or 0
    if not max_width and not max_height:
        return current_width, current_height

    width_ratio = height_ratio = 1.0
    did_width = did_height = False

    if max_width > 0 and current_width > 0 and current_width > max_width:
        width_ratio = max_width / current_width
        did_width = True

    if max_height > 0 and current_height > 0 and current_height > max_height:
        height_ratio = max_height / current_height
        did_height = True

    smaller_ratio = min(width_ratio, height_ratio)
    larger_ratio = max(width_ratio, height_ratio)

    if (
        round_half_up(current_width * larger_ratio) > max_width
        or round_half_up(current_height * larger_ratio) > max_height
    ):
        ratio = smaller_ratio
    else:
        ratio = larger_ratio

    width = max(1, round_half_up(current_width * ratio))
    height = max(1, round_half_up(current_height * ratio))

    # Rounding can leave the constrained side a pixel short of the box
    if did_width and width == max_width - 1:
        width = max_width
    if did_height and height == max_height - 1:
        height = max_height

    return width, height


def resize_dimensions(
    orig_width: int,
    orig_height: int,
    dest_width: int | None,
    dest_height: int | None,
    crop: Crop | None = None,
) -> ResizeBox | None:
    """Compute the resize for an original into a destination box.

    Without ``crop`` the image is fitted inside the box. With ``crop`` the
    result is the exact box (clamped to the original) cut at the crop anchor.
    Returns ``None`` when the inputs are unusable or when the result would
    not be smaller than the original.
    """
    dest_width = dest_width or 0
    dest_height = dest_height or 0
    if orig_width <= 0 or orig_height <= 0:
        return None
    if dest_width <= 0 and dest_height <= 0:
        return None

    if crop is not None:
        aspect_ratio = orig_width / orig_height
        new_width = min(dest_width, orig_width)
        new_height = min(dest_height, orig_height)

        if not new_width:
            new_width = round_half_up(new_height * aspect_ratio)
        if not new_height:
            new_height = round_half_up(new_width / aspect_ratio)

        size_ratio = max(new_width / orig_width, new_height / orig_height)
        crop_width = round_half_up(new_width / size_ratio)
        crop_height = round_half_up(new_height / size_ratio)

        if crop.x == "left":
            src_x = 0
        elif crop.x == "right":
            src_x = orig_width - crop_width
        else:
            src_x = math.floor((orig_width - crop_width) / 2)

        if crop.y == "top":
            src_y = 0
        elif crop.y == "bottom":
            src_y = orig_height - crop_height
        else:
            src_y = math.floor((orig_height - crop_height) / 2)
    else:
        crop_width, crop_height = orig_width, orig_height
        src_x = src_y = 0
        new_width, new_height = constrain_dimensions(
            orig_width, orig_height, dest_width, dest_height
        )

    if (
        new_width >= orig_width
        and new_height >= orig_height
        and dest_width != orig_width
        and dest_height != orig_height
    ):
        return None

    return ResizeBox(
        int(src_x), int(src_y), int(new_width), int(new_height),
        int(crop_width), int(crop_height),
    )


def constrain_size_for_editor(
    width: int | None,
    height: int | None,
    size: SizeSpec,
    registry: Mapping[str, SizeDefinition],
    content_width: int | None = None,
) -> tuple[int | None, int | None]:
    """Clamp display dimensions to the maximum box of the requested size.

    Dimensions that are not both known pass through unchanged, as do ``full``
    and names the registry does not know.
    """
    if not width or not height:
        return width, height

    if isinstance(size, ExplicitSize):
        max_width, max_height = size.width, size.height
    elif size.name == FULL or size.name not in registry:
        return width, height
    else:
        definition = registry[size.name]
        max_width, max_height = definition.width, definition.height
        if size.name in THUMBNAIL_NAMES and not max_width and not max_height:
            max_width, max_height = DEFAULT_THUMBNAIL_BOX
        elif size.name in CONTENT_WIDTH_CLAMPED and content_width and content_width > 0:
            max_width = min(content_width, max_width or 0)

    return constrain_dimensions(width, height, max_width, max_height)


def resolve_size(
    size: Any,
    original: tuple[int, int] | None,
    registry: Mapping[str, SizeDefinition],
    content_width: int | None = None,
) -> ResolvedTarget | None:
    """Resolve a size request against the registry and original dimensions.

    Returns ``None`` for a name the registry does not know.
    """
    spec = as_size_spec(size)

    if isinstance(spec, NamedSize):
        definition = registry.get(spec.name)
        if definition is None:
            return None

        width, height, crop = definition.width, definition.height, definition.crop
        is_intermediate = True

        if spec.name == FULL:
            # Consistent data for the original regardless of the request
            is_intermediate = False
            if original:
                width, height = original
        elif original:
            box = resize_dimensions(original[0], original[1], width, height, crop)
            if box is not None:
                width, height = box.width, box.height

        width, height = constrain_size_for_editor(width, height, spec, registry, content_width)
        return ResolvedTarget(width, height, crop, is_intermediate)

    width, height = spec.width, spec.height
    is_intermediate = bool(width or height)

    if original:
        box = resize_dimensions(original[0], original[1], width, height)
        if box is not None:
            width, height = box.width, box.height
        else:
            width, height = original

    width, height = constrain_size_for_editor(width, height, spec, registry, content_width)
    return ResolvedTarget(width, height, None, is_intermediate)
