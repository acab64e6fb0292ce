import math
from typing import NamedTuple, Protocol

from .common import numeric
from .rectangles import Rectangle, Region


class SupportsBounds(Protocol):
    @property
    def max_width(self) -> int: ...

    @property
    def max_height(self) -> int: ...


class Bounds(NamedTuple):
    """Delivery cap of an image, in pixels."""
    max_width: int
    max_height: int


def round_half_up(value: numeric) -> int:
    """Round to the nearest integer, with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def _fit_axis(origin: int, length: int, limit: int) -> tuple[int, int]:
    """Move `origin` inside `[0, limit)` and shrink `length` so the span ends at `limit`."""
    if origin >= limit:
        origin = max(0, limit - 1)
    if origin + length > limit:
        length = max(1, limit - origin)
    return origin, length


def clamp_region(rect: Rectangle, bounds: SupportsBounds | None = None) -> Region:
    """
    Clamp a pixel-space rectangle to an integer, in-bounds, non-degenerate region.

    Steps:
        1. Round x, y, w, h to the nearest integer (halves up).
        2. Floor negative x/y to 0 and w/h to 1.
        3. With bounds: an origin at or past the cap is moved back to
           `cap - 1`, then w/h shrink so that `x + w <= max_width` and
           `y + h <= max_height`, never below 1.

    The result is a fixed point: clamping it again with the same bounds
    returns it unchanged.

    Args:
        rect: Rectangle in pixel space.
        bounds: Anything with `max_width` and `max_height`, e.g. an
            `ImageExtent` or `Bounds`. Without bounds only rounding and
            flooring apply.

    Returns:
        Region: Integer rectangle usable as a IIIF region.

    Raises:
        ValueError: If a component of `rect` is NaN or infinite.
    """
    if not rect.is_finite():
        raise ValueError(f"Cannot clamp non-finite rectangle {rect!r}")

    x, y, w, h = (round_half_up(v) for v in rect)
    x, y = max(0, x), max(0, y)
    w, h = max(1, w), max(1, h)

    if bounds is not None:
        x, w = _fit_axis(x, w, int(bounds.max_width))
        y, h = _fit_axis(y, h, int(bounds.max_height))

    return Rectangle(x, y, w, h)
