"""
Conversion between axis-aligned rectangles and closed GeoJSON polygon rings.

Stored polygons live in storage space (Cartesian, Y pointing up) while the
annotation editor works in pixel space (Y pointing down). `polygon_to_rect`
applies the vertical flip; `rect_to_polygon` never does, so a caller that needs
storage-space output flips with `flip_rect` first.
"""

import math
from collections.abc import Sequence

import numpy as np
from shapely.geometry import MultiPoint

from .common import numeric
from .errors import MalformedGeometry
from .points import Point
from .rectangles import Rectangle
from .schemas import Feature, PolygonGeometry

type polygon_like = PolygonGeometry | Feature | Sequence[Sequence[Sequence[numeric]]]
type rect_like = Rectangle | Sequence[numeric]

MIN_DISTINCT_POINTS = 3


def _as_rectangle(rect: rect_like) -> Rectangle:
    return rect if isinstance(rect, Rectangle) else Rectangle.from_iterable(rect)


def _first_ring(polygon: polygon_like) -> Sequence:
    if isinstance(polygon, Feature):
        polygon = polygon.geometry
    coordinates = polygon.coordinates if isinstance(polygon, PolygonGeometry) else polygon
    try:
        return coordinates[0]
    except (IndexError, KeyError, TypeError) as exc:
        raise MalformedGeometry("Polygon has no ring") from exc


def ring_points(polygon: polygon_like) -> np.ndarray:
    """
    Extract the first ring of a polygon as a float array of shape (n_points, 2).

    Positions with extra dimensions (e.g. [x, y, z]) are cut down to [x, y].

    Raises:
        MalformedGeometry: If a vertex is not a numeric, finite [x, y] pair.
    """
    ring = _first_ring(polygon)
    try:
        arr = np.array([tuple(position)[:2] for position in ring], dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedGeometry(f"Ring has non-numeric coordinates: {exc}") from exc

    if arr.ndim != 2 or arr.shape[1] != 2:
        raise MalformedGeometry("Ring vertices must be [x, y] positions")
    if not np.isfinite(arr).all():
        raise MalformedGeometry("Ring has non-finite coordinates")
    return arr


def polygon_bounds(polygon: polygon_like) -> Rectangle[float]:
    """
    Bounding box of the first ring, in the polygon's own coordinate space.

    The box is computed from min/max over every vertex, so the order and
    winding of the ring do not matter and width/height are never negative.

    Raises:
        MalformedGeometry: If the ring has fewer than 3 distinct points or
            contains non-numeric coordinates.
    """
    arr = ring_points(polygon)
    distinct = dict.fromkeys(Point.from_iterable(position) for position in arr.tolist())
    if len(distinct) < MIN_DISTINCT_POINTS:
        raise MalformedGeometry(
            f"Ring needs at least {MIN_DISTINCT_POINTS} distinct points, got {len(distinct)}"
        )

    min_x, min_y, max_x, max_y = MultiPoint(arr).bounds
    return Rectangle.from_corners(min_x, min_y, max_x, max_y)


def flip_rect(rect: rect_like, reference_height: numeric) -> Rectangle[float]:
    """
    Flip a rectangle between storage space (Y-up) and pixel space (Y-down).

    `y' = reference_height - y - h`. The flip is its own inverse.

    Args:
        rect: Rectangle in either space.
        reference_height: Full height of the image the rectangle belongs to.

    Returns:
        Rectangle in the other space.
    """
    if not math.isfinite(reference_height):
        raise ValueError(f"reference_height must be finite, got {reference_height}")
    rect = _as_rectangle(rect)
    return rect.with_y(reference_height - rect.y - rect.h)


def polygon_to_rect(polygon: polygon_like, reference_height: numeric) -> Rectangle[float]:
    """
    Convert a stored (storage-space) polygon to a pixel-space rectangle.

    Args:
        polygon: PolygonGeometry, Feature, or raw GeoJSON polygon coordinates.
        reference_height: Height of the image in pixels.

    Returns:
        Rectangle[float]: Bounding box of the first ring, flipped to pixel space.

    Raises:
        MalformedGeometry: If the ring has fewer than 3 distinct points or
            contains non-numeric coordinates.
    """
    return flip_rect(polygon_bounds(polygon), reference_height)


def rect_to_polygon(rect: rect_like) -> PolygonGeometry:
    """
    Build the closed 5-point ring of a rectangle, in the rectangle's own space.

    Ring order: (x, y), (x, y+h), (x+w, y+h), (x+w, y), (x, y). No axis flip
    is applied.
    """
    corners = _as_rectangle(rect).corners
    ring = [corner.to_list() for corner in corners]
    ring.append(corners[0].to_list())
    return PolygonGeometry(coordinates=[ring])
