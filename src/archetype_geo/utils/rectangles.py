import math
from typing import Iterable, Iterator, Self

from .common import Hashable
from .points import Point


class Rectangle[T: (int, float)](Hashable):
    """
    Immutable axis-aligned rectangle `{x, y, w, h}`.

    The coordinate space a rectangle lives in (storage space with Y pointing
    up, or pixel space with Y pointing down) is not recorded on the value;
    callers track it from context.

    A `Rectangle[int]` returned by `clamp_region` is a IIIF region and is
    aliased as `Region`.

    Type Parameters:
        T (int | float): The coordinate type.
    """

    __slots__ = ("_x", "_y", "_w", "_h")

    def __init__(self, x: T, y: T, w: T, h: T) -> None:
        object.__setattr__(self, "_x", x)
        object.__setattr__(self, "_y", y)
        object.__setattr__(self, "_w", w)
        object.__setattr__(self, "_h", h)

    def _key_(self) -> tuple[T, T, T, T]:
        return (self._x, self._y, self._w, self._h)

    @classmethod
    def from_xywh(cls, x: T, y: T, w: T, h: T) -> Self:
        return cls(x, y, w, h)

    @classmethod
    def from_iterable(cls, iterable: Iterable[T]) -> Self:
        """
        Create a Rectangle from an iterable of exactly four elements `(x, y, w, h)`.

        Raises:
            ValueError: If the iterable does not contain exactly four elements.
        """
        values = tuple(iterable)
        if len(values) != 4:
            raise ValueError(f"Expected iterable of length 4, got {len(values)}")
        return cls(*values)

    @classmethod
    def from_corners(cls, min_x: T, min_y: T, max_x: T, max_y: T) -> Self:
        """Create a Rectangle from its minimum and maximum corner coordinates."""
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)

    @property
    def x(self) -> T:
        return self._x

    @property
    def y(self) -> T:
        return self._y

    @property
    def w(self) -> T:
        return self._w

    @property
    def h(self) -> T:
        return self._h

    @property
    def corners(self) -> tuple[Point[T], Point[T], Point[T], Point[T]]:
        """
        The four corners in ring order: origin, then along the height, the
        opposite corner, then along the width.
        """
        x1, y1 = self._x, self._y
        x2, y2 = self._x + self._w, self._y + self._h
        return (Point(x1, y1), Point(x1, y2), Point(x2, y2), Point(x2, y1))

    @property
    def region_token(self) -> str:
        """The IIIF region parameter `x,y,w,h`."""
        return f"{self._x},{self._y},{self._w},{self._h}"

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self)

    def with_y(self, y: T) -> Self:
        """Return a copy of the rectangle moved vertically to `y`."""
        return type(self)(self._x, y, self._w, self._h)

    def __iter__(self) -> Iterator[T]:
        """Allow unpacking like a tuple `(x, y, w, h)`."""
        yield from self._key_()

    def __len__(self) -> int:
        return 4

    def __repr__(self) -> str:
        return f"Rectangle(x={self._x}, y={self._y}, w={self._w}, h={self._h})"


type Region = Rectangle[int]
