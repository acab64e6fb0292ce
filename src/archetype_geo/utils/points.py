from typing import Iterable, Iterator, Self

from .common import Hashable


class Point[T: (int, float)](Hashable):
    """
    Immutable 2D point, used for the vertices of a polygon ring.

    This class is generic in `T`, where `T` must be either `int` or `float`.
    It implements tuple-like behavior while inheriting from Hashable, so rings
    can be de-duplicated with sets or `dict.fromkeys`.

    Type Parameters:
        T (int | float): The coordinate type.
    """

    __slots__ = ("_x", "_y")

    def __init__(self, x: T, y: T) -> None:
        """
        Create a new Point instance from X and Y coordinates.

        Args:
            x (T): The X coordinate (int or float).
            y (T): The Y coordinate (int or float).
        """
        object.__setattr__(self, "_x", x)
        object.__setattr__(self, "_y", y)

    def _key_(self) -> tuple[T, T]:
        """Return the key for hashing and equality comparison."""
        return (self._x, self._y)

    @classmethod
    def from_iterable(cls, iterable: Iterable[T]) -> Self:
        """Build a ring vertex from an `[x, y]` position; ValueError unless it has two elements."""
        values = tuple(iterable)
        if len(values) != 2:
            raise ValueError(f"Expected iterable of length 2, got {len(values)}")
        return cls(values[0], values[1])

    @property
    def x(self) -> T:
        """Horizontal coordinate."""
        return self._x

    @property
    def y(self) -> T:
        """Vertical coordinate (storage or pixel space, as the ring is)."""
        return self._y

    def __iter__(self) -> Iterator[T]:
        """Allow unpacking like a tuple."""
        yield self._x
        yield self._y

    def __len__(self) -> int:
        """Return length (always 2)."""
        return 2

    def __repr__(self) -> str:
        return f"Point({self._x}, {self._y})"

    def to_list(self) -> list[T]:
        """Return the point as a GeoJSON position `[x, y]`."""
        return [self._x, self._y]
