"""Exceptions raised by the annotation-geometry engine."""


class GeometryError(ValueError):
    """Base class for invalid geometry, selectors and identifiers."""


class MalformedGeometry(GeometryError):
    """A stored polygon cannot be reduced to a bounding rectangle.

    Raised when the polygon has no ring, a vertex is not a numeric pair, or
    the ring has fewer than 3 distinct points.
    """


class InvalidSelector(GeometryError):
    """A Fragment-Selector value does not match `xywh=pixel:x,y,w,h`."""


class ReservedIdentifier(GeometryError):
    """A client-side identifier uses the prefix reserved for persisted records."""


class MetadataFetchFailure(RuntimeError):
    """The IIIF info document for an image could not be fetched or read."""

    def __init__(self, base_uri: str, reason: str) -> None:
        super().__init__(f"Cannot fetch image metadata for {base_uri}: {reason}")
        self.base_uri = base_uri
        self.reason = reason
