import logging
import re
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from .common import numeric
from .const import CLIENT_ID_PREFIX, DB_ID_PREFIX
from .errors import InvalidSelector, MalformedGeometry, ReservedIdentifier
from .geometry import flip_rect, polygon_to_rect, rect_to_polygon
from .rectangles import Rectangle
from .schemas import (AnnotationMeta, AnnotationTarget, Feature, FragmentSelector,
    StoredAnnotation, TextualBody, ViewerAnnotation)
from .selectors import format_selector, parse_selector

log = logging.getLogger(__name__)

type label_source = Callable[[int], str | None] | Mapping[int, str]

_PERSISTED_ID = re.compile(re.escape(DB_ID_PREFIX) + r"(-?[0-9]+)")


def _resolve_label(lookup: label_source | None, allograph_id: int | None) -> str | None:
    if lookup is None or allograph_id is None:
        return None
    if isinstance(lookup, Mapping):
        return lookup.get(allograph_id)
    return lookup(allograph_id)


def _annotation_id(annotation: ViewerAnnotation | str) -> str:
    return annotation.id if isinstance(annotation, ViewerAnnotation) else annotation


def _viewer_annotation(
    annotation_id: str,
    rect: Rectangle,
    allograph_id: int | None,
    hand_id: int | None,
    label: str | None,
) -> ViewerAnnotation:
    return ViewerAnnotation(
        id=annotation_id,
        target=AnnotationTarget(selector=FragmentSelector(value=format_selector(rect))),
        body=[TextualBody(value=label)] if label else [],
        metadata=AnnotationMeta(allograph_id=allograph_id, hand_id=hand_id),
    )


def to_viewer(
    stored: StoredAnnotation,
    image_height: numeric,
    label_lookup: label_source | None = None,
) -> ViewerAnnotation:
    """
    Map a stored annotation record to the editor's W3C annotation.

    The stored polygon is flipped from storage space into pixel space using
    `image_height`, serialized as a fragment selector, and the record id is
    given the persisted prefix (`"db:<id>"`). When `label_lookup` resolves the
    allograph to a label, a single commenting text body carries it.

    Raises:
        MalformedGeometry: If the stored polygon cannot be reduced to a rectangle.
    """
    rect = polygon_to_rect(stored.annotation.geometry, image_height)
    label = _resolve_label(label_lookup, stored.allograph)
    return _viewer_annotation(f"{DB_ID_PREFIX}{stored.id}", rect, stored.allograph, stored.hand, label)


def to_stored(viewer: ViewerAnnotation, image_height: numeric | None = None) -> Feature:
    """
    Map an editor annotation back to the polygon feature submitted to storage.

    Args:
        viewer: The annotation being saved.
        image_height: When given, the pixel-space rectangle is flipped back to
            storage space before the ring is built, so that
            `to_stored(to_viewer(s, h), h)` reproduces the stored geometry.
            When None, the pixel-space rectangle is written as-is, matching
            the records the existing editor has persisted.

    Raises:
        InvalidSelector: If the annotation has no valid `xywh=pixel` selector.
    """
    value = viewer.selector
    if value is None:
        raise InvalidSelector(f"Annotation {viewer.id} has no fragment selector")

    rect = parse_selector(value)
    if image_height is not None:
        rect = flip_rect(rect, image_height)
    return Feature(geometry=rect_to_polygon(rect), properties={"saved": 0})


def is_persisted(annotation: ViewerAnnotation | str) -> bool:
    """Whether the annotation (or id) refers to a record that exists in storage."""
    annotation_id = _annotation_id(annotation)
    return isinstance(annotation_id, str) and annotation_id.startswith(DB_ID_PREFIX)


def persisted_id(annotation: ViewerAnnotation | str) -> int | None:
    """
    Backend id of a persisted annotation.

    Returns:
        int | None: The numeric suffix after `"db:"`, or None when the
        annotation is unsaved or the suffix is not an integer.
    """
    if not is_persisted(annotation):
        return None
    match = _PERSISTED_ID.fullmatch(_annotation_id(annotation))
    return int(match.group(1)) if match else None


def new_client_id() -> str:
    """Generate an id for an annotation that has not been saved yet."""
    return f"{CLIENT_ID_PREFIX}{uuid.uuid4().hex}"


def ensure_client_id(candidate: str) -> str:
    """
    Validate an id proposed by the editor for an unsaved annotation.

    Raises:
        ReservedIdentifier: If the id uses the prefix reserved for persisted records.
    """
    if is_persisted(candidate):
        raise ReservedIdentifier(f"{candidate!r} uses the reserved prefix {DB_ID_PREFIX!r}")
    return candidate


def new_viewer_annotation(
    rect: Rectangle,
    allograph_id: int | None = None,
    hand_id: int | None = None,
    label: str | None = None,
    annotation_id: str | None = None,
) -> ViewerAnnotation:
    """Create an unsaved editor annotation for a pixel-space rectangle."""
    annotation_id = ensure_client_id(annotation_id) if annotation_id is not None else new_client_id()
    return _viewer_annotation(annotation_id, rect, allograph_id, hand_id, label)


def load_stored_annotations(raw_records: Iterable[Any]) -> list[StoredAnnotation]:
    """
    Validate raw annotation-storage API records.

    Records that do not match the expected shape are skipped and logged.
    """
    records = []
    for raw in raw_records:
        try:
            records.append(StoredAnnotation.model_validate(raw))
        except ValidationError as exc:
            record_id = raw.get("id") if isinstance(raw, Mapping) else None
            log.warning("Skipping invalid annotation record %s (%d validation errors)", record_id, exc.error_count())
    return records


def to_viewer_batch(
    records: Iterable[StoredAnnotation],
    image_height: numeric,
    label_lookup: label_source | None = None,
) -> tuple[list[ViewerAnnotation], list[int]]:
    """
    Convert a batch of stored annotations, skipping those with malformed geometry.

    Returns:
        Tuple containing:
            - The converted viewer annotations, in input order
            - Ids of the records that were skipped
    """
    converted, skipped = [], []
    for record in records:
        try:
            converted.append(to_viewer(record, image_height, label_lookup))
        except MalformedGeometry as exc:
            log.warning("Skipping annotation %s: %s", record.id, exc)
            skipped.append(record.id)
    return converted, skipped
