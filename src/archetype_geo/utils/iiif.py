"""
IIIF Image API helpers: base-URI normalization and image URL composition.

Image URLs follow `{base}/{region}/{size}/{rotation}/{quality}.{format}`.
Every function here is pure; the image extents that bound regions and sizes
are looked up by `ExtentCache` and passed in.
"""

import json
import math
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote, urlsplit

from ..config import get_settings
from .const import IIIF_IMAGE
from .errors import MalformedGeometry
from .geometry import polygon_bounds
from .rectangles import Rectangle, Region
from .regions import SupportsBounds, clamp_region, round_half_up
from .selectors import parse_selector

_INFO_SUFFIX = re.compile(r"/info\.json$", re.IGNORECASE)
_DERIVATIVE_SUFFIX = re.compile(
    r"/full/[^/]+/\d+/(?:default|color|gray|bitonal)\.(?:jpg|png|gif|webp)$", re.IGNORECASE
)

DEFAULTS = IIIF_IMAGE['defaults']


def _encode_path(path: str) -> str:
    """
    Re-encode a decoded path so the image identifier is a single segment.

    Known server prefixes (e.g. `iiif/2`) stay as separate segments; every `/`
    inside the identifier that follows becomes `%2F`.
    """
    segments = [segment for segment in path.split("/") if segment]
    if len(segments) <= 1:
        return "/" + "/".join(quote(segment, safe="") for segment in segments)

    keep = IIIF_IMAGE['prefix_segments'].get(segments[0], 0)
    prefix = segments[:min(keep, len(segments) - 1)]
    identifier = "/".join(segments[len(prefix):])
    return "/" + "/".join(quote(segment, safe="") for segment in [*prefix, identifier])


def normalize_iiif_base(uri: str) -> str:
    """
    Reduce an info URL, base URI or full-image URL to the image's base URI.

    Strips a trailing `/info.json`, trailing slashes and a trailing
    `full/<size>/<rotation>/<quality>.<format>` derivative, then decodes the
    path and encodes it once, so that joining further segments never
    double-encodes the identifier.

    Examples:
        >>> normalize_iiif_base("https://img.example/iiif/2/ms1%2Ff1r.jp2/info.json")
        'https://img.example/iiif/2/ms1%2Ff1r.jp2'
        >>> normalize_iiif_base("https://img.example/iiif/2/ms1/f1r.jp2/")
        'https://img.example/iiif/2/ms1%2Ff1r.jp2'
    """
    cleaned = _INFO_SUFFIX.sub("", uri.strip()).rstrip("/")
    cleaned = _DERIVATIVE_SUFFIX.sub("", cleaned)

    parts = urlsplit(cleaned)
    if not parts.scheme or not parts.netloc:
        return cleaned
    path = _encode_path(unquote(parts.path))
    return f"{parts.scheme}://{parts.netloc}{path}".rstrip("/")


def resolve_info_url(uri: str, api_base: str | None = None) -> str:
    """
    Make an info URL absolute.

    Absolute http(s) URLs are returned unchanged; anything else is joined to
    `api_base` (the configured API URL by default).
    """
    trimmed = (uri or "").strip()
    if not trimmed or trimmed.startswith(("http://", "https://")):
        return trimmed

    if api_base is None:
        api_base = get_settings().api_url
    api_base = api_base.rstrip("/")
    if not api_base:
        return trimmed
    return f"{api_base}{'' if trimmed.startswith('/') else '/'}{trimmed}"


def iiif_base_url(uri: str, api_base: str | None = None) -> str:
    """Resolve and normalize an info URL into the image's base URI."""
    return normalize_iiif_base(resolve_info_url(uri, api_base))


def info_url(base_uri: str) -> str:
    return f"{normalize_iiif_base(base_uri)}/{IIIF_IMAGE['info_document']}"


def full_url(
    base_uri: str,
    region: str | Rectangle = DEFAULTS['region'],
    size: str = DEFAULTS['size'],
    rotation: int | float | str = DEFAULTS['rotation'],
    quality: str = DEFAULTS['quality'],
    format: str = DEFAULTS['format'],
) -> str:
    """Compose `{base}/{region}/{size}/{rotation}/{quality}.{format}`."""
    if isinstance(region, Rectangle):
        region = region.region_token
    return f"{normalize_iiif_base(base_uri)}/{region}/{size}/{rotation}/{quality}.{format}"


def thumbnail_size_token(region_width: int, desired_size: int) -> str:
    """
    IIIF size parameter for a thumbnail of a region.

    A region narrower than the desired thumbnail is requested at `max`, since
    asking for `"<desired>,"` would make the server upscale it.
    """
    return "max" if region_width < desired_size else f"{desired_size},"


def region_url(
    base_uri: str,
    selector: str | Rectangle,
    desired_thumbnail_size: int = IIIF_IMAGE['thumbnail_size_px'],
    extent: SupportsBounds | None = None,
) -> str:
    """
    Thumbnail URL for the region named by a fragment selector.

    Args:
        base_uri: Image base URI (info URLs are accepted).
        selector: `xywh=pixel:` value or an already parsed pixel rectangle.
        desired_thumbnail_size: Requested thumbnail width in pixels.
        extent: Delivery cap the region is clamped to; None clamps without bounds.

    Raises:
        InvalidSelector: If the selector cannot be parsed.
    """
    rect = parse_selector(selector) if isinstance(selector, str) else selector
    region = clamp_region(rect, extent)
    size = thumbnail_size_token(region.w, desired_thumbnail_size)
    return full_url(base_uri, region=region, size=size)


def scaled_size_token(scale: float, extent: SupportsBounds) -> str:
    """
    IIIF size parameter for the full image scaled by `scale`.

    Scales of 1 or more are requested at `max` so the server never upscales;
    smaller scales request `round(max_width * scale)` pixels wide.

    Raises:
        ValueError: If `scale` is not a positive finite number.
    """
    if not math.isfinite(scale) or scale <= 0:
        raise ValueError(f"scale must be a positive finite number, got {scale}")
    if scale >= 1:
        return "max"
    return f"{max(1, round_half_up(extent.max_width * scale))},"


def scaled_url(base_uri: str, scale: float, extent: SupportsBounds) -> str:
    return full_url(base_uri, size=scaled_size_token(scale, extent))


def coordinates_from_geojson(value: str | Mapping[str, Any] | None) -> Region | None:
    """
    Integer bounding region of a stored GeoJSON Feature or Polygon.

    No vertical flip is applied. Returns None for empty input, invalid JSON,
    non-polygon geometry or malformed rings.
    """
    if value is None or value == "":
        return None
    try:
        data = json.loads(value) if isinstance(value, str) else value
    except json.JSONDecodeError:
        return None
    if not isinstance(data, Mapping):
        return None

    geometry = data.get("geometry") if data.get("type") == "Feature" else data
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Polygon":
        return None
    try:
        return clamp_region(polygon_bounds(geometry.get("coordinates")))
    except MalformedGeometry:
        return None
