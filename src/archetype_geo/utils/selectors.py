"""Parsing and serialization of `xywh=pixel:` Fragment-Selector values."""

import math
import re
from collections.abc import Mapping
from typing import Any

import numpy as np

from .const import FRAGMENT_SELECTOR
from .errors import InvalidSelector
from .rectangles import Rectangle
from .schemas import ViewerAnnotation

_NUMBER = r"(-?[0-9]+(?:\.[0-9]+)?)"
SELECTOR_PATTERN = re.compile(
    re.escape(FRAGMENT_SELECTOR['scheme']) + ",".join([_NUMBER] * 4)
)


def _format_number(value: float) -> str:
    """Shortest positional decimal for `value`, without a trailing `.0` or exponent."""
    if not math.isfinite(value):
        raise InvalidSelector(f"Selector components must be finite, got {value}")
    if value == 0:
        return "0"
    return np.format_float_positional(float(value), trim="-")


def parse_selector(value: str) -> Rectangle[float]:
    """
    Parse a Fragment-Selector value of the exact form `xywh=pixel:x,y,w,h`.

    Components are integers or decimals; no whitespace is allowed anywhere.

    Args:
        value: The selector string.

    Returns:
        Rectangle[float]: The pixel-space rectangle.

    Raises:
        InvalidSelector: If the value does not match the pattern exactly.
    """
    if not isinstance(value, str):
        raise InvalidSelector(f"Selector must be a string, got {type(value).__name__}")

    match = SELECTOR_PATTERN.fullmatch(value)
    if match is None:
        raise InvalidSelector(f"Not an xywh=pixel selector: {value!r}")
    return Rectangle(*(float(group) for group in match.groups()))


def format_selector(rect: Rectangle) -> str:
    """
    Serialize a pixel-space rectangle as `xywh=pixel:x,y,w,h`.

    Values are written as-is; rounding belongs to `clamp_region`.

    Raises:
        InvalidSelector: If a component is NaN or infinite.
    """
    return FRAGMENT_SELECTOR['scheme'] + ",".join(_format_number(v) for v in rect)


def selector_value(annotation: ViewerAnnotation | Mapping[str, Any]) -> str | None:
    """Read `target.selector.value` from a viewer annotation or its JSON form."""
    if isinstance(annotation, ViewerAnnotation):
        return annotation.selector
    try:
        value = annotation["target"]["selector"]["value"]
    except (KeyError, TypeError):
        return None
    return value if isinstance(value, str) else None
