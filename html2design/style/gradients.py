"""CSS gradient parsing (linear, radial and conic).

The gradient transform is the 2x3 affine matrix the design tool expects:
``[[cos, -sin, 0.5], [sin, cos, 0.5]]`` for the CSS angle, identity for
radial gradients.
"""

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional

from .colors import try_parse_color
from .paints import IDENTITY_TRANSFORM, ColorStop, GradientPaint, PaintType, Transform

logger = logging.getLogger(__name__)

DEFAULT_ANGLE = 180.0  # "to bottom"

DIRECTION_ANGLES = {
    "to top": 0.0,
    "to right": 90.0,
    "to bottom": 180.0,
    "to left": 270.0,
    "to top right": 45.0,
    "to right top": 45.0,
    "to bottom right": 135.0,
    "to right bottom": 135.0,
    "to bottom left": 225.0,
    "to left bottom": 225.0,
    "to top left": 315.0,
    "to left top": 315.0,
}

_GRADIENT_TYPES = {
    "linear-gradient": PaintType.GRADIENT_LINEAR,
    "repeating-linear-gradient": PaintType.GRADIENT_LINEAR,
    "radial-gradient": PaintType.GRADIENT_RADIAL,
    "repeating-radial-gradient": PaintType.GRADIENT_RADIAL,
    "conic-gradient": PaintType.GRADIENT_ANGULAR,
}

_ANGLE_RE = re.compile(r"(-?\d*\.?\d+)\s*(deg|turn|rad|grad)\b")
_POSITION_RE = re.compile(r"^(.*?)\s+(-?\d*\.?\d+)%(?:\s+-?\d*\.?\d+%)?$")
_RADIAL_SHAPE_WORDS = ("circle", "ellipse", "closest-", "farthest-", "at ")


def split_top_level(value: str, sep: str = ",") -> List[str]:
    """Split on ``sep`` outside parentheses, so rgba() stops stay whole."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in value:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def parse_angle(direction: str) -> float:
    """CSS gradient direction (named, deg, turn, rad, grad) to degrees."""
    direction = " ".join(direction.lower().split())
    if direction in DIRECTION_ANGLES:
        return DIRECTION_ANGLES[direction]
    match = _ANGLE_RE.search(direction)
    if not match:
        return DEFAULT_ANGLE
    value, unit = float(match.group(1)), match.group(2)
    if unit == "turn":
        return value * 360
    if unit == "rad":
        return math.degrees(value)
    if unit == "grad":
        return value * 0.9
    return value


def gradient_transform(angle: float, paint_type: PaintType) -> Transform:
    if paint_type == PaintType.GRADIENT_RADIAL:
        return IDENTITY_TRANSFORM
    radians = math.radians(angle)
    cos, sin = math.cos(radians), math.sin(radians)
    return ((cos, -sin, 0.5), (sin, cos, 0.5))


def _is_direction(part: str, paint_type: PaintType) -> bool:
    lowered = part.lower()
    if lowered.startswith("to ") or (_ANGLE_RE.search(lowered) and try_parse_color(lowered) is None):
        return True
    if paint_type == PaintType.GRADIENT_RADIAL:
        return any(word in lowered for word in _RADIAL_SHAPE_WORDS)
    if paint_type == PaintType.GRADIENT_ANGULAR:
        return lowered.startswith("from ") or lowered.startswith("at ")
    return False


def _parse_stop(raw: str, index: int, total: int) -> Optional[ColorStop]:
    position = index / max(1, total - 1)
    color_text = raw
    match = _POSITION_RE.match(raw)
    if match:
        color_text = match.group(1)
        position = float(match.group(2)) / 100
    color = try_parse_color(color_text)
    if color is None:
        return None
    return ColorStop(position=max(0.0, min(1.0, position)), color=color)


def parse_gradient(value: Optional[str]) -> Optional[GradientPaint]:
    """Parse a CSS gradient into a GradientPaint.

    Returns None when the value is not a gradient or has fewer than one
    usable color stop.
    """
    if not value:
        return None
    text = value.strip()
    open_idx = text.find("(")
    if open_idx <= 0 or not text.endswith(")"):
        return None
    paint_type = _GRADIENT_TYPES.get(text[:open_idx].strip().lower())
    if paint_type is None:
        return None

    parts = split_top_level(text[open_idx + 1:-1])
    if not parts:
        return None

    angle = DEFAULT_ANGLE
    if _is_direction(parts[0], paint_type):
        if paint_type != PaintType.GRADIENT_RADIAL:
            angle = parse_angle(parts[0])
        parts = parts[1:]

    stops: List[ColorStop] = []
    for index, raw in enumerate(parts):
        stop = _parse_stop(raw, index, len(parts))
        if stop is not None:
            stops.append(stop)
    if not stops:
        logger.debug("Gradient without usable stops: %s", value)
        return None

    return GradientPaint(
        type=paint_type,
        stops=tuple(stops),
        transform=gradient_transform(angle, paint_type),
        angle=angle,
    )

