"""Geometry and effect parsing: corner radius, shadows, borders, opacity,
auto layout and background-image placement.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .colors import try_parse_color
from .gradients import split_top_level
from .paints import RGBA, EffectType, ScaleMode, ShadowEffect, Stroke, Transform

_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")
_LENGTH_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)(px|em|rem|pt)?$")
_BORDER_STYLES = {"solid", "dashed", "dotted", "double", "groove", "ridge", "inset", "outset"}
_BORDER_WIDTH_KEYWORDS = {"thin": 1.0, "medium": 3.0, "thick": 5.0}
_DEFAULT_SHADOW_COLOR = RGBA(0, 0, 0, 0.25)


def _number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    match = _NUMBER_RE.match(str(value).strip())
    return float(match.group(0)) if match else None


def _tokens(value: str) -> List[str]:
    return split_top_level(value, sep=" ")


def parse_border_radius(value) -> float:
    """First numeric token of border-radius; 0 when absent or malformed."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    number = _number(value) if value else None
    return number if number is not None and number > 0 else 0.0


def parse_box_shadow(value: Optional[str]) -> List[ShadowEffect]:
    """First layer of box-shadow as a drop (or inner) shadow."""
    if not value or value.strip().lower() == "none":
        return []
    layers = split_top_level(value)
    if not layers:
        return []

    lengths: List[float] = []
    color: Optional[RGBA] = None
    inset = False
    for token in _tokens(layers[0]):
        lowered = token.lower()
        if lowered == "inset":
            inset = True
        elif _LENGTH_RE.match(lowered):
            lengths.append(float(_NUMBER_RE.match(lowered).group(0)))
        elif color is None:
            color = try_parse_color(lowered)

    if len(lengths) < 2:
        return []
    blur = lengths[2] if len(lengths) > 2 else 0.0
    spread = lengths[3] if len(lengths) > 3 else 0.0
    return [ShadowEffect(
        offset_x=lengths[0],
        offset_y=lengths[1],
        radius=max(0.0, blur),
        spread=spread,
        color=color or _DEFAULT_SHADOW_COLOR,
        type=EffectType.INNER_SHADOW if inset else EffectType.DROP_SHADOW,
    )]


def parse_border(value: Optional[str]) -> Optional[Stroke]:
    """`<width> <style> <color>` shorthand to a single stroke."""
    if not value:
        return None
    width: Optional[float] = None
    style: Optional[str] = None
    color: Optional[RGBA] = None
    for token in _tokens(value):
        lowered = token.lower()
        if lowered in ("none", "hidden"):
            return None
        if lowered in _BORDER_STYLES:
            style = lowered
        elif lowered in _BORDER_WIDTH_KEYWORDS:
            width = _BORDER_WIDTH_KEYWORDS[lowered]
        elif _LENGTH_RE.match(lowered):
            width = float(_NUMBER_RE.match(lowered).group(0))
        elif color is None:
            color = try_parse_color(lowered)
    if width is None or width <= 0 or style is None:
        return None
    return Stroke(color=color or RGBA(0, 0, 0, 1), weight=width,
                  style=style if style in ("dashed", "dotted") else "solid")


def parse_opacity(value) -> float:
    number = _number(value) if value not in (None, "") else None
    if number is None:
        return 1.0
    if isinstance(value, str) and value.strip().endswith("%"):
        number /= 100
    return max(0.0, min(1.0, number))


class LayoutMode(str, Enum):
    HORIZONTAL = "HORIZONTAL"
    VERTICAL = "VERTICAL"


@dataclass(frozen=True)
class Padding:
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0


@dataclass(frozen=True)
class AutoLayout:
    mode: LayoutMode
    item_spacing: float = 0.0
    padding: Padding = Padding()

    def to_dict(self) -> dict:
        return {
            "layoutMode": self.mode.value,
            "itemSpacing": self.item_spacing,
            "paddingTop": self.padding.top,
            "paddingRight": self.padding.right,
            "paddingBottom": self.padding.bottom,
            "paddingLeft": self.padding.left,
        }


def parse_padding(styles: dict) -> Padding:
    values = [_number(tok) or 0.0 for tok in (styles.get("padding") or "").split()][:4]
    if len(values) == 1:
        top = right = bottom = left = values[0]
    elif len(values) == 2:
        top = bottom = values[0]
        right = left = values[1]
    elif len(values) == 3:
        top, right, bottom = values
        left = right
    elif len(values) == 4:
        top, right, bottom, left = values
    else:
        top = right = bottom = left = 0.0

    def side(key: str, fallback: float) -> float:
        number = _number(styles.get(key))
        return number if number is not None else fallback

    return Padding(
        top=side("paddingTop", top),
        right=side("paddingRight", right),
        bottom=side("paddingBottom", bottom),
        left=side("paddingLeft", left),
    )


def parse_auto_layout(styles: dict) -> Optional[AutoLayout]:
    """flex / grid containers become auto-layout frames."""
    display = (styles.get("display") or "").strip().lower()
    if display not in ("flex", "inline-flex", "grid", "inline-grid"):
        return None
    direction = (styles.get("flexDirection") or "").strip().lower()
    mode = LayoutMode.VERTICAL if direction.startswith("column") else LayoutMode.HORIZONTAL
    gap = _number(styles.get("gap") or styles.get("columnGap") or styles.get("rowGap")) or 0.0
    return AutoLayout(mode=mode, item_spacing=max(0.0, gap), padding=parse_padding(styles))


_POSITION_KEYWORDS = {"left": 0.0, "top": 0.0, "center": 0.5, "right": 1.0, "bottom": 1.0}


def _position_fraction(token: Optional[str]) -> float:
    if not token:
        return 0.0
    token = token.lower()
    if token in _POSITION_KEYWORDS:
        return _POSITION_KEYWORDS[token]
    if token.endswith("%"):
        return (_number(token) or 0.0) / 100
    # pixel offsets have no meaning without the image size
    return 0.0


def background_position(value: Optional[str]) -> Tuple[float, float]:
    parts = (value or "0% 0%").split()
    x_tok = parts[0] if parts else None
    y_tok = parts[1] if len(parts) > 1 else None
    # a lone vertical keyword describes y, not x
    if x_tok in ("top", "bottom") and y_tok is None:
        return 0.5, _position_fraction(x_tok)
    return _position_fraction(x_tok), _position_fraction(y_tok)


def background_scale_mode(size: Optional[str], position: Optional[str] = None) -> Tuple[ScaleMode, Optional[Transform]]:
    """background-size to (scale mode, optional image transform).

    cover -> FILL, contain -> FIT, auto -> CROP, explicit size -> CROP
    translated by background-position.
    """
    if not size:
        return ScaleMode.FILL, None
    lowered = size.strip().lower()
    if lowered == "cover":
        return ScaleMode.FILL, None
    if lowered == "contain":
        return ScaleMode.FIT, None
    if "auto" in lowered:
        return ScaleMode.CROP, None
    x, y = background_position(position)
    return ScaleMode.CROP, ((1.0, 0.0, x - 0.5), (0.0, 1.0, y - 0.5))
