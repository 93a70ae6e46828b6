"""CSS color parsing.

Supports hex (#rgb, #rrggbb, plus the alpha forms #rgba / #rrggbbaa),
rgb()/rgba(), hsl()/hsla() in both comma and space-separated syntax, and a
small named-color table. Anything unrecognized resolves to opaque black.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .paints import BLACK, RGBA

NAMED_COLORS = {
    "transparent": RGBA(0, 0, 0, 0),
    "black": RGBA(0, 0, 0, 1),
    "white": RGBA(1, 1, 1, 1),
    "red": RGBA(1, 0, 0, 1),
    "green": RGBA(0, 0.5, 0, 1),
    "blue": RGBA(0, 0, 1, 1),
    "yellow": RGBA(1, 1, 0, 1),
    "cyan": RGBA(0, 1, 1, 1),
    "magenta": RGBA(1, 0, 1, 1),
    "gray": RGBA(0.5, 0.5, 0.5, 1),
    "grey": RGBA(0.5, 0.5, 0.5, 1),
}

_FUNC_RE = re.compile(r"^(rgba?|hsla?)\(\s*([^)]*)\)$")
_HEX_RE = re.compile(r"^#([0-9a-f]{3,8})$")
_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")


def _split_args(body: str) -> List[str]:
    # "255, 0, 0, 0.5" and "255 0 0 / 50%" both become four tokens
    body = body.replace("/", " ").replace(",", " ")
    return [part for part in body.split() if part]


def _number(token: str) -> Optional[float]:
    match = _NUMBER_RE.match(token)
    return float(match.group(0)) if match else None


def _channel(token: str) -> Optional[float]:
    """An rgb channel as 0..1 (plain 0-255 or a percentage)."""
    value = _number(token)
    if value is None:
        return None
    if token.endswith("%"):
        return value / 100
    return value / 255


def _alpha(token: Optional[str]) -> float:
    if token is None:
        return 1.0
    value = _number(token)
    if value is None:
        return 1.0
    return value / 100 if token.endswith("%") else value


def _hue(token: str) -> Optional[float]:
    value = _number(token)
    if value is None:
        return None
    if token.endswith("turn"):
        value *= 360
    elif token.endswith("rad"):
        value = value * 180 / 3.141592653589793
    return value % 360


def hsl_to_rgb(h: float, s: float, l: float) -> tuple:
    """h in degrees, s and l in 0..1."""
    c = (1 - abs(2 * l - 1)) * s
    hp = h / 60
    x = c * (1 - abs(hp % 2 - 1))
    m = l - c / 2
    if hp < 1:
        r, g, b = c, x, 0.0
    elif hp < 2:
        r, g, b = x, c, 0.0
    elif hp < 3:
        r, g, b = 0.0, c, x
    elif hp < 4:
        r, g, b = 0.0, x, c
    elif hp < 5:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x
    return r + m, g + m, b + m


def _parse_hex(digits: str) -> Optional[RGBA]:
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) not in (6, 8):
        return None
    r, g, b = (int(digits[i:i + 2], 16) / 255 for i in (0, 2, 4))
    a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
    return RGBA(r, g, b, a)


def _parse_function(name: str, body: str) -> Optional[RGBA]:
    args = _split_args(body)
    if len(args) < 3:
        return None
    alpha = _alpha(args[3] if len(args) > 3 else None)

    if name.startswith("rgb"):
        channels = [_channel(tok) for tok in args[:3]]
        if any(c is None for c in channels):
            return None
        return RGBA(channels[0], channels[1], channels[2], alpha)

    hue = _hue(args[0])
    sat = _number(args[1])
    light = _number(args[2])
    if hue is None or sat is None or light is None:
        return None
    r, g, b = hsl_to_rgb(hue, max(0.0, min(1.0, sat / 100)), max(0.0, min(1.0, light / 100)))
    return RGBA(r, g, b, alpha)


def try_parse_color(value: Optional[str]) -> Optional[RGBA]:
    """Parse a color, returning None instead of the black fallback."""
    if not value:
        return None
    color = value.strip().lower()

    match = _HEX_RE.match(color)
    if match:
        return _parse_hex(match.group(1))

    match = _FUNC_RE.match(color)
    if match:
        return _parse_function(match.group(1), match.group(2))

    return NAMED_COLORS.get(color)


def parse_color(value: Optional[str]) -> RGBA:
    """Parse a CSS color string into RGBA channels in [0, 1].

    Unparseable input yields opaque black.
    """
    return try_parse_color(value) or BLACK
