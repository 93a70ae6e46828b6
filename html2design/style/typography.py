"""Typography parsing: font family/variant, line height, letter spacing, text
alignment, decoration and transform.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .colors import parse_color
from .paints import BLACK, RGBA

ROOT_FONT_SIZE = 16.0
DEFAULT_FAMILY = "Inter"
DEFAULT_VARIANT = "Regular"

_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")
_WORD_START_RE = re.compile(r"\b\w")

# CSS family -> family available in the design tool
FONT_ALIASES = {
    # Sans-serif
    "arial": "Inter",
    "helvetica": "Inter",
    "helvetica neue": "Inter",
    "sans-serif": "Inter",
    "system-ui": "Inter",
    "-apple-system": "Inter",
    "blinkmacsystemfont": "Inter",
    "segoe ui": "Inter",
    "roboto": "Roboto",
    "ubuntu": "Inter",
    "cantarell": "Inter",
    "fira sans": "Inter",
    "droid sans": "Inter",
    "oxygen": "Inter",
    "open sans": "Open Sans",
    "lato": "Inter",
    "montserrat": "Inter",
    "source sans pro": "Inter",
    "impact": "Inter",
    "trebuchet ms": "Inter",
    "verdana": "Inter",
    "tahoma": "Inter",
    "comic sans ms": "Inter",
    # Serif
    "times": "Times New Roman",
    "times new roman": "Times New Roman",
    "serif": "Times New Roman",
    "georgia": "Georgia",
    "garamond": "Times New Roman",
    "baskerville": "Times New Roman",
    "palatino": "Times New Roman",
    # Monospace
    "courier": "Courier New",
    "courier new": "Courier New",
    "monospace": "Courier New",
    "monaco": "Courier New",
    "menlo": "Courier New",
    "consolas": "Courier New",
    "dejavu sans mono": "Courier New",
    "liberation mono": "Courier New",
    "source code pro": "Courier New",
    "fira code": "Courier New",
}


class LineHeightUnit(str, Enum):
    AUTO = "AUTO"
    PIXELS = "PIXELS"
    PERCENT = "PERCENT"


class TextAlign(str, Enum):
    LEFT = "LEFT"
    CENTER = "CENTER"
    RIGHT = "RIGHT"
    JUSTIFIED = "JUSTIFIED"


class TextDecoration(str, Enum):
    NONE = "NONE"
    UNDERLINE = "UNDERLINE"
    STRIKETHROUGH = "STRIKETHROUGH"


@dataclass(frozen=True)
class FontName:
    family: str = DEFAULT_FAMILY
    style: str = DEFAULT_VARIANT

    def to_dict(self) -> dict:
        return {"family": self.family, "style": self.style}


DEFAULT_FONT = FontName(DEFAULT_FAMILY, DEFAULT_VARIANT)


@dataclass(frozen=True)
class LineHeight:
    unit: LineHeightUnit = LineHeightUnit.AUTO
    value: Optional[float] = None

    def to_dict(self) -> dict:
        if self.unit == LineHeightUnit.AUTO:
            return {"unit": self.unit.value}
        return {"unit": self.unit.value, "value": self.value}


@dataclass(frozen=True)
class LetterSpacing:
    unit: LineHeightUnit
    value: float

    def to_dict(self) -> dict:
        return {"unit": self.unit.value, "value": self.value}


@dataclass(frozen=True)
class Typography:
    font: FontName = DEFAULT_FONT
    size: float = ROOT_FONT_SIZE
    line_height: LineHeight = LineHeight()
    align: TextAlign = TextAlign.LEFT
    decoration: TextDecoration = TextDecoration.NONE
    transform: str = "none"
    letter_spacing: Optional[LetterSpacing] = None
    color: RGBA = BLACK


def _number(value: str) -> Optional[float]:
    match = _NUMBER_RE.match(value.strip())
    return float(match.group(0)) if match else None


def parse_font_size(value: Optional[str], default: float = ROOT_FONT_SIZE) -> float:
    if not value:
        return default
    text = value.strip().lower()
    number = _number(text)
    if number is None or number <= 0:
        return default
    if text.endswith("rem"):
        return number * ROOT_FONT_SIZE
    if text.endswith("em"):
        return number * default
    if text.endswith("pt"):
        return number * 4 / 3
    return number


def parse_line_height(value, font_size: Optional[float] = None) -> LineHeight:
    """CSS line-height -> LineHeight.

    Unitless values and small plain numbers are multipliers of the font
    size; px/em/rem resolve to pixels; % stays a percentage.
    """
    size = font_size or ROOT_FONT_SIZE
    if value is None or value == "":
        return LineHeight()

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 10:
            return LineHeight(LineHeightUnit.PIXELS, value * size)
        return LineHeight(LineHeightUnit.PIXELS, float(value))

    text = str(value).strip().lower()
    if text == "normal":
        return LineHeight()
    number = _number(text)
    if number is None:
        return LineHeight()

    if text.endswith("px"):
        return LineHeight(LineHeightUnit.PIXELS, number)
    if text.endswith("rem"):
        return LineHeight(LineHeightUnit.PIXELS, number * ROOT_FONT_SIZE)
    if text.endswith("em"):
        return LineHeight(LineHeightUnit.PIXELS, number * size)
    if text.endswith("%"):
        return LineHeight(LineHeightUnit.PERCENT, number)
    if re.fullmatch(r"[-+]?(\d+\.?\d*|\.\d+)", text):
        return LineHeight(LineHeightUnit.PIXELS, number * size)
    return LineHeight()


def parse_letter_spacing(value: Optional[str]) -> Optional[LetterSpacing]:
    if not value:
        return None
    text = value.strip().lower()
    if text == "normal":
        return None
    number = _number(text)
    if number is None:
        return None
    if text.endswith("px"):
        return LetterSpacing(LineHeightUnit.PIXELS, number)
    if text.endswith("em"):
        return LetterSpacing(LineHeightUnit.PERCENT, number * 100)
    return LetterSpacing(LineHeightUnit.PIXELS, number)


def parse_font_family(value: Optional[str]) -> str:
    """First family of a font-family list, mapped onto a supported family.

    Unknown families pass through unchanged; an empty list gives Inter.
    """
    if not value:
        return DEFAULT_FAMILY
    first = value.split(",")[0].strip().strip("'\"").strip()
    if not first:
        return DEFAULT_FAMILY
    return FONT_ALIASES.get(first.lower(), first)


def _weight(value) -> int:
    if value is None:
        return 400
    text = str(value).strip().lower()
    if text == "bold":
        return 700
    if text in ("normal", ""):
        return 400
    if text == "lighter":
        return 300
    if text == "bolder":
        return 700
    number = _number(text)
    return int(number) if number else 400


def parse_font_variant(weight=None, style: Optional[str] = None) -> str:
    """Weight + style to a named variant (Thin..Black, with Italic forms)."""
    w = _weight(weight)
    italic = (style or "normal").strip().lower().startswith(("italic", "oblique"))

    if italic:
        if w >= 800:
            return "Black Italic"
        if w >= 700:
            return "Bold Italic"
        if w >= 600:
            return "SemiBold Italic"
        if w >= 500:
            return "Medium Italic"
        if w <= 200:
            return "Thin Italic"
        if w <= 300:
            return "Light Italic"
        return "Italic"

    if w >= 900:
        return "Black"
    if w >= 800:
        return "ExtraBold"
    if w >= 700:
        return "Bold"
    if w >= 600:
        return "SemiBold"
    if w >= 500:
        return "Medium"
    if w <= 100:
        return "Thin"
    if w <= 200:
        return "ExtraLight"
    if w <= 300:
        return "Light"
    return DEFAULT_VARIANT


_ALIGN = {
    "left": TextAlign.LEFT,
    "start": TextAlign.LEFT,
    "center": TextAlign.CENTER,
    "centre": TextAlign.CENTER,
    "right": TextAlign.RIGHT,
    "end": TextAlign.RIGHT,
    "justify": TextAlign.JUSTIFIED,
}


def parse_text_align(value: Optional[str]) -> TextAlign:
    return _ALIGN.get((value or "").strip().lower(), TextAlign.LEFT)


def parse_text_decoration(value: Optional[str]) -> TextDecoration:
    words = (value or "").lower().split()
    if "underline" in words:
        return TextDecoration.UNDERLINE
    if "line-through" in words:
        return TextDecoration.STRIKETHROUGH
    return TextDecoration.NONE


def apply_text_transform(text: str, transform: Optional[str]) -> str:
    mode = (transform or "none").strip().lower()
    if mode == "uppercase":
        return text.upper()
    if mode == "lowercase":
        return text.lower()
    if mode == "capitalize":
        return _WORD_START_RE.sub(lambda m: m.group(0).upper(), text)
    return text


def parse_typography(styles: dict) -> Typography:
    size = parse_font_size(styles.get("fontSize"))
    return Typography(
        font=FontName(
            parse_font_family(styles.get("fontFamily")),
            parse_font_variant(styles.get("fontWeight"), styles.get("fontStyle")),
        ),
        size=size,
        line_height=parse_line_height(styles.get("lineHeight"), size),
        align=parse_text_align(styles.get("textAlign")),
        decoration=parse_text_decoration(styles.get("textDecoration") or styles.get("textDecorationLine")),
        transform=(styles.get("textTransform") or "none").strip().lower(),
        letter_spacing=parse_letter_spacing(styles.get("letterSpacing")),
        color=parse_color(styles.get("color")) if styles.get("color") else BLACK,
    )
