"""StyleTranslator: an element's computed styles -> ParsedStyle.

translate_styles() is a pure function and never raises; each property
falls back independently (color -> opaque black, radius -> 0,
alignment -> LEFT, line height -> AUTO, family -> Inter).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .colors import parse_color, try_parse_color
from .effects import (
    AutoLayout,
    background_scale_mode,
    parse_auto_layout,
    parse_border,
    parse_border_radius,
    parse_box_shadow,
    parse_opacity,
)
from .gradients import parse_gradient
from .paints import RGBA, GradientPaint, Paint, ScaleMode, ShadowEffect, SolidPaint, Stroke, Transform
from .typography import Typography, parse_typography


@dataclass(frozen=True)
class BackgroundImage:
    """A background-image reference plus how to place it."""
    url: str
    scale_mode: ScaleMode = ScaleMode.FILL
    transform: Optional[Transform] = None


@dataclass(frozen=True)
class ParsedStyle:
    background: Optional[RGBA] = None
    gradient: Optional[GradientPaint] = None
    text_color: RGBA = RGBA(0, 0, 0, 1)
    stroke: Optional[Stroke] = None
    effects: Tuple[ShadowEffect, ...] = ()
    typography: Typography = field(default_factory=Typography)
    corner_radius: float = 0.0
    opacity: float = 1.0
    auto_layout: Optional[AutoLayout] = None
    background_image: Optional[BackgroundImage] = None

    @property
    def fills(self) -> List[Paint]:
        """Static fills in paint order: background color, then gradient."""
        paints: List[Paint] = []
        if self.background is not None and not self.background.is_transparent:
            paints.append(SolidPaint(self.background))
        if self.gradient is not None:
            paints.append(self.gradient)
        return paints

    @property
    def strokes(self) -> List[Stroke]:
        return [self.stroke] if self.stroke is not None else []


def _stroke(styles: Mapping[str, str]) -> Optional[Stroke]:
    stroke = parse_border(styles.get("border"))
    if stroke is not None:
        return stroke
    # longhand properties as reported by getComputedStyle
    width, style, color = styles.get("borderWidth"), styles.get("borderStyle"), styles.get("borderColor")
    if width and style:
        return parse_border(" ".join(p for p in (width, style, color) if p))
    return None


def _background_image(styles: Mapping[str, str]) -> Optional[BackgroundImage]:
    url = (styles.get("backgroundImage") or "").strip()
    if not url or url.lower() == "none":
        return None
    scale_mode, transform = background_scale_mode(
        styles.get("backgroundSize"), styles.get("backgroundPosition")
    )
    return BackgroundImage(url=url, scale_mode=scale_mode, transform=transform)


def translate_styles(styles: Optional[Mapping[str, str]]) -> ParsedStyle:
    """Translate a camelCase computed-style mapping into a ParsedStyle."""
    styles = dict(styles or {})
    typography = parse_typography(styles)
    background = try_parse_color(styles.get("backgroundColor"))
    if background is None and styles.get("background"):
        background = try_parse_color(styles["background"])

    return ParsedStyle(
        background=background,
        gradient=parse_gradient(styles.get("backgroundGradient")),
        text_color=parse_color(styles.get("color")) if styles.get("color") else typography.color,
        stroke=_stroke(styles),
        effects=tuple(parse_box_shadow(styles.get("boxShadow"))),
        typography=typography,
        corner_radius=parse_border_radius(styles.get("borderRadius")),
        opacity=parse_opacity(styles.get("opacity")),
        auto_layout=parse_auto_layout(styles),
        background_image=_background_image(styles),
    )


def style_summary(parsed: ParsedStyle) -> Dict[str, object]:
    """Compact dict of what was recognized; used in debug logging."""
    return {
        "fills": len(parsed.fills),
        "stroke": parsed.stroke is not None,
        "effects": len(parsed.effects),
        "radius": parsed.corner_radius,
        "font": f"{parsed.typography.font.family} {parsed.typography.font.style}",
        "layout": parsed.auto_layout.mode.value if parsed.auto_layout else None,
        "image": parsed.background_image.url if parsed.background_image else None,
    }
