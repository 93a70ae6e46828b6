"""Paint and effect primitives shared by the style parsers and the host layer.

Serialization (``to_dict``) follows the design tool's plugin API shapes:
colors as ``{r, g, b}`` in [0, 1] with alpha carried as paint opacity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

Transform = Tuple[Tuple[float, float, float], Tuple[float, float, float]]

IDENTITY_TRANSFORM: Transform = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0))


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class RGBA:
    r: float
    g: float
    b: float
    a: float = 1.0

    def __post_init__(self) -> None:
        for channel in ("r", "g", "b", "a"):
            object.__setattr__(self, channel, _clamp(float(getattr(self, channel))))

    @property
    def is_transparent(self) -> bool:
        return self.a == 0

    def rgb(self) -> Dict[str, float]:
        return {"r": self.r, "g": self.g, "b": self.b}

    def to_dict(self) -> Dict[str, float]:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}


BLACK = RGBA(0, 0, 0, 1)
WHITE = RGBA(1, 1, 1, 1)


class PaintType(str, Enum):
    SOLID = "SOLID"
    GRADIENT_LINEAR = "GRADIENT_LINEAR"
    GRADIENT_RADIAL = "GRADIENT_RADIAL"
    GRADIENT_ANGULAR = "GRADIENT_ANGULAR"
    IMAGE = "IMAGE"


class ScaleMode(str, Enum):
    FILL = "FILL"
    FIT = "FIT"
    CROP = "CROP"
    TILE = "TILE"


@dataclass(frozen=True)
class SolidPaint:
    color: RGBA
    type: PaintType = PaintType.SOLID

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "color": self.color.rgb(), "opacity": self.color.a}


@dataclass(frozen=True)
class ColorStop:
    position: float  # 0.0 - 1.0
    color: RGBA

    def to_dict(self) -> Dict[str, Any]:
        return {"position": self.position, "color": self.color.to_dict()}


@dataclass(frozen=True)
class GradientPaint:
    type: PaintType
    stops: Tuple[ColorStop, ...]
    transform: Transform = IDENTITY_TRANSFORM
    angle: float = 180.0  # degrees, CSS convention (0 = to top)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "gradientStops": [s.to_dict() for s in self.stops],
            "gradientTransform": [list(row) for row in self.transform],
        }


@dataclass(frozen=True)
class ImagePaint:
    image_hash: str
    scale_mode: ScaleMode = ScaleMode.FILL
    transform: Optional[Transform] = None
    type: PaintType = PaintType.IMAGE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "imageHash": self.image_hash,
            "scaleMode": self.scale_mode.value,
        }
        if self.transform is not None:
            data["imageTransform"] = [list(row) for row in self.transform]
        return data


Paint = Union[SolidPaint, GradientPaint, ImagePaint]


@dataclass(frozen=True)
class Stroke:
    """A single solid border."""
    color: RGBA
    weight: float = 1.0
    style: str = "solid"  # solid | dashed | dotted

    @property
    def dash_pattern(self) -> List[float]:
        if self.style == "dashed":
            return [self.weight * 3, self.weight * 2]
        if self.style == "dotted":
            return [self.weight, self.weight]
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paint": SolidPaint(self.color).to_dict(),
            "strokeWeight": self.weight,
            "dashPattern": self.dash_pattern,
        }


class EffectType(str, Enum):
    DROP_SHADOW = "DROP_SHADOW"
    INNER_SHADOW = "INNER_SHADOW"


@dataclass(frozen=True)
class ShadowEffect:
    offset_x: float
    offset_y: float
    radius: float
    color: RGBA = field(default_factory=lambda: RGBA(0, 0, 0, 0.25))
    spread: float = 0.0
    type: EffectType = EffectType.DROP_SHADOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "color": self.color.to_dict(),
            "offset": {"x": self.offset_x, "y": self.offset_y},
            "radius": self.radius,
            "spread": self.spread,
            "visible": True,
            "blendMode": "NORMAL",
        }
