"""Pydantic models for extractor input and run configuration.

ExtractedElement accepts the extractor's raw JSON record (camelCase keys,
element-level background fields) and normalizes it once at the boundary so
the rest of the package can rely on upper-cased tags, trimmed text and
camelCase style keys.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import settings

_KEBAB_RE = re.compile(r"-([a-z])")

# Element-level extractor fields that describe the background
_BACKGROUND_PROPERTY_KEYS = {
    "size": "backgroundSize",
    "position": "backgroundPosition",
    "repeat": "backgroundRepeat",
}

_GRADIENT_PREFIXES = ("linear-gradient", "radial-gradient", "conic-gradient",
                      "repeating-linear-gradient", "repeating-radial-gradient")


def _camel_case(key: str) -> str:
    """'font-size' -> 'fontSize'. Custom properties (--x) are kept as-is."""
    if key.startswith("--"):
        return key
    return _KEBAB_RE.sub(lambda m: m.group(1).upper(), key.strip().lower()) if "-" in key else key


class Bounds(BaseModel):
    """Absolute pixel rectangle of an element."""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def is_degenerate(self) -> bool:
        """True when either side rounds to less than one pixel."""
        return round(self.width) < 1 or round(self.height) < 1

    def union(self, other: "Bounds") -> "Bounds":
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        right = max(self.x + self.width, other.x + other.width)
        bottom = max(self.y + self.height, other.y + other.height)
        return Bounds(x=left, y=top, width=right - left, height=bottom - top)


class ExtractedElement(BaseModel):
    """One visual element as produced by the page extractor."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    tag: str = Field(default="DIV", alias="tagName")
    text: str = Field(default="", alias="textContent")
    class_name: str = Field(default="", alias="className")
    bounds: Optional[Bounds] = None
    styles: Dict[str, str] = Field(default_factory=dict)
    src: Optional[str] = None
    z_index: Optional[int] = Field(default=None, alias="zIndex")
    children: Tuple["ExtractedElement", ...] = ()

    @model_validator(mode="before")
    @classmethod
    def fold_background_fields(cls, data: Any) -> Any:
        """Move element-level background fields into ``styles``."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        styles = dict(data.get("styles") or {})

        image = data.pop("backgroundImage", None)
        if image and "backgroundImage" not in styles:
            styles["backgroundImage"] = image
        gradient = data.pop("backgroundGradient", None)
        if gradient and "backgroundGradient" not in styles:
            styles["backgroundGradient"] = gradient
        props = data.pop("backgroundProperties", None) or styles.pop("backgroundProperties", None)
        if isinstance(props, dict):
            for key, style_key in _BACKGROUND_PROPERTY_KEYS.items():
                if props.get(key) and style_key not in styles:
                    styles[style_key] = props[key]

        data["styles"] = styles
        return data

    @field_validator("tag", mode="before")
    @classmethod
    def upper_tag(cls, v: Any) -> str:
        return str(v or "DIV").strip().upper()

    @field_validator("text", mode="before")
    @classmethod
    def trim_text(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator("class_name", mode="before")
    @classmethod
    def join_class_list(cls, v: Any) -> str:
        if isinstance(v, (list, tuple)):
            return " ".join(str(c) for c in v)
        return str(v) if v is not None else ""

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Optional[str]:
        return str(v) if v not in (None, "") else None

    @field_validator("z_index", mode="before")
    @classmethod
    def parse_z_index(cls, v: Any) -> Optional[int]:
        # "auto" and other non-numeric values are treated as unset
        if v is None or isinstance(v, bool):
            return None
        try:
            return int(float(v))
        except (TypeError, ValueError):
            return None

    @field_validator("styles", mode="before")
    @classmethod
    def normalize_styles(cls, v: Any) -> Dict[str, str]:
        if not v:
            return {}
        out: Dict[str, str] = {}
        for key, value in dict(v).items():
            if value is None or isinstance(value, (dict, list)):
                continue
            out[_camel_case(str(key))] = str(value).strip()
        # Gradients frequently arrive as background-image
        image = out.get("backgroundImage", "")
        if image.lower().startswith(_GRADIENT_PREFIXES):
            out.setdefault("backgroundGradient", image)
            del out["backgroundImage"]
        return out

    @property
    def z_order(self) -> int:
        """z-index used for sorting; missing counts as 0."""
        return self.z_index if self.z_index is not None else 0

    @property
    def class_names(self) -> List[str]:
        return [c for c in self.class_name.split() if c]

    def style(self, key: str, default: str = "") -> str:
        return self.styles.get(key, default)


ExtractedElement.model_rebuild()


def parse_elements(payload: Any) -> List[ExtractedElement]:
    """Parse extractor output into elements.

    Accepts a list of element records or a page document with an
    ``elements`` list (as written by the extractor service).
    """
    if isinstance(payload, dict):
        payload = payload.get("elements", [])
    if not isinstance(payload, list):
        raise ValueError("Invalid element payload: expected a list or an object with 'elements'")
    return [
        item if isinstance(item, ExtractedElement) else ExtractedElement.model_validate(item)
        for item in payload
    ]


class ConversionConfig(BaseModel):
    """Per-run options. Defaults come from html2design.settings."""
    model_config = ConfigDict(populate_by_name=True)

    max_concurrent_downloads: int = Field(
        default=settings.MAX_CONCURRENT_DOWNLOADS, ge=1, alias="maxConcurrentDownloads",
    )
    asset_batch_size: int = Field(
        default=settings.ASSET_BATCH_SIZE, ge=1, alias="assetBatchSize",
    )
    asset_timeout_ms: int = Field(
        default=settings.ASSET_TIMEOUT_MS, ge=1, alias="assetTimeoutMs",
    )
    max_image_bytes: int = Field(
        default=settings.MAX_IMAGE_BYTES, ge=1, alias="maxImageBytes",
    )
    supported_image_types: Tuple[str, ...] = Field(
        default=settings.SUPPORTED_IMAGE_TYPES, alias="supportedImageTypes",
    )
    node_batch_size: int = Field(
        default=settings.NODE_BATCH_SIZE, ge=1, alias="nodeBatchSize",
    )
    inter_batch_delay_ms: int = Field(
        default=settings.INTER_BATCH_DELAY_MS, ge=0, alias="interBatchDelayMs",
    )
    slow_batch_threshold_ms: int = Field(
        default=settings.SLOW_BATCH_THRESHOLD_MS, ge=1, alias="slowBatchThresholdMs",
    )
    max_processing_time_ms: int = Field(
        default=settings.MAX_PROCESSING_TIME_MS, ge=1, alias="maxProcessingTimeMs",
    )
    cleanup_interval_batches: int = Field(
        default=settings.CLEANUP_INTERVAL_BATCHES, ge=1, alias="cleanupIntervalBatches",
    )
    cache_capacity: int = Field(
        default=settings.ASSET_CACHE_CAPACITY, ge=1, alias="cacheCapacity",
    )
    viewport_width: int = Field(default=settings.VIEWPORT_WIDTH, ge=1, alias="viewportWidth")
    viewport_height: int = Field(default=settings.VIEWPORT_HEIGHT, ge=1, alias="viewportHeight")
    document_title: str = Field(default="", alias="documentTitle")

    @field_validator("supported_image_types", mode="before")
    @classmethod
    def lower_types(cls, v: Any) -> Tuple[str, ...]:
        if isinstance(v, str):
            v = v.split(",")
        return tuple(str(t).strip().lower() for t in v if str(t).strip())

    @property
    def asset_timeout(self) -> float:
        return self.asset_timeout_ms / 1000

    @property
    def inter_batch_delay(self) -> float:
        return self.inter_batch_delay_ms / 1000

    @property
    def max_processing_time(self) -> float:
        return self.max_processing_time_ms / 1000
