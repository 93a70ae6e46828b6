"""TreeBuilder: recursively turn extracted elements into DesignNodes.

Per element:
1. reject missing bounds (validation error) and degenerate bounds (no node)
2. classify, construct the archetype and apply translated styles
3. resolve images for shapes, falling back to a placeholder plus label
4. wrap nested multi-child containers in a group, the container pinned
   beneath its own children
5. build children in (z-index, document order) and attach them to the
   holder (group, node, or for leaf nodes the enclosing container)
6. re-sort the holder's children, which fixes paint order

Any exception raised while building one element is logged, counted and
turned into "no node"; it never reaches the parent. Nodes are counted as
created once their top-level element is finished, so subtrees dropped on
the way never count.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from ..errors import AssetError, ElementValidationError
from ..models import Bounds, ConversionConfig, ExtractedElement
from ..style.paints import RGBA, ImagePaint, ScaleMode, SolidPaint
from ..style.translator import ParsedStyle, style_summary, translate_styles
from ..style.typography import DEFAULT_FONT, TextAlign, Typography, apply_text_transform
from .classifier import classify_with_reason, should_wrap_in_group
from .design_nodes import (
    DesignNode,
    FrameNode,
    GroupNode,
    NodeKind,
    ShapeNode,
    TextNode,
    attach_node,
)
from .naming import clean_text, generate_node_name

if TYPE_CHECKING:
    from ..integrations.asset_pipeline import AssetPipeline
    from ..integrations.host import FontLoader
    from ..pipeline.monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

PLACEHOLDER_FILL = RGBA(0.95, 0.95, 0.95, 1)
PLACEHOLDER_TEXT = "Image failed to load"
PLACEHOLDER_TEXT_COLOR = RGBA(0.5, 0.5, 0.5, 1)
PLACEHOLDER_LABEL_SIZE = (120.0, 16.0)
PLACEHOLDER_FONT_SIZE = 12.0


@dataclass
class BuildContext:
    """Services and counters shared by every build call of one run.

    ``pipeline`` and ``fonts`` are optional: without a pipeline images are
    not resolved, without a font loader parsed fonts are used as-is.
    """
    config: ConversionConfig = field(default_factory=ConversionConfig)
    pipeline: Optional["AssetPipeline"] = None
    fonts: Optional["FontLoader"] = None
    monitor: Optional["PerformanceMonitor"] = None
    created: List[DesignNode] = field(default_factory=list)
    failed_elements: int = 0
    images_applied: int = 0
    _ids: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_id(self) -> str:
        return f"n{next(self._ids)}"

    def register(self, node: DesignNode) -> None:
        """Count ``node``, its subtree and the overlays it carries as created."""
        added = [n for carried in (node, *node.overlays) for n in carried.walk()]
        self.created.extend(added)
        if self.monitor is not None:
            self.monitor.record_nodes(len(added))

    def element_failed(self, depth: int = 0) -> None:
        """Count a failed element.

        Every failure counts in ``failed_elements``; only top-level ones
        reach the monitor, whose success rate is over top-level elements.
        """
        self.failed_elements += 1
        if depth == 0 and self.monitor is not None:
            self.monitor.record_failure()


def _child_order(element: ExtractedElement) -> List[tuple]:
    """(index, child) pairs in ascending (z-index, document order)."""
    indexed = list(enumerate(element.children))
    indexed.sort(key=lambda pair: (pair[1].z_order, pair[0]))
    return indexed


class TreeBuilder:
    def __init__(self, context: Optional[BuildContext] = None):
        self.context = context or BuildContext()

    async def build(
        self,
        element: ExtractedElement,
        parent: Optional[DesignNode] = None,
        depth: int = 0,
        order: int = 0,
    ) -> Optional[DesignNode]:
        """Build the node for ``element``; attach it to ``parent`` if given.

        Returns the node that represents the element in its parent (the
        wrapping group when one was created), or None.
        """
        try:
            node = await self._build(element, depth, order)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.context.element_failed(depth)
            logger.warning(
                "Failed to build element %s <%s>: %s",
                element.id or "-", element.tag, e,
            )
            return None
        if node is None:
            return None
        if depth == 0:
            self.context.register(node)
        if parent is not None:
            attach_node(parent, node)
        return node

    async def _build(self, element: ExtractedElement, depth: int, order: int) -> Optional[DesignNode]:
        if element.bounds is None:
            raise ElementValidationError("Invalid element: missing bounds", element.id)
        if element.bounds.is_degenerate:
            logger.debug("Skipping degenerate element %s <%s>", element.id, element.tag)
            return None

        parsed = translate_styles(element.styles)
        classification = classify_with_reason(element)
        logger.debug(
            "Element %s <%s> -> %s (%s rule) %s",
            element.id, element.tag, classification.kind.value,
            classification.rule, style_summary(parsed),
        )

        node = await self._construct(element, classification.kind, parsed, order)

        holder: DesignNode = node
        result: DesignNode = node
        if should_wrap_in_group(element, depth):
            group = GroupNode(
                id=self.context.next_id(),
                name=f"{node.name} Group",
                bounds=node.bounds,
                z_index=node.z_index,
                order=order,
                source_id=element.id,
                backdrop=node,
            )
            group.append_child(node)
            holder = group
            result = group

        for index, child in _child_order(element):
            child_node = await self.build(child, None, depth + 1, index)
            if child_node is None:
                continue
            if holder.is_leaf:
                holder.add_overlay(child_node)
            else:
                attach_node(holder, child_node)

        holder.sort_children()
        if isinstance(holder, GroupNode):
            if not holder.children:
                return None
            holder.fit_to_children()
        return result

    # ------------------------------------------------------------------
    # Archetypes
    # ------------------------------------------------------------------

    async def _construct(
        self,
        element: ExtractedElement,
        kind: NodeKind,
        parsed: ParsedStyle,
        order: int,
    ) -> DesignNode:
        common = dict(
            id=self.context.next_id(),
            name=generate_node_name(element),
            bounds=element.bounds,
            z_index=element.z_order,
            order=order,
            opacity=parsed.opacity,
            strokes=parsed.strokes,
            effects=list(parsed.effects),
            source_id=element.id,
        )

        if kind == NodeKind.TEXT:
            node: DesignNode = await self._text_node(element, parsed, common)
        elif kind == NodeKind.FRAME:
            node = FrameNode(
                fills=parsed.fills,
                corner_radius=parsed.corner_radius,
                auto_layout=parsed.auto_layout,
                **common,
            )
        elif kind == NodeKind.GROUP:
            common.pop("strokes")
            common.pop("effects")
            node = GroupNode(**common)
        else:
            node = ShapeNode(fills=parsed.fills, corner_radius=parsed.corner_radius, **common)
            await self._apply_image(node, element, parsed)

        return node

    async def _load_font(self, typography: Typography) -> Typography:
        if self.context.fonts is None:
            return typography
        font = await self.context.fonts.load(typography.font)
        if font == typography.font:
            return typography
        return Typography(
            font=font,
            size=typography.size,
            line_height=typography.line_height,
            align=typography.align,
            decoration=typography.decoration,
            transform=typography.transform,
            letter_spacing=typography.letter_spacing,
            color=typography.color,
        )

    async def _text_node(self, element: ExtractedElement, parsed: ParsedStyle, common: dict) -> TextNode:
        typography = await self._load_font(parsed.typography)
        characters = apply_text_transform(clean_text(element.text), typography.transform)
        return TextNode(
            characters=characters or "Text",
            typography=typography,
            fills=[SolidPaint(parsed.text_color)],
            **common,
        )

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def _apply_image(self, node: ShapeNode, element: ExtractedElement, parsed: ParsedStyle) -> None:
        if element.tag == "IMG" and element.src:
            url, scale_mode, transform = element.src, ScaleMode.FIT, None
        elif parsed.background_image is not None:
            bg = parsed.background_image
            url, scale_mode, transform = bg.url, bg.scale_mode, bg.transform
        else:
            return

        node.image_url = url
        pipeline = self.context.pipeline
        if pipeline is None:
            return

        try:
            record = await pipeline.resolve(url)
        except AssetError as e:
            logger.warning("Image for %s unavailable: %s", node.name, e)
            record = None

        if record is None:
            await self._add_placeholder(node)
            return

        node.fills = [ImagePaint(image_hash=record.handle, scale_mode=scale_mode, transform=transform)]
        self.context.images_applied += 1
        if self.context.monitor is not None:
            self.context.monitor.image_processed()

    async def _add_placeholder(self, node: ShapeNode) -> None:
        node.fills = [SolidPaint(PLACEHOLDER_FILL)]
        node.is_placeholder = True

        width, height = PLACEHOLDER_LABEL_SIZE
        typography = await self._load_font(Typography(
            font=DEFAULT_FONT,
            size=PLACEHOLDER_FONT_SIZE,
            align=TextAlign.CENTER,
            color=PLACEHOLDER_TEXT_COLOR,
        ))
        label = TextNode(
            id=self.context.next_id(),
            name="Image Placeholder",
            bounds=Bounds(
                x=node.bounds.x + (node.bounds.width - width) / 2,
                y=node.bounds.y + (node.bounds.height - height) / 2,
                width=width,
                height=height,
            ),
            z_index=node.z_index,
            order=node.order,
            characters=PLACEHOLDER_TEXT,
            typography=typography,
            fills=[SolidPaint(PLACEHOLDER_TEXT_COLOR)],
            source_id=node.source_id,
        )
        node.add_overlay(label)
