"""Host design-tool capability.

``DesignHost`` is the narrow API the converter drives to materialize a
finished DesignNode tree in a design tool. ``InMemoryHost`` implements it
with plain dicts so a conversion can run headless (CLI, tests) and be
exported as JSON. Builder metadata (z-index, document order) never travels
through the host: ``render_tree`` only replays the already sorted tree.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from ..models import ExtractedElement
from ..nodes.classifier import TEXT_TAGS
from ..nodes.design_nodes import DesignNode, FrameNode, GroupNode, NodeKind, ShapeNode, TextNode
from ..style.effects import AutoLayout
from ..style.paints import Paint, ShadowEffect, Stroke
from ..style.typography import DEFAULT_FONT, FontName, parse_font_family, parse_font_variant

logger = logging.getLogger(__name__)

Handle = str


class DesignHost(ABC):
    """Operations the converter needs from a design tool."""

    @abstractmethod
    def create_node(self, kind: NodeKind) -> Handle: ...

    @abstractmethod
    def resize(self, handle: Handle, width: float, height: float) -> None: ...

    @abstractmethod
    def set_position(self, handle: Handle, x: float, y: float) -> None: ...

    @abstractmethod
    def set_fills(self, handle: Handle, paints: Sequence[Paint]) -> None: ...

    @abstractmethod
    def set_strokes(self, handle: Handle, strokes: Sequence[Stroke]) -> None: ...

    @abstractmethod
    def set_effects(self, handle: Handle, effects: Sequence[ShadowEffect]) -> None: ...

    @abstractmethod
    def append_child(self, parent: Handle, child: Handle) -> None: ...

    @abstractmethod
    def group_nodes(self, handles: Sequence[Handle]) -> Handle: ...

    @abstractmethod
    async def load_typography(self, font: FontName) -> bool: ...

    # Optional setters; hosts without the concept may ignore them.

    def set_name(self, handle: Handle, name: str) -> None:
        pass

    def set_text(self, handle: Handle, node: TextNode) -> None:
        pass

    def set_corner_radius(self, handle: Handle, radius: float) -> None:
        pass

    def set_opacity(self, handle: Handle, opacity: float) -> None:
        pass

    def set_layout(self, handle: Handle, layout: AutoLayout) -> None:
        pass


class InMemoryHost(DesignHost):
    """Records every host call into a dict-per-node document.

    Args:
        available_fonts: Families the host can load. None means any family.
    """

    def __init__(self, available_fonts: Optional[Iterable[str]] = None):
        self.nodes: Dict[Handle, Dict[str, Any]] = {}
        self.loaded_fonts: List[FontName] = []
        self.font_requests = 0
        self._available = set(available_fonts) if available_fonts is not None else None
        self._ids = itertools.count(1)

    def _new(self, kind: NodeKind) -> Handle:
        handle = f"{next(self._ids)}:{kind.value.lower()}"
        self.nodes[handle] = {
            "type": kind.value,
            "name": kind.value.title(),
            "x": 0.0,
            "y": 0.0,
            "width": 100.0,
            "height": 100.0,
            "fills": [],
            "strokes": [],
            "effects": [],
            "children": [],
            "parent": None,
        }
        return handle

    def create_node(self, kind: NodeKind) -> Handle:
        if kind == NodeKind.GROUP:
            raise ValueError("groups are created with group_nodes()")
        return self._new(kind)

    def resize(self, handle, width, height):
        self.nodes[handle].update(width=max(1.0, width), height=max(1.0, height))

    def set_position(self, handle, x, y):
        self.nodes[handle].update(x=x, y=y)

    def set_fills(self, handle, paints):
        self.nodes[handle]["fills"] = [p.to_dict() for p in paints]

    def set_strokes(self, handle, strokes):
        node = self.nodes[handle]
        node["strokes"] = [s.to_dict()["paint"] for s in strokes]
        if strokes:
            node["strokeWeight"] = strokes[0].weight
            node["dashPattern"] = strokes[0].dash_pattern

    def set_effects(self, handle, effects):
        self.nodes[handle]["effects"] = [e.to_dict() for e in effects]

    def append_child(self, parent, child):
        current = self.nodes[child]["parent"]
        if current is not None:
            self.nodes[current]["children"].remove(child)
        self.nodes[parent]["children"].append(child)
        self.nodes[child]["parent"] = parent

    def group_nodes(self, handles):
        if not handles:
            raise ValueError("cannot group an empty selection")
        handle = self._new(NodeKind.GROUP)
        for child in handles:
            self.append_child(handle, child)
        left = min(self.nodes[h]["x"] for h in handles)
        top = min(self.nodes[h]["y"] for h in handles)
        right = max(self.nodes[h]["x"] + self.nodes[h]["width"] for h in handles)
        bottom = max(self.nodes[h]["y"] + self.nodes[h]["height"] for h in handles)
        self.nodes[handle].update(x=left, y=top, width=right - left, height=bottom - top)
        return handle

    async def load_typography(self, font: FontName) -> bool:
        self.font_requests += 1
        await asyncio.sleep(0)
        if self._available is not None and font.family not in self._available:
            return False
        self.loaded_fonts.append(font)
        return True

    def set_name(self, handle, name):
        self.nodes[handle]["name"] = name

    def set_text(self, handle, node):
        t = node.typography
        self.nodes[handle].update(
            characters=node.characters,
            fontName=t.font.to_dict(),
            fontSize=t.size,
            lineHeight=t.line_height.to_dict(),
            textAlignHorizontal=t.align.value,
            textDecoration=t.decoration.value,
        )
        if t.letter_spacing is not None:
            self.nodes[handle]["letterSpacing"] = t.letter_spacing.to_dict()

    def set_corner_radius(self, handle, radius):
        self.nodes[handle]["cornerRadius"] = radius

    def set_opacity(self, handle, opacity):
        self.nodes[handle]["opacity"] = opacity

    def set_layout(self, handle, layout):
        self.nodes[handle].update(layout.to_dict())

    def export(self, handle: Handle) -> Dict[str, Any]:
        """Nested JSON-ready document rooted at ``handle``."""
        node = {k: v for k, v in self.nodes[handle].items() if k not in ("children", "parent")}
        node["id"] = handle
        node["children"] = [self.export(c) for c in self.nodes[handle]["children"]]
        return node


class FontLoader:
    """Loads fonts through the host once per family/style.

    A font the host cannot load is replaced by Inter Regular.
    """

    def __init__(self, host: DesignHost, default: FontName = DEFAULT_FONT):
        self._host = host
        self._default = default
        self._tasks: Dict[FontName, "asyncio.Task[FontName]"] = {}
        self.failed: Set[FontName] = set()

    async def _load(self, font: FontName) -> FontName:
        try:
            ok = await self._host.load_typography(font)
        except Exception as e:
            logger.warning("Font load raised for %s %s: %s", font.family, font.style, e)
            ok = False
        if ok:
            return font
        self.failed.add(font)
        if font == self._default:
            logger.warning("Default font %s %s unavailable", font.family, font.style)
            return font
        logger.warning("Failed to load font %s %s, using default", font.family, font.style)
        return await self.load(self._default)

    async def load(self, font: FontName) -> FontName:
        """Return the font to use: ``font`` itself or the default."""
        task = self._tasks.get(font)
        if task is None:
            task = asyncio.ensure_future(self._load(font))
            self._tasks[font] = task
        return await asyncio.shield(task)

    async def preload(self, fonts: Iterable[FontName]) -> None:
        await asyncio.gather(*(self.load(f) for f in fonts))

    def clear(self) -> None:
        self._tasks.clear()
        self.failed.clear()


def collect_fonts(elements: Iterable[ExtractedElement]) -> Set[FontName]:
    """Fonts needed by the text elements of a page (children included)."""
    fonts: Set[FontName] = set()
    stack = list(elements)
    while stack:
        element = stack.pop()
        stack.extend(element.children)
        if element.tag in TEXT_TAGS and element.text:
            fonts.add(FontName(
                parse_font_family(element.style("fontFamily")),
                parse_font_variant(element.style("fontWeight"), element.style("fontStyle")),
            ))
    return fonts


def _apply_common(host: DesignHost, handle: Handle, node: DesignNode) -> None:
    host.set_name(handle, node.name)
    host.resize(handle, node.bounds.width, node.bounds.height)
    host.set_position(handle, node.bounds.x, node.bounds.y)
    host.set_fills(handle, node.fills)
    if node.strokes:
        host.set_strokes(handle, node.strokes)
    if node.effects:
        host.set_effects(handle, node.effects)
    if node.opacity < 1:
        host.set_opacity(handle, node.opacity)


def render_tree(host: DesignHost, node: DesignNode) -> Handle:
    """Materialize ``node`` and its subtree through ``host``.

    Children are appended in their current list order, which is paint
    order (first = bottom).
    """
    if isinstance(node, GroupNode):
        child_handles = [render_tree(host, child) for child in node.children]
        handle = host.group_nodes(child_handles)
        host.set_name(handle, node.name)
        if node.opacity < 1:
            host.set_opacity(handle, node.opacity)
        return handle

    handle = host.create_node(node.kind)
    _apply_common(host, handle, node)
    if isinstance(node, TextNode):
        host.set_text(handle, node)
    elif isinstance(node, FrameNode):
        if node.corner_radius:
            host.set_corner_radius(handle, node.corner_radius)
        if node.auto_layout is not None:
            host.set_layout(handle, node.auto_layout)
    elif isinstance(node, ShapeNode) and node.corner_radius:
        host.set_corner_radius(handle, node.corner_radius)

    for child in node.children:
        host.append_child(handle, render_tree(host, child))
    return handle
