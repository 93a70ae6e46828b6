"""Design node archetypes.

A converted page is a tree of DesignNode variants (Text, Frame, Shape,
Group). Ownership runs downward through ``children``; ``parent`` is a
non-owning back-reference set by ``append_child``. Z-order metadata lives on
the node so sibling order can be recomputed at any time with
``sort_children``.

Text and Shape nodes are leaves. Nodes built from their DOM children are
carried as ``overlays`` and placed in the enclosing container right after
the leaf by ``attach_node``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple

from ..models import Bounds
from ..style.effects import AutoLayout
from ..style.paints import Paint, ShadowEffect, Stroke
from ..style.typography import Typography


class NodeKind(str, Enum):
    TEXT = "TEXT"
    FRAME = "FRAME"
    SHAPE = "RECTANGLE"
    GROUP = "GROUP"


@dataclass(eq=False)
class DesignNode:
    id: str
    name: str
    bounds: Bounds = field(default_factory=Bounds)
    z_index: int = 0
    order: int = 0
    sub_order: int = 0
    opacity: float = 1.0
    fills: List[Paint] = field(default_factory=list)
    strokes: List[Stroke] = field(default_factory=list)
    effects: List[ShadowEffect] = field(default_factory=list)
    source_id: Optional[str] = None
    children: List["DesignNode"] = field(default_factory=list, repr=False)
    overlays: List["DesignNode"] = field(default_factory=list, repr=False)
    parent: Optional["DesignNode"] = field(default=None, repr=False)

    kind: ClassVar[NodeKind]
    is_leaf: ClassVar[bool] = False

    @property
    def sort_key(self) -> Tuple[int, int, int]:
        return (self.z_index, self.order, self.sub_order)

    def append_child(self, child: "DesignNode") -> None:
        if self.is_leaf:
            raise TypeError(f"{self.kind.value} node cannot own children")
        if child is self:
            raise ValueError("node cannot be its own child")
        if child.parent is not None:
            raise ValueError(f"node {child.id} already has a parent ({child.parent.id})")
        child.parent = self
        self.children.append(child)

    def add_overlay(self, node: "DesignNode") -> None:
        """Carry ``node`` (and its own overlays) alongside this node."""
        pending = node.overlays
        node.overlays = []
        self.overlays.append(node)
        for extra in pending:
            self.overlays.append(extra)

    def sort_children(self, recursive: bool = False) -> None:
        """Order children ascending by (z-index, document order, sub-order)."""
        self.children.sort(key=lambda n: n.sort_key)
        if recursive:
            for child in self.children:
                child.sort_children(recursive=True)

    def walk(self) -> Iterator["DesignNode"]:
        """Pre-order traversal including self."""
        yield self
        for child in self.children:
            yield from child.walk()

    def _extra_dict(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "x": self.bounds.x,
            "y": self.bounds.y,
            "width": self.bounds.width,
            "height": self.bounds.height,
            "zIndex": self.z_index,
            "opacity": self.opacity,
            "fills": [p.to_dict() for p in self.fills],
            "strokes": [s.to_dict() for s in self.strokes],
            "effects": [e.to_dict() for e in self.effects],
        }
        data.update(self._extra_dict())
        if not self.is_leaf:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass(eq=False)
class TextNode(DesignNode):
    characters: str = ""
    typography: Typography = field(default_factory=Typography)

    kind: ClassVar[NodeKind] = NodeKind.TEXT
    is_leaf: ClassVar[bool] = True

    def _extra_dict(self) -> Dict[str, Any]:
        t = self.typography
        data: Dict[str, Any] = {
            "characters": self.characters,
            "fontName": t.font.to_dict(),
            "fontSize": t.size,
            "lineHeight": t.line_height.to_dict(),
            "textAlignHorizontal": t.align.value,
            "textDecoration": t.decoration.value,
        }
        if t.letter_spacing is not None:
            data["letterSpacing"] = t.letter_spacing.to_dict()
        return data


@dataclass(eq=False)
class FrameNode(DesignNode):
    corner_radius: float = 0.0
    auto_layout: Optional[AutoLayout] = None
    clips_content: bool = False

    kind: ClassVar[NodeKind] = NodeKind.FRAME

    def _extra_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"cornerRadius": self.corner_radius, "clipsContent": self.clips_content}
        if self.auto_layout is not None:
            data.update(self.auto_layout.to_dict())
        return data


@dataclass(eq=False)
class ShapeNode(DesignNode):
    corner_radius: float = 0.0
    image_url: Optional[str] = None
    is_placeholder: bool = False

    kind: ClassVar[NodeKind] = NodeKind.SHAPE
    is_leaf: ClassVar[bool] = True

    def _extra_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"cornerRadius": self.corner_radius}
        if self.image_url:
            data["imageUrl"] = self.image_url
        if self.is_placeholder:
            data["placeholder"] = True
        return data


@dataclass(eq=False)
class GroupNode(DesignNode):
    """Container without geometry of its own.

    A group that wraps an element keeps that element as ``backdrop``: it
    stays the first child whatever its z-index, beneath its own content.
    """
    backdrop: Optional[DesignNode] = field(default=None, repr=False)

    kind: ClassVar[NodeKind] = NodeKind.GROUP

    def sort_children(self, recursive: bool = False) -> None:
        super().sort_children(recursive)
        if self.backdrop is not None and self.backdrop.parent is self:
            self.children.remove(self.backdrop)
            self.children.insert(0, self.backdrop)

    def fit_to_children(self) -> None:
        """Groups have no geometry of their own: take the children's union."""
        if not self.children:
            return
        bounds = self.children[0].bounds
        for child in self.children[1:]:
            bounds = bounds.union(child.bounds)
        self.bounds = bounds


def attach_node(holder: DesignNode, node: DesignNode) -> None:
    """Append ``node`` to ``holder`` followed by the node's overlays.

    Overlays keep the host's document order and take increasing sub-orders
    so they sort directly after the host among equal z-indexes.
    """
    overlays = node.overlays
    node.overlays = []
    holder.append_child(node)
    for i, extra in enumerate(overlays, start=1):
        extra.order = node.order
        extra.sub_order = i
        holder.append_child(extra)
