"""Tests for html2design.nodes.design_nodes."""

import pytest

from html2design.models import Bounds
from html2design.nodes.design_nodes import (
    FrameNode,
    GroupNode,
    NodeKind,
    ShapeNode,
    TextNode,
    attach_node,
)
from html2design.style.paints import RGBA, SolidPaint


def frame(id="f", **kw):
    return FrameNode(id=id, name=id, **kw)


class TestTree:
    def test_append_sets_parent(self):
        parent, child = frame("p"), frame("c")
        parent.append_child(child)
        assert child.parent is parent
        assert parent.children == [child]

    def test_leaf_cannot_own_children(self):
        text = TextNode(id="t", name="t")
        with pytest.raises(TypeError):
            text.append_child(frame())

    def test_no_self_parenting(self):
        node = frame()
        with pytest.raises(ValueError):
            node.append_child(node)

    def test_single_parent(self):
        a, b, child = frame("a"), frame("b"), frame("c")
        a.append_child(child)
        with pytest.raises(ValueError, match="already has a parent"):
            b.append_child(child)

    def test_walk(self):
        root = frame("r")
        mid = frame("m")
        root.append_child(mid)
        mid.append_child(ShapeNode(id="s", name="s"))
        assert [n.id for n in root.walk()] == ["r", "m", "s"]


class TestSorting:
    def test_sorts_by_z_then_order(self):
        root = frame("r")
        for id, z, order in [("a", 5, 0), ("b", 1, 2), ("c", 1, 1), ("d", 0, 9)]:
            root.append_child(frame(id, z_index=z, order=order))
        root.sort_children()
        assert [c.id for c in root.children] == ["d", "c", "b", "a"]

    def test_sort_is_idempotent(self):
        root = frame("r")
        for id, z in [("a", 2), ("b", 0), ("c", 1)]:
            root.append_child(frame(id, z_index=z))
        root.sort_children()
        first = [c.id for c in root.children]
        root.sort_children()
        assert [c.id for c in root.children] == first

    def test_recursive(self):
        root, mid = frame("r"), frame("m")
        root.append_child(mid)
        mid.append_child(frame("y", z_index=3))
        mid.append_child(frame("x", z_index=1))
        root.sort_children(recursive=True)
        assert [c.id for c in mid.children] == ["x", "y"]


class TestOverlays:
    def test_attach_places_overlays_after_host(self):
        holder = frame("h")
        shape = ShapeNode(id="s", name="s", order=4)
        label = TextNode(id="t", name="t")
        shape.add_overlay(label)
        attach_node(holder, shape)
        sibling = frame("next", order=5)
        holder.append_child(sibling)
        holder.sort_children()
        assert [c.id for c in holder.children] == ["s", "t", "next"]
        assert label.order == 4
        assert label.sub_order == 1
        assert shape.overlays == []

    def test_nested_overlays_are_flattened(self):
        outer = ShapeNode(id="o", name="o")
        inner = ShapeNode(id="i", name="i")
        inner.add_overlay(TextNode(id="t", name="t"))
        outer.add_overlay(inner)
        assert [n.id for n in outer.overlays] == ["i", "t"]
        assert inner.overlays == []


class TestGroupNode:
    def test_fit_to_children(self):
        group = GroupNode(id="g", name="g")
        group.append_child(frame("a", bounds=Bounds(x=10, y=10, width=20, height=20)))
        group.append_child(frame("b", bounds=Bounds(x=40, y=0, width=10, height=10)))
        group.fit_to_children()
        assert group.bounds == Bounds(x=10, y=0, width=40, height=30)

    def test_backdrop_stays_first(self):
        container = frame("c", z_index=5)
        group = GroupNode(id="g", name="g", backdrop=container)
        group.append_child(container)
        group.append_child(frame("a", order=1))
        group.append_child(frame("b", z_index=-1, order=2))
        group.sort_children()
        assert [c.id for c in group.children] == ["c", "b", "a"]


class TestSerialization:
    def test_text_node(self):
        node = TextNode(
            id="t", name="Title", characters="Hello",
            bounds=Bounds(x=1, y=2, width=3, height=4),
            fills=[SolidPaint(RGBA(1, 0, 0, 1))],
        )
        data = node.to_dict()
        assert data["type"] == "TEXT"
        assert data["characters"] == "Hello"
        assert data["fontName"] == {"family": "Inter", "style": "Regular"}
        assert data["fills"][0]["color"] == {"r": 1.0, "g": 0.0, "b": 0.0}
        assert "children" not in data

    def test_frame_with_children(self):
        root = frame("r", corner_radius=4)
        root.append_child(ShapeNode(id="s", name="s", image_url="https://x.test/a.png"))
        data = root.to_dict()
        assert data["type"] == NodeKind.FRAME.value
        assert data["cornerRadius"] == 4
        assert data["children"][0]["type"] == "RECTANGLE"
        assert data["children"][0]["imageUrl"] == "https://x.test/a.png"
