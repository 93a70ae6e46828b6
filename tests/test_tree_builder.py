"""Tests for html2design.nodes.tree_builder."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import FakeFetcher, make_element
from html2design.integrations.asset_pipeline import AssetPipeline
from html2design.integrations.host import FontLoader, InMemoryHost
from html2design.models import ConversionConfig
from html2design.nodes.design_nodes import FrameNode, GroupNode, ShapeNode, TextNode
from html2design.nodes.tree_builder import (
    PLACEHOLDER_FILL,
    PLACEHOLDER_TEXT,
    BuildContext,
    TreeBuilder,
)
from html2design.pipeline.monitor import PerformanceMonitor
from html2design.style.paints import PaintType, ScaleMode
from html2design.style.typography import DEFAULT_FONT


BAD_URL = "https://img.test/broken.png"


@pytest.fixture
def fetcher():
    return FakeFetcher(failures={BAD_URL})


@pytest.fixture
def context(fetcher):
    config = ConversionConfig()
    monitor = PerformanceMonitor()
    monitor.start(0)
    return BuildContext(
        config=config,
        pipeline=AssetPipeline(fetcher, config),
        monitor=monitor,
    )


@pytest.fixture
def builder(context):
    return TreeBuilder(context)


@pytest.fixture
def root():
    return FrameNode(id="root", name="root")


class TestTextElements:
    @pytest.mark.asyncio
    async def test_paragraph_becomes_text_node(self, builder):
        el = make_element(tag="P", text="Hello", x=10, y=20, width=200, height=24,
                          styles={"color": "rgb(255, 0, 0)"})
        node = await builder.build(el)

        assert isinstance(node, TextNode)
        assert (node.bounds.x, node.bounds.y) == (10, 20)
        assert node.characters == "Hello"
        assert node.fills[0].color.rgb() == {"r": 1.0, "g": 0.0, "b": 0.0}

    @pytest.mark.asyncio
    async def test_text_is_cleaned_and_transformed(self, builder):
        el = make_element(tag="H2", text="fish &amp;  chips", styles={"textTransform": "uppercase"})
        node = await builder.build(el)
        assert node.characters == "FISH & CHIPS"

    @pytest.mark.asyncio
    async def test_unavailable_font_falls_back_to_default(self, context):
        host = InMemoryHost(available_fonts={"Inter"})
        context.fonts = FontLoader(host)
        builder = TreeBuilder(context)

        el = make_element(tag="P", text="Serif", styles={"fontFamily": "Georgia", "fontWeight": "700"})
        node = await builder.build(el)

        assert node.typography.font == DEFAULT_FONT
        assert len(context.fonts.failed) == 1


class TestZOrder:
    @pytest.mark.asyncio
    async def test_children_sorted_by_z_index(self, builder):
        el = make_element(children=[
            {"id": "top", "tagName": "div", "zIndex": 5,
             "bounds": {"x": 0, "y": 0, "width": 10, "height": 10}},
            {"id": "bottom", "tagName": "div", "zIndex": 1,
             "bounds": {"x": 0, "y": 0, "width": 10, "height": 10}},
        ])
        node = await builder.build(el)
        assert [c.name for c in node.children] == ["bottom", "top"]

    @pytest.mark.asyncio
    async def test_equal_z_keeps_document_order(self, builder):
        children = [
            {"id": f"c{i}", "tagName": "div", "bounds": {"x": 0, "y": 0, "width": 10, "height": 10}}
            for i in range(4)
        ]
        node = await builder.build(make_element(children=children))
        assert [c.name for c in node.children] == ["c0", "c1", "c2", "c3"]


class TestSkippedElements:
    @pytest.mark.asyncio
    async def test_degenerate_element_produces_nothing(self, builder, context):
        assert await builder.build(make_element(width=0.3)) is None
        assert context.failed_elements == 0
        assert context.created == []

    @pytest.mark.asyncio
    async def test_missing_bounds_is_a_counted_failure(self, builder, context):
        el = make_element()
        el = el.model_copy(update={"bounds": None})
        assert await builder.build(el) is None
        assert context.failed_elements == 1
        assert context.monitor.failed_elements == 1

    @pytest.mark.asyncio
    async def test_failing_child_does_not_abort_parent(self, builder, context):
        el = make_element(children=[
            {"tagName": "div"},
            {"tagName": "div", "bounds": {"x": 0, "y": 0, "width": 5, "height": 5}},
        ])
        node = await builder.build(el)
        assert isinstance(node, FrameNode)
        assert len(node.children) == 1
        assert context.failed_elements == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, builder, context):
        with patch(
            "html2design.nodes.tree_builder.translate_styles",
            side_effect=RuntimeError("boom"),
        ):
            assert await builder.build(make_element()) is None
        assert context.failed_elements == 1

    @pytest.mark.asyncio
    async def test_nested_failures_are_not_top_level_failures(self, builder, context):
        el = make_element(children=[{"tagName": "p", "textContent": "x"} for _ in range(3)])
        node = await builder.build(el)
        assert isinstance(node, FrameNode)
        assert context.failed_elements == 3
        assert context.monitor.failed_elements == 0


class TestImages:
    @pytest.mark.asyncio
    async def test_image_fill(self, builder, context):
        el = make_element(tag="IMG", src="https://img.test/ok.png")
        node = await builder.build(el)

        assert isinstance(node, ShapeNode)
        (paint,) = node.fills
        assert paint.type == PaintType.IMAGE
        assert paint.scale_mode == ScaleMode.FIT
        assert paint.image_hash == context.pipeline.get_cached("https://img.test/ok.png").handle
        assert context.images_applied == 1
        assert context.monitor.images_processed == 1

    @pytest.mark.asyncio
    async def test_background_image_uses_background_size(self, builder):
        el = make_element(tag="FIGURE", styles={
            "backgroundImage": "url('https://img.test/bg.png')",
            "backgroundSize": "cover",
        })
        node = await builder.build(el)
        assert node.fills[0].scale_mode == ScaleMode.FILL

    @pytest.mark.asyncio
    async def test_failed_image_gets_placeholder_and_label(self, builder, root):
        el = make_element(tag="IMG", src=BAD_URL, x=0, y=0, width=200, height=100)
        node = await builder.build(el, parent=root)

        assert node.is_placeholder
        assert node.fills[0].color == PLACEHOLDER_FILL
        assert [type(c) for c in root.children] == [ShapeNode, TextNode]
        label = root.children[1]
        assert label.characters == PLACEHOLDER_TEXT
        assert (label.bounds.x, label.bounds.y) == (40, 42)

    @pytest.mark.asyncio
    async def test_rejected_url_gets_placeholder(self, builder, fetcher):
        node = await builder.build(make_element(tag="IMG", src="data:image/png;base64,AAAA"))
        assert node.is_placeholder
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_without_pipeline_url_is_only_recorded(self):
        builder = TreeBuilder(BuildContext())
        node = await builder.build(make_element(tag="IMG", src="https://img.test/a.png"))
        assert node.image_url == "https://img.test/a.png"
        assert not node.is_placeholder

    @pytest.mark.asyncio
    async def test_fetcher_exception_gets_placeholder(self, root):
        broken = MagicMock()
        broken.fetch = AsyncMock(side_effect=ConnectionError("connection reset"))
        context = BuildContext(pipeline=AssetPipeline(broken))
        builder = TreeBuilder(context)

        node = await builder.build(make_element(tag="IMG", src="https://img.test/a.png"), parent=root)

        assert node.is_placeholder
        assert root.children[1].characters == PLACEHOLDER_TEXT
        assert context.failed_elements == 0
        assert context.pipeline.stats["failed"] == 1


class TestGrouping:
    @pytest.mark.asyncio
    async def test_nested_container_wrapped_in_group(self, builder):
        section = {
            "id": "cards",
            "tagName": "section",
            "bounds": {"x": 0, "y": 0, "width": 300, "height": 100},
            "children": [
                {"tagName": "div", "bounds": {"x": i * 100, "y": 0, "width": 100, "height": 120}}
                for i in range(3)
            ],
        }
        node = await builder.build(make_element(children=[section]))

        (group,) = node.children
        assert isinstance(group, GroupNode)
        assert group.name == "cards Group"
        assert group.children[0].name == "cards"
        assert len(group.children) == 4
        assert group.bounds.height == 120

    @pytest.mark.asyncio
    async def test_top_level_container_is_not_wrapped(self, builder):
        el = make_element(tag="SECTION", children=[{"tagName": "div"} for _ in range(3)])
        node = await builder.build(el)
        assert isinstance(node, FrameNode)

    @pytest.mark.asyncio
    async def test_wrapped_container_stays_beneath_children(self, builder):
        section = {
            "id": "hero",
            "tagName": "section",
            "zIndex": 5,
            "bounds": {"x": 0, "y": 0, "width": 300, "height": 100},
            "styles": {"backgroundColor": "#333333"},
            "children": [
                {"tagName": "p", "textContent": f"line {i}",
                 "bounds": {"x": 0, "y": i * 20, "width": 300, "height": 20}}
                for i in range(3)
            ],
        }
        node = await builder.build(make_element(children=[section]))

        (group,) = node.children
        assert group.z_index == 5
        assert isinstance(group.children[0], FrameNode)
        assert group.children[0].name == "hero"
        assert [type(c) for c in group.children[1:]] == [TextNode] * 3

        node.sort_children(recursive=True)
        assert group.children[0].name == "hero"

    @pytest.mark.asyncio
    async def test_empty_group_is_dropped(self, builder, context):
        el = make_element(tag="UL", children=[
            {"tagName": "li", "bounds": {"x": 0, "y": 0, "width": 0, "height": 0}},
            {"tagName": "li", "bounds": {"x": 0, "y": 0, "width": 0, "height": 0}},
        ])
        assert await builder.build(el) is None
        assert context.created == []
        assert context.monitor.created_nodes == 0

    @pytest.mark.asyncio
    async def test_dropped_nested_group_is_not_counted(self, builder, context):
        el = make_element(children=[
            {"tagName": "ul", "bounds": {"x": 0, "y": 0, "width": 50, "height": 50}, "children": [
                {"tagName": "li", "bounds": {"x": 0, "y": 0, "width": 0, "height": 0}},
                {"tagName": "li", "bounds": {"x": 0, "y": 0, "width": 0, "height": 0}},
            ]},
        ])
        node = await builder.build(el)
        assert node.children == []
        assert context.created == [node]
        assert context.monitor.created_nodes == 1

    @pytest.mark.asyncio
    async def test_group_fits_children(self, builder):
        el = make_element(tag="UL", x=0, y=0, width=500, height=500, children=[
            {"tagName": "li", "bounds": {"x": 10, "y": 10, "width": 20, "height": 20}},
            {"tagName": "li", "bounds": {"x": 50, "y": 10, "width": 20, "height": 20}},
        ])
        node = await builder.build(el)
        assert isinstance(node, GroupNode)
        assert (node.bounds.x, node.bounds.width) == (10, 60)


class TestLeafChildren:
    @pytest.mark.asyncio
    async def test_children_of_text_are_hoisted(self, builder, root):
        el = make_element(tag="BUTTON", text="Buy", children=[
            {"tagName": "span", "textContent": "icon",
             "bounds": {"x": 0, "y": 0, "width": 10, "height": 10}},
        ])
        await builder.build(el, parent=root, order=3)
        root.sort_children()
        assert [c.characters for c in root.children] == ["Buy", "icon"]
        assert root.children[1].order == 3
        assert root.children[1].parent is root


class TestCounters:
    @pytest.mark.asyncio
    async def test_created_nodes_are_counted(self, builder, context):
        el = make_element(children=[
            {"tagName": "p", "textContent": "a", "bounds": {"x": 0, "y": 0, "width": 10, "height": 10}},
            {"tagName": "p", "textContent": "b", "bounds": {"x": 0, "y": 0, "width": 10, "height": 10}},
        ])
        await builder.build(el)
        assert len(context.created) == 3
        assert context.monitor.created_nodes == 3
        assert len({n.id for n in context.created}) == 3
