"""NodeClassifier: pick the node archetype for an extracted element.

Rules are checked in a fixed order, first match wins:

1. text       non-empty text on a text-bearing tag
2. container  structural block tag
3. group      more than one child
4. shape      everything else (images included)
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import ExtractedElement
from .design_nodes import NodeKind

TEXT_TAGS = frozenset({"P", "H1", "H2", "H3", "H4", "H5", "H6", "SPAN", "A", "LABEL", "BUTTON"})
CONTAINER_TAGS = frozenset({"DIV", "SECTION", "ARTICLE", "HEADER", "FOOTER", "NAV", "MAIN", "ASIDE"})


@dataclass(frozen=True)
class Classification:
    kind: NodeKind
    rule: str  # which rule fired: text | container | group | shape


def classify_with_reason(element: ExtractedElement) -> Classification:
    if element.text and element.tag in TEXT_TAGS:
        return Classification(NodeKind.TEXT, "text")
    if element.tag in CONTAINER_TAGS:
        return Classification(NodeKind.FRAME, "container")
    if len(element.children) > 1:
        return Classification(NodeKind.GROUP, "group")
    return Classification(NodeKind.SHAPE, "shape")


def classify(element: ExtractedElement) -> NodeKind:
    return classify_with_reason(element).kind


def should_wrap_in_group(element: ExtractedElement, depth: int) -> bool:
    """Nested containers with more than two children get their own group."""
    return depth > 0 and element.tag in CONTAINER_TAGS and len(element.children) > 2
