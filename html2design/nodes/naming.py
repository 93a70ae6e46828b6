"""Layer naming and text cleanup."""

from __future__ import annotations

import html
import re

from ..models import ExtractedElement

MAX_NAME_LENGTH = 50
TEXT_NAME_LENGTH = 30

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\s\-_]")
_WHITESPACE = re.compile(r"\s+")

SEMANTIC_NAMES = {
    "header": "Header",
    "footer": "Footer",
    "nav": "Navigation",
    "main": "Main Content",
    "aside": "Sidebar",
    "section": "Section",
    "article": "Article",
    "p": "Paragraph",
    "img": "Image",
    "button": "Button",
    "a": "Link",
    "ul": "List",
    "ol": "List",
    "li": "List Item",
    "form": "Form",
    "input": "Input",
    "textarea": "Text Area",
    "select": "Select",
    "div": "Container",
    "span": "Text",
}

_TYPOGRAPHIC_PUNCTUATION = str.maketrans({
    "\u00a0": " ",
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
})


def clean_text(text: str) -> str:
    """Decode entities, flatten non-breaking spaces and collapse whitespace."""
    if not text:
        return ""
    decoded = html.unescape(text).translate(_TYPOGRAPHIC_PUNCTUATION)
    return _WHITESPACE.sub(" ", decoded).strip()


def clean_node_name(name: str) -> str:
    cleaned = _UNSAFE_NAME_CHARS.sub("", name or "")
    return _WHITESPACE.sub(" ", cleaned).strip()[:MAX_NAME_LENGTH]


def semantic_name(tag: str) -> str:
    lowered = (tag or "element").lower()
    if len(lowered) == 2 and lowered[0] == "h" and lowered[1] in "123456":
        return f"Heading {lowered[1]}"
    return SEMANTIC_NAMES.get(lowered, lowered[:1].upper() + lowered[1:])


def generate_node_name(element: ExtractedElement) -> str:
    """Layer name by priority: id, first class, truncated text, tag meaning.

    A candidate that cleans down to nothing falls through to the next one.
    """
    if element.id and element.id.strip():
        name = clean_node_name(element.id)
        if name:
            return name
    if element.class_names:
        name = clean_node_name(element.class_names[0])
        if name:
            return name
    text = clean_text(element.text)
    if text:
        truncated = text if len(text) <= TEXT_NAME_LENGTH else text[:TEXT_NAME_LENGTH] + "..."
        name = clean_node_name(truncated)
        if name:
            return name
    return semantic_name(element.tag)
