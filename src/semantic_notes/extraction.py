"""
Plain-text extraction from rich-text document trees.

Note bodies are stored as TipTap/ProseMirror-style JSON. Raw nodes are parsed
into a small tagged variant so the extraction walk is total over every node
kind instead of probing arbitrary dict keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union


BLOCK_TYPES: frozenset[str] = frozenset(
    {"paragraph", "heading", "blockquote", "codeBlock"}
)


@dataclass(frozen=True)
class TextNode:
    """Leaf carrying literal text."""

    text: str
    type: str | None = None


@dataclass(frozen=True)
class ContainerNode:
    """Node with an optional type tag and ordered children."""

    type: str | None
    children: tuple["DocumentNode", ...] = ()
    text: str = ""


@dataclass(frozen=True)
class OpaqueNode:
    """Anything that is not a recognisable node. Extracts to nothing."""


DocumentNode = Union[TextNode, ContainerNode, OpaqueNode]


def parse_node(raw: Any) -> DocumentNode:
    """Convert a raw JSON value into a typed document node."""
    if isinstance(raw, str):
        return TextNode(text=raw)
    if isinstance(raw, list):
        return ContainerNode(type=None, children=tuple(parse_node(c) for c in raw))
    if not isinstance(raw, Mapping):
        return OpaqueNode()

    node_type = raw.get("type")
    if not isinstance(node_type, str):
        node_type = None
    text = raw.get("text")
    if not isinstance(text, str):
        text = ""
    content = raw.get("content")

    if isinstance(content, list):
        return ContainerNode(
            type=node_type,
            children=tuple(parse_node(child) for child in content),
            text=text,
        )
    if text:
        return TextNode(text=text, type=node_type)
    if node_type is not None:
        return ContainerNode(type=node_type)
    return OpaqueNode()


def _is_block(node_type: str | None) -> bool:
    return node_type is not None and node_type in BLOCK_TYPES


def _walk(node: DocumentNode, parts: list[str]) -> None:
    if isinstance(node, TextNode):
        parts.append(node.text)
        if _is_block(node.type):
            parts.append(" ")
    elif isinstance(node, ContainerNode):
        if node.text:
            parts.append(node.text)
        for child in node.children:
            _walk(child, parts)
        if _is_block(node.type):
            parts.append(" ")


def extract_text(content: Any) -> str:
    """
    Flatten a document tree into a single plain-text string.

    ``None`` yields ``""`` and a plain string is returned unchanged. Trees are
    walked depth-first in document order with one space appended after each
    block-level node; the result is stripped at both ends.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content

    parts: list[str] = []
    _walk(parse_node(content), parts)
    return "".join(parts).strip()
