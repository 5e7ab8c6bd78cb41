"""Comment body flattening for plain text and Atlassian Document Format."""

import json
from dataclasses import dataclass
from typing import Union

FALLBACK_DUMP_LENGTH = 100


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class ContainerNode:
    children: tuple


DocumentNode = Union[TextNode, ContainerNode]


def parse_document(node) -> DocumentNode:
    """Convert a raw ADF node into TextNode/ContainerNode values.

    A node carrying "text" is a leaf; one carrying a "content" list is a
    container. Anything else becomes an empty container.
    """
    if isinstance(node, str):
        return TextNode(node)
    if isinstance(node, dict):
        if node.get("text"):
            return TextNode(str(node["text"]))
        content = node.get("content")
        if isinstance(content, list):
            return ContainerNode(tuple(parse_document(child) for child in content))
    return ContainerNode(())


def flatten(node: DocumentNode) -> str:
    """Concatenate text leaves depth-first, joined by single spaces."""
    if isinstance(node, TextNode):
        return node.text
    return " ".join(flatten(child) for child in node.children)


def is_document(body) -> bool:
    return isinstance(body, dict) and isinstance(body.get("content"), list)


def comment_body_text(body) -> str:
    """Flatten a comment body of any supported shape into one line."""
    if isinstance(body, str):
        return body.replace("\r", " ").replace("\n", " ").strip()
    if not body:
        return ""
    if is_document(body):
        return flatten(parse_document(body)).strip()
    return json.dumps(body, separators=(",", ":"))[:FALLBACK_DUMP_LENGTH]
