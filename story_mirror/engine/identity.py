"""Node identities, code references and display-name normalization."""
from __future__ import annotations

from typing import Any

from story_mirror.types import NodeType

MAX_NAME_LENGTH = 256
UNKNOWN_NAME = "UNKNOWN"

TAGS: dict[NodeType, str] = {
    NodeType.STORY: "STORY",
    NodeType.SCENARIO: "SCENARIO",
    NodeType.EXAMPLE: "EXAMPLE",
    NodeType.STEP: "STEP",
    NodeType.BEFORE_HOOK: "BEFORE",
    NodeType.AFTER_HOOK: "AFTER",
}


def identity_of(node_type: NodeType, name: str) -> tuple[NodeType, Any]:
    return (node_type, name)


def row_identity(row: dict[str, str]) -> tuple[NodeType, Any]:
    """Example rows are identified by their content, regardless of column order."""
    return (NodeType.EXAMPLE, frozenset(row.items()))


def sanitize(name: str) -> str:
    return name.replace("\r", "").replace("\n", "")


def build_reference(parent_ref: str | None, node_type: NodeType, name: str) -> str:
    if not parent_ref:
        return name
    return f"{parent_ref}/[{TAGS[node_type]}:{sanitize(name)}]"


def normalize_name(name: str | None, max_length: int = MAX_NAME_LENGTH) -> str:
    if not name:
        return UNKNOWN_NAME
    if len(name) > max_length:
        return name[: max_length - 1]
    return name
