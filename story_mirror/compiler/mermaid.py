"""Generate a Mermaid flowchart from an execution tree."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from story_mirror.types import NodeType

if TYPE_CHECKING:
    from story_mirror.engine.tree import ExecutionTree
    from story_mirror.types import Node

_counter = 0


def _make_id(name: str) -> str:
    global _counter
    _counter += 1
    clean = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    clean = re.sub(r"_+", "_", clean).strip("_")[:24]
    return f"n{_counter}_{clean}"


def _shape(node: Node, sid: str) -> str:
    label = f"{node.type.value}: {node.name} ({node.outcome.value})".replace('"', "'")
    match node.type:
        case NodeType.STORY:
            return f'    {sid}[["{label}"]]'
        case NodeType.SCENARIO:
            return f'    {sid}("{label}")'
        case NodeType.EXAMPLE:
            return f'    {sid}[/"{label}"/]'
        case NodeType.BEFORE_HOOK | NodeType.AFTER_HOOK:
            return f'    {sid}{{{{"{label}"}}}}'
        case _:
            return f'    {sid}["{label}"]'


def generate_mermaid(tree: ExecutionTree) -> str:
    global _counter
    _counter = 0

    ids: dict[int, str] = {}
    nodes: list[str] = []
    edges: list[str] = []

    for node in tree.walk():
        sid = _make_id(node.name)
        ids[id(node)] = sid
        nodes.append(_shape(node, sid))
        if node.parent is not None:
            edges.append(f"    {ids[id(node.parent)]} --> {sid}")

    lines = ["graph TD"]
    lines.extend(nodes)
    lines.extend(edges)
    return "\n".join(lines)
