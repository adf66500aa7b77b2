"""In-memory execution tree: one backend item per (parent, identity)."""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from story_mirror.engine.identity import build_reference, normalize_name
from story_mirror.engine.parameters import case_id
from story_mirror.engine.status import fold
from story_mirror.types import FinishItemRequest, Node, NodeType, Outcome, StartItemRequest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from story_mirror.engine.launch import Launch
    from story_mirror.types import LogLevel, NodeSpec

logger = logging.getLogger(__name__)

NOT_ISSUE = "NOT_ISSUE"


def _now() -> datetime:
    return datetime.now(tz=UTC)


class ExecutionTree:
    def __init__(self, launch: Launch, clock: Callable[[], datetime] = _now):
        self.launch = launch
        self.port = launch.port
        self.settings = launch.settings
        self.clock = clock
        self.roots: dict[Any, Node] = {}

    def fetch_or_create(
        self, parent: Node | None, identity: Any, factory: Callable[[], NodeSpec]
    ) -> Node:
        siblings = self.roots if parent is None else parent.children
        node = siblings.get(identity)
        if node is not None:
            return node

        spec = factory()
        parent_ref = parent.code_ref if parent else None
        code_ref = build_reference(parent_ref, spec.type, spec.ref_name or spec.name)
        test_case_id = case_id(code_ref, spec.parameters) if spec.type is NodeType.STEP else None

        request = StartItemRequest(
            name=normalize_name(spec.name, self.settings.max_name_length),
            type=spec.type,
            start_time=self.clock(),
            code_ref=code_ref,
            parameters=list(spec.parameters),
            attributes=list(spec.attributes),
            description=spec.description,
            test_case_id=test_case_id,
        )
        parent_handle = parent.handle if parent else self.launch.handle
        logger.debug("Starting %s item: %s", spec.type.value, code_ref)
        handle = self.port.create_item(parent_handle, request)

        node = Node(
            identity=identity,
            type=spec.type,
            name=request.name,
            code_ref=code_ref,
            handle=handle,
            parameters=list(spec.parameters),
            test_case_id=test_case_id,
            parent=parent,
        )
        siblings[identity] = node
        return node

    def close(self, node: Node | None, outcome: Outcome, issue: str | None = None) -> None:
        if node is None or node.closed:
            return
        if outcome is Outcome.UNSET:
            outcome = Outcome.PASSED
        if (
            issue is None
            and outcome is Outcome.SKIPPED
            and node.type is NodeType.STEP
            and not self.settings.skipped_an_issue
        ):
            issue = NOT_ISSUE

        logger.debug("Finishing %s item %s: %s", node.type.value, node.code_ref, outcome.value)
        self.port.close_item(node.handle, FinishItemRequest(self.clock(), outcome, issue))
        node.outcome = outcome
        node.closed = True

    def fold_and_close(self, node: Node | None) -> None:
        if node is None or node.closed:
            return
        self.close(node, fold(node.outcome, (c.outcome for c in node.children.values())))

    def log(self, node: Node | None, level: LogLevel, message: str) -> None:
        if node is None:
            return
        self.port.emit_log(node.handle, level, message, self.clock())

    def walk(self) -> Iterator[Node]:
        stack = list(reversed(self.roots.values()))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children.values()))

    def open_nodes(self) -> list[Node]:
        return [n for n in self.walk() if not n.closed]
