"""Story run -> execution tree state machine.

Consumes the engine's lifecycle callbacks in order and keeps a stack of path
segments, one per open level:

    STORY -> SCENARIO -> (EXAMPLE)? -> STEP

Hook frames (BEFORE_HOOK / AFTER_HOOK) are synthesized when a failure
arrives that no open step can own: at the root for BeforeStories /
AfterStories, under a story outside scenarios, or under a scenario (or
example row) around its steps.
"""
from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from story_mirror.engine.identity import identity_of, row_identity
from story_mirror.engine.parameters import (
    expand,
    format_row_name,
    format_row_reference,
    join_meta,
    merge_meta,
    meta_attributes,
)
from story_mirror.engine.tree import ExecutionTree
from story_mirror.types import LogLevel, NodeSpec, NodeType, Outcome, Parameter

if TYPE_CHECKING:
    from story_mirror.engine.launch import Launch
    from story_mirror.types import Node, ScenarioDefinition

logger = logging.getLogger(__name__)

BEFORE_STORIES = "BeforeStories"
AFTER_STORIES = "AfterStories"

BEFORE_STORY = "Before story"
AFTER_STORY = "After story"
BEFORE_SCENARIO = "Before scenario"
AFTER_SCENARIO = "After scenario"

PENDING_MESSAGE = "Unable to locate a step implementation"
NOT_PERFORMED_MESSAGE = "Step was not performed because of a previous failure"


class MappingError(Exception):
    pass


class StructureError(MappingError):
    """The callback sequence does not match the open path."""


# ─── Path state ───

@dataclass(eq=False)
class _Segment:
    type: NodeType
    identity: Any
    spec: NodeSpec
    parent: _Segment | None = None
    suite: bool = False
    node: Node | None = None

    @property
    def raw_name(self) -> str:
        return self.spec.ref_name or self.spec.name


@dataclass
class _Examples:
    steps: list[str]
    rows: list[dict[str, str]]
    row: dict[str, str] | None = None
    index: int = -1


@dataclass
class _Story:
    segment: _Segment
    depth: int  # stack index of the suite segment
    meta: dict[str, str] = field(default_factory=dict)
    scenario_meta: dict[str, str] = field(default_factory=dict)
    examples: _Examples | None = None
    scenario_skipped: bool = False  # closed by scenario_not_allowed, end_scenario still to come


_CONTAINERS = (NodeType.SCENARIO, NodeType.EXAMPLE)
_HOOKS = (NodeType.BEFORE_HOOK, NodeType.AFTER_HOOK)


class StoryMapper:
    def __init__(self, launch: Launch, tree: ExecutionTree | None = None):
        self.launch = launch
        self.tree = tree or ExecutionTree(launch)
        self._stack: list[_Segment] = []
        self._stories: list[_Story] = []

    # ─── Suites ───

    def begin_suite(self, name: str, given: bool = False, meta: dict[str, str] | None = None) -> None:
        phase = None
        if not given and name == BEFORE_STORIES:
            phase = NodeType.BEFORE_HOOK
        elif not given and name == AFTER_STORIES:
            phase = NodeType.AFTER_HOOK

        node_type = phase or NodeType.STORY
        parent = None
        if given and self._stories:
            # Nests under the innermost scenario, row or story
            parent = self._unwind_to_container(self._stories[-1])
        spec = NodeSpec(
            name=name,
            type=node_type,
            attributes=meta_attributes(meta),
            description=join_meta(meta),
        )
        segment = _Segment(node_type, identity_of(node_type, name), spec, parent, suite=True)
        self._stack.append(segment)
        self._stories.append(_Story(segment, len(self._stack) - 1, meta=dict(meta or {})))
        logger.debug("Begin story: %s (given=%s)", name, given)

        # Run-level hook suites only show up if something inside them fails
        if phase is None:
            self._materialize(segment)

    def end_suite(self) -> None:
        story = self._current_story()
        if story is None:
            return
        self._unwind_to_suite(story)
        self._stack.pop()
        self.tree.fold_and_close(story.segment.node)
        self._stories.pop()

    def suite_cancelled(self) -> None:
        story = self._current_story()
        if story is None:
            return
        while len(self._stack) > story.depth + 1:
            self.tree.close(self._stack.pop().node, Outcome.SKIPPED)
        self._stack.pop()
        self.tree.close(story.segment.node, Outcome.SKIPPED)
        self._stories.pop()
        logger.debug("Story cancelled: %s", story.segment.raw_name)

    # ─── Scenarios ───

    def begin_scenario(self, title: str, meta: dict[str, str] | None = None) -> None:
        story = self._current_story()
        if story is None:
            return
        self._unwind_to_suite(story)
        story.scenario_meta = dict(meta or {})
        story.examples = None
        story.scenario_skipped = False

        merged = merge_meta(story.meta, story.scenario_meta)
        name, _ = expand(title, merged)
        spec = NodeSpec(
            name=name,
            type=NodeType.SCENARIO,
            ref_name=title,
            attributes=meta_attributes(story.scenario_meta),
            description=join_meta(merged),
        )
        segment = _Segment(NodeType.SCENARIO, identity_of(NodeType.SCENARIO, title), spec, story.segment)
        self._stack.append(segment)
        self._materialize(segment)

    def end_scenario(self) -> None:
        story = self._current_story()
        if story is None:
            return
        scenario = self._find(NodeType.SCENARIO)
        if scenario is None:
            if story.scenario_skipped:
                story.scenario_skipped = False
            elif any(s.type is NodeType.SCENARIO for s in self._stack[: story.depth]):
                raise StructureError(
                    f"end_scenario while story {story.segment.raw_name!r} is still open"
                )
            return
        self._unwind_to(scenario)
        self._stack.pop()
        self.tree.fold_and_close(scenario.node)
        story.examples = None

    def scenario_not_allowed(self, scenario: ScenarioDefinition, filter_reason: str = "") -> None:
        story = self._current_story()
        if story is None:
            return
        segment = self._find(NodeType.SCENARIO)
        if segment is None:
            self.begin_scenario(scenario.title, scenario.meta)
            segment = self._stack[-1]
        self._unwind_to(segment)
        if filter_reason:
            self.tree.log(segment.node, LogLevel.INFO, f"Scenario not allowed by filter: {filter_reason}")

        steps = scenario.step_names
        if scenario.examples:
            self.begin_examples(steps, scenario.examples)
            for index, row in enumerate(scenario.examples):
                self.example_row(row, index)
                for step in steps:
                    self._simulate_step(step, Outcome.SKIPPED)
            self.end_examples()
        else:
            for step in steps:
                self._simulate_step(step, Outcome.SKIPPED)

        self._unwind_to(segment)
        self._stack.pop()
        self.tree.close(segment.node, Outcome.SKIPPED)
        story.examples = None
        story.scenario_skipped = True

    # ─── Examples ───

    def begin_examples(self, steps: list[str], table: list[dict[str, str]]) -> None:
        story = self._current_story()
        if story is None:
            return
        story.examples = _Examples(list(steps), [dict(r) for r in table])

    def example_row(self, row: dict[str, str], index: int | None = None) -> None:
        story = self._current_story()
        scenario = self._find(NodeType.SCENARIO)
        if story is None or scenario is None:
            return
        if story.examples is None:
            story.examples = _Examples([], [])
        self._unwind_to(scenario)

        row = dict(row)
        spec = NodeSpec(
            name=format_row_name(row),
            type=NodeType.EXAMPLE,
            ref_name=format_row_reference(row),
            parameters=[Parameter(k, v) for k, v in row.items()],
        )
        segment = _Segment(NodeType.EXAMPLE, row_identity(row), spec, scenario)
        self._stack.append(segment)
        self._materialize(segment)
        story.examples.row = row
        story.examples.index = len(story.examples.rows) if index is None else index

    def end_examples(self) -> None:
        story = self._current_story()
        if story is None:
            return
        scenario = self._find(NodeType.SCENARIO)
        if scenario is not None:
            self._unwind_to(scenario)
        story.examples = None

    # ─── Steps ───

    def begin_step(self, name: str) -> None:
        story = self._current_story()
        if story is None:
            return
        container = self._unwind_to_container(story)

        row = story.examples.row if story.examples else None
        if row is not None and container.type is NodeType.EXAMPLE:
            text, params = expand(name, row)
            description = ""
        else:
            text, params = name, []
            description = join_meta(merge_meta(story.meta, story.scenario_meta))

        spec = NodeSpec(
            name=text,
            type=NodeType.STEP,
            ref_name=name,
            parameters=params,
            description=description,
        )
        segment = _Segment(NodeType.STEP, identity_of(NodeType.STEP, name), spec, container)
        self._stack.append(segment)
        self._materialize(segment)

    def step_successful(self, name: str | None = None) -> None:
        self._finish_step(Outcome.PASSED)

    def step_ignorable(self, name: str) -> None:
        self._ensure_step(name)
        self._finish_step(Outcome.SKIPPED)

    def step_not_performed(self, name: str) -> None:
        segment = self._ensure_step(name)
        if segment is not None:
            self.tree.log(segment.node, LogLevel.WARN, NOT_PERFORMED_MESSAGE)
        self._finish_step(Outcome.SKIPPED)

    def step_pending(self, name: str) -> None:
        segment = self._ensure_step(name)
        if segment is not None:
            self.tree.log(segment.node, LogLevel.WARN, PENDING_MESSAGE)
        self._finish_step(Outcome.SKIPPED)

    def step_failed(self, name: str | None, cause: BaseException | str | None = None) -> None:
        step = self._open_step()
        if step is not None and (name is None or name in (step.raw_name, step.spec.name)):
            self.tree.log(step.node, LogLevel.ERROR, format_cause(cause))
            self._finish_step(Outcome.FAILED)
            return
        self._hook_failed(name or "Unknown hook", cause)

    # ─── Run end ───

    def finish(self) -> bool:
        """Close anything the engine left open and finish the launch.

        Returns True if the path was already empty.
        """
        clean = not self._stack
        while self._stack:
            segment = self._stack.pop()
            if segment.node is not None and not segment.node.closed:
                logger.warning("Closing unfinished %s item: %s", segment.type.value, segment.node.code_ref)
            self.tree.close(segment.node, Outcome.FAILED)
        self._stories.clear()
        self.launch.finish()
        return clean

    @property
    def depth(self) -> int:
        return len(self._stack)

    def current_path(self) -> list[str]:
        return [s.spec.name for s in self._stack]

    # ─── Private ───

    def _current_story(self) -> _Story | None:
        return self._stories[-1] if self._stories else None

    def _open_step(self) -> _Segment | None:
        if self._stack and self._stack[-1].type is NodeType.STEP:
            return self._stack[-1]
        return None

    def _find(self, node_type: NodeType) -> _Segment | None:
        """Innermost segment of ``node_type`` within the current story."""
        story = self._current_story()
        if story is None:
            return None
        for segment in reversed(self._stack[story.depth + 1:]):
            if segment.type is node_type:
                return segment
        return None

    def _materialize(self, segment: _Segment) -> Node:
        if segment.node is None:
            parent = self._materialize(segment.parent) if segment.parent else None
            segment.node = self.tree.fetch_or_create(parent, segment.identity, lambda: segment.spec)
        return segment.node

    def _close_dangling(self) -> None:
        segment = self._stack.pop()
        if segment.type is NodeType.STEP:
            # The engine never reported a result for it
            self.tree.close(segment.node, Outcome.SKIPPED)
        else:
            self.tree.fold_and_close(segment.node)

    def _unwind_to(self, segment: _Segment) -> None:
        while self._stack and self._stack[-1] is not segment:
            self._close_dangling()

    def _unwind_to_suite(self, story: _Story) -> None:
        while len(self._stack) > story.depth + 1:
            self._close_dangling()

    def _unwind_to_container(self, story: _Story) -> _Segment:
        """Close steps and hook frames above the innermost scenario/example/story."""
        while len(self._stack) > story.depth + 1 and self._stack[-1].type not in _CONTAINERS:
            self._close_dangling()
        return self._stack[-1]

    def _ensure_step(self, name: str) -> _Segment | None:
        step = self._open_step()
        if step is not None and name in (step.raw_name, step.spec.name):
            return step
        self.begin_step(name)
        return self._open_step()

    def _finish_step(self, outcome: Outcome) -> None:
        step = self._open_step()
        if step is None:
            return
        self._stack.pop()
        self.tree.close(step.node, outcome)

    def _simulate_step(self, name: str, outcome: Outcome) -> None:
        self.begin_step(name)
        self._finish_step(outcome)

    def _hook_failed(self, name: str, cause: BaseException | str | None) -> None:
        story = self._current_story()
        if story is None:
            logger.warning("Failure outside of any story, dropped: %s", name)
            return

        if story.segment.type is not NodeType.STORY:
            # Inside BeforeStories / AfterStories the suite is the hook frame
            frame = story.segment
            self._unwind_to_suite(story)
        else:
            frame = self._hook_frame(story)

        frame_node = self._materialize(frame)
        failing = self.tree.fetch_or_create(
            frame_node,
            identity_of(NodeType.STEP, name),
            lambda: NodeSpec(name=name, type=NodeType.STEP),
        )
        self.tree.log(failing, LogLevel.ERROR, format_cause(cause))
        self.tree.close(failing, Outcome.FAILED)

    def _hook_frame(self, story: _Story) -> _Segment:
        # Drop a dangling step first, keep an open hook frame for now
        while len(self._stack) > story.depth + 1 and self._stack[-1].type is NodeType.STEP:
            self._close_dangling()

        top = self._stack[-1]
        open_frame = top if top.type in _HOOKS and not top.suite else None
        container = open_frame.parent if open_frame else top
        container_node = self._materialize(container)

        # Anything besides a hook frame (steps, rows, scenarios, given stories) means the body ran
        started = any(c.type not in _HOOKS for c in container_node.children.values())
        if container.type in _CONTAINERS:
            hook_type, hook_name = (
                (NodeType.AFTER_HOOK, AFTER_SCENARIO) if started else (NodeType.BEFORE_HOOK, BEFORE_SCENARIO)
            )
        else:
            hook_type, hook_name = (
                (NodeType.AFTER_HOOK, AFTER_STORY) if started else (NodeType.BEFORE_HOOK, BEFORE_STORY)
            )

        identity = identity_of(hook_type, hook_name)
        if open_frame is not None:
            if open_frame.identity == identity:
                return open_frame
            self._close_dangling()

        frame = _Segment(hook_type, identity, NodeSpec(name=hook_name, type=hook_type), container)
        self._stack.append(frame)
        return frame


def format_cause(cause: BaseException | str | None) -> str:
    if cause is None:
        return "Unknown failure"
    if isinstance(cause, BaseException):
        return "".join(traceback.format_exception(cause)).rstrip()
    return str(cause)
