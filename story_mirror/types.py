from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from concurrent.futures import Future
    from datetime import datetime

# ─── Enums ───


class NodeType(Enum):
    STORY = "STORY"  # root suite or nested (given) story
    SCENARIO = "SCENARIO"
    EXAMPLE = "EXAMPLE"  # one row of an examples table
    STEP = "STEP"
    BEFORE_HOOK = "BEFORE_HOOK"
    AFTER_HOOK = "AFTER_HOOK"


class Outcome(Enum):
    UNSET = "UNSET"
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class LogLevel(Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


# ─── Backend handle ───

class Handle:
    """Opaque, eventually-resolved reference to a backend item.

    The mapper only passes handles around. Resolving (``result()``) is for
    ports and tests.
    """

    def __init__(self, future: Future[str]):
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> str:
        return self._future.result(timeout)

    def __repr__(self) -> str:
        if self._future.cancelled():
            state = "cancelled"
        elif not self._future.done():
            state = "pending"
        else:
            error = self._future.exception()
            state = f"failed: {error!r}" if error is not None else self._future.result()
        return f"Handle({state})"


# ─── Backend requests ───

@dataclass(frozen=True)
class Parameter:
    key: str
    value: str


@dataclass(frozen=True)
class ItemAttribute:
    key: str | None
    value: str
    system: bool = False


@dataclass
class StartItemRequest:
    name: str
    type: NodeType
    start_time: datetime
    code_ref: str
    parameters: list[Parameter] = field(default_factory=list)
    attributes: list[ItemAttribute] = field(default_factory=list)
    description: str = ""
    test_case_id: str | None = None


@dataclass
class FinishItemRequest:
    end_time: datetime
    status: Outcome
    issue: str | None = None  # e.g. NOT_ISSUE for skipped steps


@dataclass
class StartLaunchRequest:
    name: str
    start_time: datetime
    description: str = ""
    mode: str = "DEFAULT"
    attributes: list[ItemAttribute] = field(default_factory=list)


# ─── Execution tree ───

@dataclass
class NodeSpec:
    """Display data a factory hands to the tree on a cache miss."""
    name: str
    type: NodeType
    ref_name: str | None = None  # text used in the code reference, defaults to name
    parameters: list[Parameter] = field(default_factory=list)
    attributes: list[ItemAttribute] = field(default_factory=list)
    description: str = ""


@dataclass(eq=False)
class Node:
    identity: Any
    type: NodeType
    name: str
    code_ref: str
    handle: Handle
    parameters: list[Parameter] = field(default_factory=list)
    test_case_id: str | None = None
    outcome: Outcome = Outcome.UNSET
    closed: bool = False
    parent: Node | None = field(default=None, repr=False)
    children: dict[Any, Node] = field(default_factory=dict, repr=False)

    def path(self) -> list[Node]:
        chain: list[Node] = []
        node: Node | None = self
        while node is not None:
            chain.append(node)
            node = node.parent
        return list(reversed(chain))


# ─── Run definition IR (parsed from YAML, replayed by the runner) ───

@dataclass
class HookFailure:
    name: str
    cause: str = ""


@dataclass
class StepDefinition:
    name: str
    outcome: str = "successful"  # successful | failed | pending | ignorable | not_performed
    cause: str = ""


@dataclass
class ScenarioDefinition:
    title: str
    meta: dict[str, str] = field(default_factory=dict)
    steps: list[StepDefinition] = field(default_factory=list)
    examples: list[dict[str, str]] = field(default_factory=list)
    filter: str | None = None  # set -> the scenario is not allowed
    before: list[HookFailure] = field(default_factory=list)
    after: list[HookFailure] = field(default_factory=list)
    given: list[StoryDefinition] = field(default_factory=list)

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]


@dataclass
class StoryDefinition:
    path: str
    meta: dict[str, str] = field(default_factory=dict)
    scenarios: list[ScenarioDefinition] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class RunDefinition:
    stories: list[StoryDefinition] = field(default_factory=list)
    before_stories: list[HookFailure] = field(default_factory=list)
    after_stories: list[HookFailure] = field(default_factory=list)
