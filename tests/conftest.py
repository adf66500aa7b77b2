"""Shared fixtures for story-mirror tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from story_mirror.compiler import parse_run_yaml
from story_mirror.config import MirrorSettings
from story_mirror.engine import Launch, Runner, StoryMapper
from story_mirror.store.memory import MemoryPort
from story_mirror.types import NodeType

RUNS_DIR = Path(__file__).parent / ".mirror" / "runs"


class MirrorHarness:
    """Test harness around a mapper wired to an in-memory port.

    Drive the mapper directly through ``h.mapper`` or replay a run file
    with ``run_file``; the query helpers look items up by display name.
    """

    def __init__(self, settings: MirrorSettings | None = None):
        self.port = MemoryPort()
        self.settings = settings or MirrorSettings()
        self.launch = Launch.start(self.port, self.settings)
        self.mapper = StoryMapper(self.launch)

    def run_yaml(self, content: str) -> None:
        Runner(self.mapper).run(parse_run_yaml(content))

    def run_file(self, run_file: str) -> None:
        self.run_yaml((RUNS_DIR / run_file).read_text(encoding="utf-8"))

    # ─── Queries ───

    @property
    def names(self) -> list[str]:
        return [c.request.name for c in self.port.created]

    def created_of(self, node_type: NodeType) -> list:
        return [c for c in self.port.created if c.request.type is node_type]

    def item(self, name: str):
        item = self.port.item(name)
        assert item is not None, f"no item named {name!r}, got {self.names}"
        return item

    def status(self, name: str) -> str | None:
        return self.port.status_of(self.item(name).id)

    def logs(self, name: str) -> list:
        return self.port.logs_for(self.item(name).id)

    def finishes_of(self, node_type: NodeType) -> list:
        ids = {c.id for c in self.created_of(node_type)}
        return [f for f in self.port.finished if f.id in ids]

    def parent_name(self, name: str) -> str | None:
        parent_id = self.item(name).parent_id
        for c in self.port.created:
            if c.id == parent_id:
                return c.request.name
        return None


@pytest.fixture
def harness() -> MirrorHarness:
    return MirrorHarness()


@pytest.fixture
def harness_factory():
    """Factory fixture for harnesses with custom settings."""

    def _make(**settings) -> MirrorHarness:
        return MirrorHarness(MirrorSettings(**settings))

    return _make
