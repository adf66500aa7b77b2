"""Shared plumbing for commands that replay a run file."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from story_mirror.compiler import format_errors, parse_run_yaml, validate_run
from story_mirror.engine import Launch, Runner, StoryMapper

if TYPE_CHECKING:
    from story_mirror.config import MirrorSettings
    from story_mirror.port import ItemPort
    from story_mirror.types import RunDefinition

MIRROR_DIR = ".mirror"
JOURNAL_FILE = "journal.db"


def journal_path(cwd: str) -> Path:
    return Path(cwd) / MIRROR_DIR / JOURNAL_FILE


def load_run(run_file: str, cwd: str) -> RunDefinition:
    """Parse and validate a run file; exit with a message on failure."""
    path = Path(cwd) / run_file
    if not path.exists():
        print(f"Run file not found: {path}", file=sys.stderr)
        sys.exit(1)

    try:
        run = parse_run_yaml(path.read_text(encoding="utf-8"))
    except ValueError as e:
        print(f"✗ Parse error: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_run(run)
    if any(e.level == "error" for e in errors):
        print(f"✗ {run_file} failed validation:", file=sys.stderr)
        print(format_errors(errors), file=sys.stderr)
        sys.exit(1)
    if errors:
        print(format_errors(errors), file=sys.stderr)
    return run


def mirror_run(run: RunDefinition, port: ItemPort, settings: MirrorSettings) -> StoryMapper:
    launch = Launch.start(port, settings)
    mapper = StoryMapper(launch)
    Runner(mapper).run(run)
    mapper.finish()
    return mapper
