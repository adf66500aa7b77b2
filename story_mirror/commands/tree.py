"""mirror tree <run> — dry-run a run file and print the tree as Mermaid."""
from __future__ import annotations

from story_mirror.commands._run import load_run, mirror_run
from story_mirror.compiler import generate_mermaid
from story_mirror.config import load_settings
from story_mirror.store.memory import MemoryPort


def cmd_tree(run_file: str, cwd: str):
    run = load_run(run_file, cwd)
    mapper = mirror_run(run, MemoryPort(), load_settings())

    print("```mermaid")
    print(generate_mermaid(mapper.tree))
    print("```")
