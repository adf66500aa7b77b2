"""mirror replay <run> — mirror a run file into the local journal."""
from __future__ import annotations

import sys

from story_mirror.commands._run import journal_path, load_run, mirror_run
from story_mirror.config import load_settings
from story_mirror.engine import MappingError
from story_mirror.store.journal import JournalPort


def cmd_replay(run_file: str, cwd: str):
    settings = load_settings()
    run = load_run(run_file, cwd)

    db_path = journal_path(cwd)
    db_path.parent.mkdir(exist_ok=True)
    port = JournalPort(db_path)
    try:
        mapper = mirror_run(run, port, settings)
    except (MappingError, ValueError) as e:
        print(f"✗ Replay failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        port.close()

    roots = list(mapper.tree.roots.values())
    total = sum(1 for _ in mapper.tree.walk())
    print(f'✓ Launch "{settings.launch_name}" mirrored ({total} items)')
    for node in roots:
        print(f"  {node.outcome.value:<8} {node.code_ref}")
