"""mirror reset — clear the local journal."""
from __future__ import annotations

from story_mirror.commands._run import journal_path
from story_mirror.store.journal import JournalPort


def cmd_reset(cwd: str):
    db_path = journal_path(cwd)

    if not db_path.exists():
        print("Nothing to reset — no journal found.")
        return

    port = JournalPort(db_path)
    try:
        count = len(port.get_items())
        if count:
            print(f"Clearing {count} mirrored item(s)")
        port.reset()
    finally:
        port.close()

    print("Journal cleared.")
