"""mirror show — print the items of the last mirrored launch."""
from __future__ import annotations

from story_mirror.commands._run import journal_path
from story_mirror.store.journal import JournalPort


def cmd_show(cwd: str, with_logs: bool = False):
    db_path = journal_path(cwd)
    if not db_path.exists():
        print("Nothing to show — no journal found. Run: mirror replay <run>")
        return

    port = JournalPort(db_path)
    try:
        launches = port.get_launches()
        if not launches:
            print("Journal is empty.")
            return
        launch = launches[-1]
        print(f'Launch #{launch["id"]} "{launch["name"]}" started {launch["start_time"]}')

        items = port.get_items(launch["id"])
        depth: dict[int, int] = {}
        for item in items:
            level = depth.get(item["parent_id"], -1) + 1 if item["parent_id"] else 0
            depth[item["id"]] = level
            status = item["status"] or "OPEN"
            print(f'{"  " * (level + 1)}{status:<8} {item["type"]:<11} {item["name"]}')
            if with_logs:
                for entry in port.get_logs(item["id"]):
                    first_line = entry["message"].splitlines()[0] if entry["message"] else ""
                    print(f'{"  " * (level + 2)}[{entry["level"]}] {first_line}')
    finally:
        port.close()
