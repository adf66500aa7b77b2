"""SQLite-backed port: a local journal of launches, items and logs."""
from __future__ import annotations

import json
import sqlite3
from typing import TYPE_CHECKING

from story_mirror.store.memory import resolved

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from story_mirror.types import (
        FinishItemRequest,
        Handle,
        LogLevel,
        StartItemRequest,
        StartLaunchRequest,
    )

INIT_SQL = """
CREATE TABLE IF NOT EXISTS launches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    mode TEXT NOT NULL DEFAULT 'DEFAULT',
    attributes TEXT NOT NULL DEFAULT '[]',
    start_time TEXT NOT NULL,
    end_time TEXT
);

CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    launch_id INTEGER,
    parent_id INTEGER,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    code_ref TEXT NOT NULL,
    test_case_id TEXT,
    parameters TEXT NOT NULL DEFAULT '[]',
    attributes TEXT NOT NULL DEFAULT '[]',
    description TEXT NOT NULL DEFAULT '',
    start_time TEXT NOT NULL,
    end_time TEXT,
    status TEXT,
    issue TEXT
);

CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id INTEGER NOT NULL,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
"""

_ITEM_COLUMNS = (
    "id", "launch_id", "parent_id", "name", "type", "code_ref", "test_case_id",
    "parameters", "attributes", "description", "start_time", "end_time", "status", "issue",
)


def _key(kind: str, row_id: int) -> str:
    return f"{kind}:{row_id}"


def _row_id(handle: Handle) -> tuple[str, int]:
    kind, _, row_id = handle.result().partition(":")
    return kind, int(row_id)


class JournalPort:
    def __init__(self, db_path: str | Path):
        self.db = sqlite3.connect(str(db_path))
        self.db.execute("PRAGMA journal_mode = WAL")
        self.db.executescript(INIT_SQL)
        self._launch_id: int | None = None

    # ─── Port ───

    def start_launch(self, request: StartLaunchRequest) -> Handle:
        cur = self.db.execute(
            "INSERT INTO launches (name, description, mode, attributes, start_time) VALUES (?, ?, ?, ?, ?)",
            (
                request.name,
                request.description,
                request.mode,
                json.dumps([a.__dict__ for a in request.attributes]),
                request.start_time.isoformat(),
            ),
        )
        self.db.commit()
        self._launch_id = cur.lastrowid
        return resolved(_key("launch", cur.lastrowid))

    def finish_launch(self, handle: Handle, end_time: datetime) -> None:
        _, launch_id = _row_id(handle)
        self.db.execute("UPDATE launches SET end_time = ? WHERE id = ?", (end_time.isoformat(), launch_id))
        self.db.commit()

    def create_item(self, parent: Handle | None, request: StartItemRequest) -> Handle:
        parent_id = None
        if parent is not None:
            kind, row_id = _row_id(parent)
            parent_id = row_id if kind == "item" else None
        cur = self.db.execute(
            """INSERT INTO items
               (launch_id, parent_id, name, type, code_ref, test_case_id,
                parameters, attributes, description, start_time)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                self._launch_id,
                parent_id,
                request.name,
                request.type.value,
                request.code_ref,
                request.test_case_id,
                json.dumps([[p.key, p.value] for p in request.parameters]),
                json.dumps([a.__dict__ for a in request.attributes]),
                request.description,
                request.start_time.isoformat(),
            ),
        )
        self.db.commit()
        return resolved(_key("item", cur.lastrowid))

    def close_item(self, handle: Handle, request: FinishItemRequest) -> None:
        _, item_id = _row_id(handle)
        self.db.execute(
            "UPDATE items SET end_time = ?, status = ?, issue = ? WHERE id = ?",
            (request.end_time.isoformat(), request.status.value, request.issue, item_id),
        )
        self.db.commit()

    def emit_log(self, handle: Handle, level: LogLevel, message: str, timestamp: datetime) -> None:
        _, item_id = _row_id(handle)
        self.db.execute(
            "INSERT INTO logs (item_id, level, message, timestamp) VALUES (?, ?, ?, ?)",
            (item_id, level.value, message, timestamp.isoformat()),
        )
        self.db.commit()

    # ─── Queries ───

    def get_launches(self) -> list[dict]:
        rows = self.db.execute(
            "SELECT id, name, start_time, end_time FROM launches ORDER BY id"
        ).fetchall()
        return [{"id": r[0], "name": r[1], "start_time": r[2], "end_time": r[3]} for r in rows]

    def get_items(self, launch_id: int | None = None) -> list[dict]:
        sql = f"SELECT {', '.join(_ITEM_COLUMNS)} FROM items"
        args: tuple = ()
        if launch_id is not None:
            sql += " WHERE launch_id = ?"
            args = (launch_id,)
        rows = self.db.execute(sql + " ORDER BY id", args).fetchall()
        items = []
        for r in rows:
            item = dict(zip(_ITEM_COLUMNS, r, strict=True))
            item["parameters"] = json.loads(item["parameters"])
            item["attributes"] = json.loads(item["attributes"])
            items.append(item)
        return items

    def get_logs(self, item_id: int | None = None) -> list[dict]:
        sql = "SELECT id, item_id, level, message, timestamp FROM logs"
        args: tuple = ()
        if item_id is not None:
            sql += " WHERE item_id = ?"
            args = (item_id,)
        rows = self.db.execute(sql + " ORDER BY id", args).fetchall()
        return [
            {"id": r[0], "item_id": r[1], "level": r[2], "message": r[3], "timestamp": r[4]}
            for r in rows
        ]

    def reset(self) -> None:
        self.db.execute("DELETE FROM logs")
        self.db.execute("DELETE FROM items")
        self.db.execute("DELETE FROM launches")
        self.db.commit()

    def close(self) -> None:
        self.db.close()
