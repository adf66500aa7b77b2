"""In-memory port: records every backend call, resolves handles at once."""
from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import TYPE_CHECKING

from story_mirror.types import Handle

if TYPE_CHECKING:
    from datetime import datetime

    from story_mirror.types import (
        FinishItemRequest,
        LogLevel,
        StartItemRequest,
        StartLaunchRequest,
    )


@dataclass
class CreatedItem:
    id: str
    parent_id: str | None
    request: StartItemRequest


@dataclass
class FinishedItem:
    id: str
    request: FinishItemRequest


@dataclass
class LogEntry:
    item_id: str
    level: LogLevel
    message: str
    timestamp: datetime


def resolved(item_id: str) -> Handle:
    future: Future[str] = Future()
    future.set_result(item_id)
    return Handle(future)


class MemoryPort:
    def __init__(self):
        self.launches: list[StartLaunchRequest] = []
        self.finished_launches: list[str] = []
        self.created: list[CreatedItem] = []
        self.finished: list[FinishedItem] = []
        self.logs: list[LogEntry] = []
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def start_launch(self, request: StartLaunchRequest) -> Handle:
        self.launches.append(request)
        return resolved(self._next_id("launch"))

    def finish_launch(self, handle: Handle, end_time: datetime) -> None:
        self.finished_launches.append(handle.result())

    def create_item(self, parent: Handle | None, request: StartItemRequest) -> Handle:
        item_id = self._next_id(request.type.value.lower())
        parent_id = parent.result() if parent else None
        self.created.append(CreatedItem(item_id, parent_id, request))
        return resolved(item_id)

    def close_item(self, handle: Handle, request: FinishItemRequest) -> None:
        self.finished.append(FinishedItem(handle.result(), request))

    def emit_log(self, handle: Handle, level: LogLevel, message: str, timestamp: datetime) -> None:
        self.logs.append(LogEntry(handle.result(), level, message, timestamp))

    # ─── Queries ───

    def item(self, name: str) -> CreatedItem | None:
        for item in self.created:
            if item.request.name == name:
                return item
        return None

    def status_of(self, item_id: str) -> str | None:
        for f in self.finished:
            if f.id == item_id:
                return f.request.status.value
        return None

    def logs_for(self, item_id: str) -> list[LogEntry]:
        return [entry for entry in self.logs if entry.item_id == item_id]
