"""Outbound capability interface to the reporting backend."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from story_mirror.types import (
        FinishItemRequest,
        Handle,
        LogLevel,
        StartItemRequest,
        StartLaunchRequest,
    )


class ItemPort(Protocol):
    """Every call returns immediately; resolution of handles is the port's business."""

    def start_launch(self, request: StartLaunchRequest) -> Handle: ...

    def finish_launch(self, handle: Handle, end_time: datetime) -> None: ...

    def create_item(self, parent: Handle | None, request: StartItemRequest) -> Handle: ...

    def close_item(self, handle: Handle, request: FinishItemRequest) -> None: ...

    def emit_log(self, handle: Handle, level: LogLevel, message: str, timestamp: datetime) -> None: ...
