"""The run container every root item hangs off."""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from story_mirror.engine.parameters import meta_attributes
from story_mirror.types import ItemAttribute, StartLaunchRequest

if TYPE_CHECKING:
    from story_mirror.config import MirrorSettings
    from story_mirror.port import ItemPort
    from story_mirror.types import Handle

logger = logging.getLogger(__name__)

SKIPPED_ISSUE_KEY = "skippedIssue"


class Launch:
    def __init__(self, port: ItemPort, settings: MirrorSettings, handle: Handle):
        self.port = port
        self.settings = settings
        self.handle = handle
        self.finished = False

    @classmethod
    def start(cls, port: ItemPort, settings: MirrorSettings) -> Launch:
        attributes = meta_attributes(settings.attributes)
        attributes.append(ItemAttribute(
            SKIPPED_ISSUE_KEY, str(settings.skipped_an_issue).lower(), system=True
        ))
        request = StartLaunchRequest(
            name=settings.launch_name,
            start_time=datetime.now(tz=UTC),
            description=settings.description,
            mode=settings.mode,
            attributes=attributes,
        )
        logger.debug("Starting launch: %s", settings.launch_name)
        return cls(port, settings, port.start_launch(request))

    def finish(self) -> None:
        if self.finished:
            return
        logger.debug("Finishing launch: %s", self.settings.launch_name)
        self.port.finish_launch(self.handle, datetime.now(tz=UTC))
        self.finished = True
