from story_mirror.engine.launch import Launch
from story_mirror.engine.mapper import MappingError, StoryMapper, StructureError
from story_mirror.engine.runner import Runner
from story_mirror.engine.tree import ExecutionTree

__all__ = ["ExecutionTree", "Launch", "MappingError", "Runner", "StoryMapper", "StructureError"]
