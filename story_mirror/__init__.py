"""Mirror story runs, node for node, as items in a reporting backend."""
from story_mirror.engine import ExecutionTree, Launch, Runner, StoryMapper

__all__ = ["ExecutionTree", "Launch", "Runner", "StoryMapper"]
