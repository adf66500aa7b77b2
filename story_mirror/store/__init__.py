from story_mirror.store.journal import JournalPort
from story_mirror.store.memory import MemoryPort

__all__ = ["JournalPort", "MemoryPort"]
