"""Per-agent tiered memory."""

from crytonix.memory.manager import EntityRelation, MemoryEntry, MemoryManager

__all__ = ["EntityRelation", "MemoryEntry", "MemoryManager"]
