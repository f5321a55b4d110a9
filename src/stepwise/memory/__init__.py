"""
Stepwise Memory

Session-scoped key/value memory behind the remember and recall capabilities.
"""

from stepwise.memory.store import DEFAULT_SESSION, InMemoryMemoryStore, MemoryEntry

__all__ = [
    "DEFAULT_SESSION",
    "InMemoryMemoryStore",
    "MemoryEntry",
]
