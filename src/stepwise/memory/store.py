"""
Stepwise Memory - In-Memory Store
Session-scoped key/value memory for remember/recall.

Features:
- Session namespaces (one logical session per ExecutionContext.session_id)
- Per-(session, key) asyncio locks: operations on the same key are applied
  in the order they were issued, so a recall issued after a remember on the
  same key observes the write
- Keyword search over keys and values for fuzzy recall

Usage:
    store = InMemoryMemoryStore()
    await store.put("fact1", "Paris", session="s1")
    await store.get("fact1", session="s1")      # "Paris"
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


@dataclass
class MemoryEntry:
    """A remembered value."""

    key: str
    value: str
    session: str = DEFAULT_SESSION
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    access_count: int = 0


class InMemoryMemoryStore:
    """
    Process-local memory store.

    Nothing is persisted; entries live as long as the store instance. A key's
    lock exists only while the key is stored or an operation on it is pending.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], MemoryEntry] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._pending: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def _locked(self, session: str, key: str) -> AsyncIterator[None]:
        slot = (session, key)
        lock = self._locks.get(slot)
        if lock is None:
            lock = self._locks[slot] = asyncio.Lock()
        self._pending[slot] = self._pending.get(slot, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._pending[slot] -= 1
            if not self._pending[slot]:
                del self._pending[slot]
                if slot not in self._entries:
                    del self._locks[slot]

    def _drop_idle_locks(self, session: Optional[str] = None) -> None:
        for slot in list(self._locks):
            if slot in self._pending or slot in self._entries:
                continue
            if session is None or slot[0] == session:
                del self._locks[slot]

    async def put(self, key: str, value: str, session: str = DEFAULT_SESSION) -> str:
        """Store ``value`` under ``key``; returns the stored value"""
        if not key:
            raise ValueError("Memory key must not be empty")

        async with self._locked(session, key):
            existing = self._entries.get((session, key))
            if existing is None:
                self._entries[(session, key)] = MemoryEntry(key=key, value=value, session=session)
            else:
                existing.value = value
                existing.updated_at = datetime.now(timezone.utc)

        logger.debug(f"Remembered '{key}' in session '{session}' ({len(value)} chars)")
        return value

    async def get(self, key: str, session: str = DEFAULT_SESSION) -> Optional[str]:
        """Return the value stored under ``key`` or None"""
        async with self._locked(session, key):
            entry = self._entries.get((session, key))
            if entry is None:
                return None
            entry.access_count += 1
            return entry.value

    async def delete(self, key: str, session: str = DEFAULT_SESSION) -> bool:
        async with self._locked(session, key):
            return self._entries.pop((session, key), None) is not None


    async def search(self, query: str, session: str = DEFAULT_SESSION, limit: int = 5) -> List[MemoryEntry]:
        """
        Entries whose key or value mention any query word.

        Results are ranked by number of matching words, then most recent.
        """
        words = [w for w in query.lower().split() if len(w) > 2] or [query.lower().strip()]
        scored = []
        for (entry_session, _), entry in list(self._entries.items()):
            if entry_session != session:
                continue
            haystack = f"{entry.key} {entry.value}".lower()
            hits = sum(1 for word in words if word and word in haystack)
            if hits:
                scored.append((hits, entry.updated_at, entry))

        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in scored[:limit]]

    def keys(self, session: str = DEFAULT_SESSION) -> List[str]:
        return [key for (entry_session, key) in self._entries if entry_session == session]

    def sessions(self) -> List[str]:
        return sorted({session for session, _ in self._entries})

    def clear(self, session: Optional[str] = None) -> None:
        """Drop all entries, or only those of ``session``"""
        if session is None:
            self._entries.clear()
        else:
            for entry_key in [k for k in self._entries if k[0] == session]:
                del self._entries[entry_key]
        self._drop_idle_locks(session)

    def __len__(self) -> int:
        return len(self._entries)
