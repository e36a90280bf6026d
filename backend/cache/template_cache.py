"""
Short-TTL in-memory cache of compiled HTML templates.
Key: template variant -> compiled fragment + stored-at timestamp.
Entries expire a fixed TTL after they were stored, regardless of access.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Hashable

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class TemplateCacheEntry:
    fragment: str
    stored_at: float


class TemplateCache:
    """
    get/set never await, so each call is atomic on the event loop.
    `clock` is injectable for tests (monotonic seconds).
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] | None = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[Hashable, TemplateCacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def _expired(self, entry: TemplateCacheEntry) -> bool:
        return self._clock() - entry.stored_at >= self.ttl_seconds

    def get(self, key: Hashable) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._expired(entry):
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry.fragment

    def set(self, key: Hashable, fragment: str) -> None:
        self._entries[key] = TemplateCacheEntry(fragment=fragment, stored_at=self._clock())

    def get_or_compile(self, key: Hashable, compile_fn: Callable[[], str]) -> str:
        cached = self.get(key)
        if cached is not None:
            return cached
        fragment = compile_fn()
        self.set(key, fragment)
        return fragment

    def evict_expired(self) -> int:
        stale = [k for k, e in self._entries.items() if self._expired(e)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
