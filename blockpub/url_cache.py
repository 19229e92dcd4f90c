from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .media import MediaResolver, ResolvedReference


@dataclass(frozen=True)
class _Entry:
    reference: ResolvedReference
    stored_at: float


class CachingMediaResolver:
    """
    TTL + LRU cache in front of another MediaResolver.

    The cache is owned by whoever constructs it; there is no process-wide state.
    An entry is served while it is younger than `ttl_seconds` and its reference's
    own `expires_at` (if any) has not passed. Failed lookups are never stored.
    """

    def __init__(
        self,
        inner: MediaResolver,
        *,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")

        self._inner = inner
        self._ttl = float(ttl_seconds)
        self._max_entries = int(max_entries)
        self._clock = clock
        self._wall_clock = wall_clock or (lambda: datetime.now(timezone.utc))
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._entries

    def clear(self) -> None:
        self._entries.clear()

    def invalidate(self, file_id: str) -> None:
        self._entries.pop(file_id, None)

    def _fresh(self, entry: _Entry) -> bool:
        if self._clock() - entry.stored_at >= self._ttl:
            return False
        return not entry.reference.is_expired(self._wall_clock())

    def _lookup(self, file_id: str) -> ResolvedReference | None:
        entry = self._entries.get(file_id)
        if entry is None:
            return None
        if not self._fresh(entry):
            del self._entries[file_id]
            return None
        self._entries.move_to_end(file_id)
        return entry.reference

    def _store(self, file_id: str, reference: ResolvedReference) -> None:
        self._entries[file_id] = _Entry(reference=reference, stored_at=self._clock())
        self._entries.move_to_end(file_id)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    async def resolve_reference(self, file_id: str) -> ResolvedReference:
        cached = self._lookup(file_id)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        reference = await self._inner.resolve_reference(file_id)
        self._store(file_id, reference)
        return reference
