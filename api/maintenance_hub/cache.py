# maintenance_hub/cache.py
"""
Query cache keyed by tuples such as ("user-roles", user_id).

Each entry keeps the last data, its status and when it was fetched.
Concurrent reads of the same key share one load. Entries older than `ttl`
seconds are reloaded on the next read, and once the cache holds more than
`max_entries` keys the oldest ones are dropped. `invalidate(prefix)` drops
every key that starts with the given prefix so the next read goes back to
the store.
"""
from __future__ import annotations
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryStatus(str, enum.Enum):
    idle = "idle"
    loading = "loading"
    success = "success"
    error = "error"


@dataclass
class CacheEntry:
    data: Any = None
    status: QueryStatus = QueryStatus.idle
    last_fetched: Optional[datetime] = None
    error: Optional[BaseException] = None
    task: Optional["asyncio.Future[CacheEntry]"] = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.status is QueryStatus.success


class QueryCache:
    def __init__(
        self,
        ttl: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}

    @classmethod
    def from_settings(cls, settings) -> "QueryCache":
        return cls(ttl=settings.ROLE_CACHE_TTL, max_entries=settings.ROLE_CACHE_MAX_ENTRIES)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return tuple(key) in self._entries

    def get(self, key: QueryKey) -> Optional[CacheEntry]:
        return self._entries.get(tuple(key))

    def status(self, key: QueryKey) -> QueryStatus:
        entry = self.get(key)
        return entry.status if entry else QueryStatus.idle

    def is_stale(self, entry: CacheEntry) -> bool:
        if self.ttl is None or entry.last_fetched is None:
            return False
        return self.clock() - entry.last_fetched >= timedelta(seconds=self.ttl)

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> CacheEntry:
        """
        Return the entry for `key`, loading it when absent, errored or stale.

        Callers arriving while a load is running wait for that same load.
        Loader failures are recorded on the entry, not raised.
        """
        key = tuple(key)
        entry = self._entries.get(key)
        if entry is not None:
            if entry.status is QueryStatus.loading and entry.task is not None and not entry.task.done():
                return await asyncio.shield(entry.task)
            if entry.ok and not self.is_stale(entry):
                return entry

        entry = CacheEntry(status=QueryStatus.loading)
        self._entries[key] = entry
        entry.task = asyncio.ensure_future(self._load(key, entry, loader))
        self._evict()
        return await asyncio.shield(entry.task)

    async def _load(self, key: QueryKey, entry: CacheEntry, loader: Callable[[], Awaitable[Any]]) -> CacheEntry:
        try:
            data = await loader()
        except Exception as e:
            logger.warning("query %r failed: %s", key, e)
            entry.status = QueryStatus.error
            entry.error = e
            entry.data = None
            return entry
        finally:
            entry.task = None

        entry.data = data
        entry.error = None
        entry.status = QueryStatus.success
        entry.last_fetched = self.clock()
        return entry

    def set(self, key: QueryKey, data: Any) -> CacheEntry:
        entry = CacheEntry(data=data, status=QueryStatus.success, last_fetched=self.clock())
        self._entries[tuple(key)] = entry
        self._evict()
        return entry

    def _evict(self) -> None:
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return
        stale = [k for k, e in self._entries.items() if e.task is None and self.is_stale(e)]
        for k in stale:
            del self._entries[k]
        # dicts keep insertion order, the first keys are the oldest loads
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def invalidate(self, *prefix: Hashable) -> int:
        """Drop entries whose key starts with `prefix`; returns how many were dropped."""
        n = len(prefix)
        stale = [k for k in self._entries if k[:n] == prefix]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("invalidated %s cache entries for %r", len(stale), prefix)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
