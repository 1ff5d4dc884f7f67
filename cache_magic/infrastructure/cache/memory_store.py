"""
In-Memory Backing Store

Process-local, tag-capable store with LRU eviction and per-entry expiry.

Implementation Details:
- OrderedDict for O(1) access and LRU ordering
- asyncio.Lock around every mutation, so increment() is atomic for all
  coroutines of the process
- Values are kept as orjson bytes (see serializer)
- Expired entries are dropped lazily on access
- Tag membership is indexed both ways (tag -> keys, key -> tags). A write
  replaces the key's tag set; forget, eviction and expiry unlink the key
  from every tag it carried.

This is a per-process store, not shared across workers. For a shared
tag-capable store use RedisStore.

Author: System Architect
Date: 2025-12-10
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from typing import Any

from cache_magic.core.config.constants import Stage
from cache_magic.core.exceptions import CacheKeyError
from cache_magic.core.logging.logger import get_logger, log_stage
from cache_magic.infrastructure.cache import serializer
from cache_magic.infrastructure.cache.tagged import TaggedCache

logger = get_logger(__name__)


class MemoryStore:
    """
    In-memory LRU store.

    STAGE-B: Backing store (memory driver)

    Why LRU?
    - Bounded memory without a background sweeper
    - Recently read entries are the ones most likely to be read again
    """

    name = "memory"

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the store.

        Args:
            max_entries: Capacity before the least recently used entry is evicted
            clock: Seconds source used for expiry (injectable for tests)
        """
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[bytes, float | None]] = OrderedDict()
        self._tag_refs: dict[str, set[str]] = {}
        self._key_tags: dict[str, tuple[str, ...]] = {}
        self._lock = asyncio.Lock()
        self._evictions = 0

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def _expires_at(self, ttl: int | None) -> float | None:
        if not ttl:
            return None
        return self._clock() + ttl

    # Helpers below expect the caller to hold the lock

    def _link(self, key: str, tags: tuple[str, ...]) -> None:
        if not tags:
            return
        self._key_tags[key] = tags
        for tag in tags:
            self._tag_refs.setdefault(tag, set()).add(key)

    def _unlink(self, key: str) -> None:
        for tag in self._key_tags.pop(key, ()):
            refs = self._tag_refs.get(tag)
            if refs is None:
                continue
            refs.discard(key)
            if not refs:
                del self._tag_refs[tag]

    def _remove(self, key: str) -> bool:
        self._unlink(key)
        return self._entries.pop(key, None) is not None

    def _live(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            self._remove(key)
            return None
        self._entries.move_to_end(key)
        return payload

    def _store(self, key: str, payload: bytes, expires_at: float | None, tags: tuple[str, ...] = ()) -> None:
        self._unlink(key)
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (payload, expires_at)
        self._link(key, tags)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._unlink(evicted)
            self._evictions += 1

    async def get(self, key: str) -> tuple[Any, bool]:
        async with self._lock:
            payload = self._live(key)
        if payload is None:
            return None, False
        return serializer.loads(payload, key=key), True

    async def put(self, key: str, value: Any, ttl: int | None, tags: Iterable[str] = ()) -> bool:
        """Write a value; the entry carries exactly the given tags afterwards."""
        if not key:
            raise CacheKeyError("Cache key must not be empty")
        payload = serializer.dumps(value, key=key)
        async with self._lock:
            self._store(key, payload, self._expires_at(ttl), tuple(dict.fromkeys(tags)))
        return True

    async def forget(self, key: str) -> bool:
        async with self._lock:
            return self._remove(key)

    async def has(self, key: str) -> bool:
        async with self._lock:
            return self._live(key) is not None

    async def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        async with self._lock:
            payload = self._live(key)
            if payload is None:
                value = amount
                expires_at = self._expires_at(ttl)
            else:
                value = int(serializer.loads(payload, key=key)) + amount
                expires_at = self._entries[key][1]
            self._store(key, serializer.dumps(value, key=key), expires_at, self._key_tags.get(key, ()))
            return value

    async def flush(self) -> bool:
        async with self._lock:
            self._entries.clear()
            self._tag_refs.clear()
            self._key_tags.clear()
        log_stage(logger, Stage.STORE, "Memory store flushed")
        return True

    def supports_tags(self) -> bool:
        return True

    def tagged(self, tags: Iterable[str]) -> TaggedCache:
        return TaggedCache(self, tags)

    async def key_tags(self, key: str) -> set[str]:
        async with self._lock:
            return set(self._key_tags.get(key, ()))

    async def pop_tag_references(self, tag: str) -> list[str]:
        async with self._lock:
            return list(self._tag_refs.pop(tag, ()))

    async def ping(self) -> bool:
        return True

    async def size_info(self) -> dict[str, Any]:
        """Entry count, capacity and evictions so far."""
        return {
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "evictions": self._evictions,
            "tags": len(self._tag_refs),
            "bytes": sum(len(payload) for payload, _ in self._entries.values()),
        }

    def keys(self) -> list[str]:
        """Keys in LRU order (oldest first), expired entries included."""
        return list(self._entries.keys())
