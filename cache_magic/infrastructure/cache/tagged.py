"""
Tag-scoped view shared by the tag-capable stores.

Entries are stored under their plain key. Each tag keeps a reference list
of the keys written under it, and each key records the tags it was last
written with. Because a key is referenced from every tag it was written
with, flush({a, b}) removes entries tagged a OR b.

A rewrite replaces the entry wholesale, tags included. A reference left
behind by an older write is skipped at flush time: a key is only removed
when its current tag set still contains the flushed tag.

Stores that use this view implement three primitives on top of the
BackingStore protocol:

    async put(key, value, ttl, tags=()) -> bool   (replaces the key's tag set)
    async key_tags(key) -> set[str]
    async pop_tag_references(tag) -> list[str]
"""

from collections.abc import Iterable
from typing import Any

from cache_magic.core.config.constants import Stage
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class TaggedCache:
    """
    TagScopedView over a tag-capable store.

    STAGE-T: Tag-scoped reads, writes and grouped flush
    """

    def __init__(self, store, tags: Iterable[str]):
        self._store = store
        self._tags = tuple(dict.fromkeys(tags))

    @property
    def tags(self) -> tuple[str, ...]:
        return self._tags

    async def get(self, key: str) -> tuple[Any, bool]:
        return await self._store.get(key)

    async def put(self, key: str, value: Any, ttl: int | None) -> bool:
        return await self._store.put(key, value, ttl, tags=self._tags)

    async def forget(self, key: str) -> bool:
        return await self._store.forget(key)

    async def flush(self) -> bool:
        """Forget every entry currently carrying any tag of this view."""
        removed = 0
        skipped = 0
        for tag in self._tags:
            for key in await self._store.pop_tag_references(tag):
                if tag not in await self._store.key_tags(key):
                    skipped += 1
                    continue
                if await self._store.forget(key):
                    removed += 1

        log_stage(
            logger,
            Stage.TAGS,
            "Tags flushed",
            tags=list(self._tags),
            removed=removed,
            stale_references=skipped,
            driver=self._store.name,
        )
        return True
