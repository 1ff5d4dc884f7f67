"""
Tag Index / Invalidation Engine

Associates entries with tags at write time and invalidates them in groups.

Semantics:
- flush({a, b}) invalidates every entry tagged a OR b, and nothing else.
- On a tag-capable store, reads and writes go through store.tagged(tags).
- On a tag-incapable store, tags are ignored on reads and writes, and
  flush() is a no-op returning False. Callers that depend on grouped
  invalidation must check supports_tags() first. forget_key() works on
  every store.

Author: System Architect
Date: 2025-12-11
"""

from collections.abc import Iterable
from typing import Any

from cache_magic.core.config.constants import MODEL_TAG_PREFIX, Stage
from cache_magic.core.interfaces.cache import BackingStore
from cache_magic.core.interfaces.entity import CacheableEntity
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


def normalize_tags(tags: Iterable[str] | None) -> tuple[str, ...]:
    """Deduplicate tags, keep first-seen order and drop empty ones."""
    if not tags:
        return ()
    return tuple(dict.fromkeys(tag for tag in tags if tag))


def model_type_tag(type_name: str) -> str:
    """'model:<lowercase type name>', dropping any module path."""
    return MODEL_TAG_PREFIX + type_name.rsplit(".", 1)[-1].lower()


def model_instance_tag(type_name: str, entity_id: Any) -> str:
    return f"{model_type_tag(type_name)}:{entity_id}"


def entity_tags(entity: CacheableEntity) -> tuple[str, ...]:
    """Every tag an entity change must flush."""
    return normalize_tags(
        [
            *entity.cache_tags(),
            *entity.dynamic_tags(),
            entity.type_tag(),
            entity.instance_tag(),
        ]
    )


class InvalidationEngine:
    """
    Tag-aware reads, writes and grouped invalidation.

    STAGE-T: Tag index
    """

    def __init__(self, store: BackingStore):
        self._store = store

    @property
    def store(self) -> BackingStore:
        return self._store

    def supports_tags(self) -> bool:
        return self._store.supports_tags()

    def _scoped(self, tags: tuple[str, ...]) -> bool:
        return bool(tags) and self._store.supports_tags()

    async def read(self, key: str, tags: Iterable[str] | None = None) -> tuple[Any, bool]:
        tags = normalize_tags(tags)
        if self._scoped(tags):
            return await self._store.tagged(tags).get(key)
        return await self._store.get(key)

    async def write(self, key: str, value: Any, ttl: int | None, tags: Iterable[str] | None = None) -> bool:
        """Store an entry; its tag set is fixed from here on."""
        tags = normalize_tags(tags)
        if self._scoped(tags):
            return await self._store.tagged(tags).put(key, value, ttl)
        return await self._store.put(key, value, ttl)

    async def forget_key(self, key: str, tags: Iterable[str] | None = None) -> bool:
        tags = normalize_tags(tags)
        if self._scoped(tags):
            return await self._store.tagged(tags).forget(key)
        return await self._store.forget(key)

    async def flush(self, tags: Iterable[str]) -> bool:
        """
        Invalidate every entry carrying any of the tags.

        Returns:
            True if a grouped flush was issued; False on a tag-incapable
            store or when no tags were given (nothing is invalidated)
        """
        tags = normalize_tags(tags)
        if not tags:
            return False

        if not self._store.supports_tags():
            log_stage(
                logger,
                Stage.TAGS,
                "Tag flush skipped: store does not support tags",
                level="warning",
                tags=list(tags),
                driver=self._store.name,
            )
            return False

        return await self._store.tagged(tags).flush()

    async def flush_entity(self, entity: CacheableEntity) -> bool:
        """Flush the entity's own, dynamic, type and instance tags."""
        return await self.flush(entity_tags(entity))
