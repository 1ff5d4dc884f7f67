"""
Entity cache binding.

Connects CacheableEntity domain objects to the cache-aside core:
- on_entity_changed() is the lifecycle hook target; it flushes the
  entity's own, dynamic, type and instance tags when the event is enabled
- remember()/forget() cache per-instance values under the instance tag
- find()/all() cache model-level lookups under the type tag

Without tag support on the store, lifecycle invalidation is skipped and
reported (False); entries then age out through their TTL.
"""

from collections.abc import Iterable
from typing import Any

from cache_magic.caching.executor import CacheAsideExecutor, CacheOptions, Producer
from cache_magic.caching.tags import InvalidationEngine, entity_tags, model_type_tag, normalize_tags
from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import EntityEvent, Stage
from cache_magic.core.interfaces.entity import CacheableEntity
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class EntityCache:
    """Lifecycle invalidation and per-entity caching helpers."""

    def __init__(self, settings: Settings, executor: CacheAsideExecutor, engine: InvalidationEngine):
        self._settings = settings
        self._executor = executor
        self._engine = engine

    async def on_entity_changed(self, entity: CacheableEntity, event: EntityEvent | str) -> bool:
        """
        Flush every tag the entity change affects.

        Returns:
            True if a flush was issued; False when the event is disabled or
            the store has no tag support
        """
        event = EntityEvent(event)
        if not self._settings.invalidation.handles(event):
            return False

        tags = entity_tags(entity)
        if not self._engine.supports_tags():
            log_stage(
                logger,
                Stage.TAGS,
                "Entity invalidation skipped: store does not support tags",
                level="warning",
                event=event.value,
                tags=list(tags),
            )
            return False

        flushed = await self._engine.flush(tags)
        if self._settings.DEBUG:
            log_stage(logger, Stage.TAGS, "Entity cache invalidated", event=event.value, tags=list(tags))
        return flushed

    # -------------------------------------------------------------------------
    # Per-instance values
    # -------------------------------------------------------------------------

    @staticmethod
    def _instance_options(entity: CacheableEntity, ttl: int | None) -> CacheOptions:
        return CacheOptions(
            ttl=ttl if ttl is not None else entity.expiry(),
            tags=normalize_tags([*entity.cache_tags(), entity.instance_tag()]),
            model=entity.type_tag().split(":", 1)[-1],
        )

    async def remember(
        self, entity: CacheableEntity, name: str, producer: Producer, ttl: int | None = None
    ) -> Any:
        """Cache a value computed for one entity instance."""
        return await self._executor.execute(
            f"{entity.instance_tag()}:{name}", producer, self._instance_options(entity, ttl)
        )

    async def forget(self, entity: CacheableEntity, name: str) -> bool:
        return await self._executor.forget(
            f"{entity.instance_tag()}:{name}", self._instance_options(entity, None)
        )

    # -------------------------------------------------------------------------
    # Model-level lookups
    # -------------------------------------------------------------------------

    @staticmethod
    def find_key(type_name: str, entity_id: Any) -> str:
        return f"{model_type_tag(type_name)}:find:{entity_id}"

    @staticmethod
    def all_key(type_name: str) -> str:
        return f"{model_type_tag(type_name)}:all"

    async def find(
        self,
        type_name: str,
        entity_id: Any,
        loader: Producer,
        ttl: int | None = None,
        tags: Iterable[str] = (),
    ) -> Any:
        """Cache a lookup by id under find_key(); flushed with the type or instance tag."""
        type_tag = model_type_tag(type_name)
        options = CacheOptions(
            ttl=ttl,
            tags=normalize_tags([*tags, type_tag, f"{type_tag}:{entity_id}"]),
            model=type_tag.split(":", 1)[-1],
        )
        return await self._executor.execute(self.find_key(type_name, entity_id), loader, options)

    async def all(
        self, type_name: str, loader: Producer, ttl: int | None = None, tags: Iterable[str] = ()
    ) -> Any:
        """Cache a full listing under all_key()."""
        type_tag = model_type_tag(type_name)
        options = CacheOptions(
            ttl=ttl, tags=normalize_tags([*tags, type_tag]), model=type_tag.split(":", 1)[-1]
        )
        return await self._executor.execute(self.all_key(type_name), loader, options)
