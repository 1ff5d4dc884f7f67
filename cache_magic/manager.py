#!/usr/bin/env python3
"""
Cache Manager

Wires the cache-aside components around one backing store and exposes the
operational surface used by applications and the command line:

    manager = CacheManager(Settings(DRIVER="redis"))
    await manager.connect()

    value = await manager.execute(Fingerprint("select ..."), load, CacheOptions(ttl=60))
    await manager.clear_tags(["posts"])
    report = await manager.health()

Architecture:
    CacheManager
        ├── BackingStore (memory | file | redis)
        ├── KeyGenerator, TTLPolicy, StatsCollector, InvalidationEngine
        ├── CacheAsideExecutor (+ EventDispatcher, JobTransport)
        ├── EntityCache (lifecycle invalidation)
        └── HealthMonitor

Author: System Architect
Date: 2025-12-14
"""

import asyncio
import dataclasses
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from cache_magic.caching.decorators import cached
from cache_magic.caching.entities import EntityCache
from cache_magic.caching.events import EventDispatcher
from cache_magic.caching.executor import CacheAsideExecutor, CacheOptions, Producer, Target
from cache_magic.caching.keys import IsolationContext, KeyGenerator, current_identity, resolve_identity
from cache_magic.caching.query import CachedQuery, QueryLike
from cache_magic.caching.stats import KeyStats, StatsCollector, StatsSnapshot
from cache_magic.caching.tags import InvalidationEngine, model_type_tag
from cache_magic.caching.ttl import AccessCounter, TTLPolicy
from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import GUEST_TAG_PREFIX, USER_TAG_PREFIX, EntityEvent, Stage
from cache_magic.core.interfaces.cache import BackingStore
from cache_magic.core.interfaces.entity import CacheableEntity
from cache_magic.core.interfaces.jobs import JobTransport
from cache_magic.core.logging.logger import get_logger, log_stage
from cache_magic.infrastructure.cache.factory import create_store
from cache_magic.infrastructure.jobs.in_process import InProcessJobTransport
from cache_magic.infrastructure.monitoring.metrics_collector import MetricsCollector
from cache_magic.monitoring.health import HealthMonitor, HealthReport

logger = get_logger(__name__)


@dataclass(frozen=True)
class WarmRequest:
    """One entry to precompute."""

    target: Target
    producer: Producer
    options: CacheOptions = CacheOptions()


class CacheManager:
    """
    Operational facade over the cache-aside layer.

    STAGE-0: Component wiring
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: BackingStore | None = None,
        events: EventDispatcher | None = None,
        jobs: JobTransport | None = None,
    ):
        """
        Args:
            settings: Immutable configuration; Settings() when omitted
            store: Backing store; built from settings.DRIVER when omitted
            events: Event dispatcher shared with listeners
            jobs: Transport for deferred refresh
        """
        self._settings = settings or Settings()
        self._store = store or create_store(self._settings)
        self._events = events or EventDispatcher()
        self._jobs = jobs or InProcessJobTransport()

        self._keys = KeyGenerator(self._settings)
        self._access = AccessCounter(self._store, self._settings.STATISTICS_TTL)
        self._ttl = TTLPolicy(self._settings, self._access)
        self._stats = StatsCollector(self._store, self._settings, self._access)
        self._invalidation = InvalidationEngine(self._store)
        self._executor = CacheAsideExecutor(
            self._settings,
            self._keys,
            self._ttl,
            self._invalidation,
            self._stats,
            events=self._events,
            jobs=self._jobs,
        )
        self._entities = EntityCache(self._settings, self._executor, self._invalidation)
        self._health = HealthMonitor(self._store, self._stats, self._settings)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> "CacheManager":
        await self._store.connect()
        log_stage(
            logger,
            Stage.STORE,
            "Cache manager ready",
            driver=self._store.name,
            supports_tags=self._store.supports_tags(),
            enabled=self._settings.ENABLED,
        )
        return self

    async def close(self) -> None:
        drain = getattr(self._jobs, "drain", None)
        if drain is not None:
            await drain()
        await self._store.close()

    async def __aenter__(self) -> "CacheManager":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def with_settings(self, **overrides) -> "CacheManager":
        """A manager with changed settings sharing this store, events and jobs."""
        return CacheManager(
            self._settings.model_copy(update=overrides),
            store=self._store,
            events=self._events,
            jobs=self._jobs,
        )

    def enable(self) -> "CacheManager":
        return self.with_settings(ENABLED=True)

    def disable(self) -> "CacheManager":
        return self.with_settings(ENABLED=False)

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> BackingStore:
        return self._store

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def jobs(self) -> JobTransport:
        return self._jobs

    @property
    def executor(self) -> CacheAsideExecutor:
        return self._executor

    @property
    def invalidation(self) -> InvalidationEngine:
        return self._invalidation

    @property
    def statistics(self) -> StatsCollector:
        return self._stats

    @property
    def entities(self) -> EntityCache:
        return self._entities

    @property
    def is_enabled(self) -> bool:
        return self._settings.ENABLED

    def supports_tags(self) -> bool:
        return self._invalidation.supports_tags()

    def attach_metrics(self) -> MetricsCollector:
        """Export hit/miss/write events of this manager as Prometheus metrics."""
        collector = MetricsCollector(driver=self._store.name)
        collector.attach(self._events)
        return collector

    # -------------------------------------------------------------------------
    # Cache-aside
    # -------------------------------------------------------------------------

    async def execute(
        self,
        target: Target,
        producer: Producer,
        options: CacheOptions | None = None,
        isolation: IsolationContext | None = None,
    ) -> Any:
        return await self._executor.execute(target, producer, options, isolation)

    async def execute_deferred(
        self,
        target: Target,
        producer: Producer,
        options: CacheOptions | None = None,
        isolation: IsolationContext | None = None,
    ) -> str | None:
        return await self._executor.execute_deferred(target, producer, options, isolation)

    def query(self, query: QueryLike, ttl: int | None = None, tags: Sequence[str] = ()) -> CachedQuery:
        return CachedQuery(query, self._executor, CacheOptions(ttl=ttl, tags=tuple(tags)))

    def cached(self, ttl: int | None = None, tags: Iterable[str] = (), key_fn=None, **options):
        """Decorator caching a function through this manager."""
        return cached(self._executor, ttl=ttl, tags=tags, key_fn=key_fn, **options)

    async def remember(self, key: str, ttl: int | None, producer: Producer, tags: Iterable[str] = ()) -> Any:
        """Cache-aside on an explicit key."""
        return await self._executor.execute(key, producer, CacheOptions(ttl=ttl, tags=tuple(tags)))

    async def forget(self, key: str, tags: Iterable[str] = ()) -> bool:
        """Forget an entry stored by remember()."""
        return await self._executor.forget(key, CacheOptions(tags=tuple(tags)))

    async def on_entity_changed(self, entity: CacheableEntity, event: EntityEvent | str) -> bool:
        return await self._entities.on_entity_changed(entity, event)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def clear_tags(self, tags: Iterable[str]) -> bool:
        """
        Flush entries carrying any of the tags.

        Returns False without invalidating anything on a tag-incapable store.
        """
        return await self._invalidation.flush(tags)

    async def clear_key(self, key: str, tags: Iterable[str] | None = None) -> bool:
        """Forget one entry by its full stored key."""
        return await self._invalidation.forget_key(key, tags)

    async def clear_model(self, type_name: str) -> bool:
        return await self._invalidation.flush([model_type_tag(type_name)])

    async def clear_user(self, user_id: str | int | None = None) -> bool:
        """Flush entries tagged with a user identity (the bound caller by default)."""
        if user_id is None:
            user_id = current_identity().user_id
            if user_id is None:
                return False
        return await self._invalidation.flush([f"{USER_TAG_PREFIX}{user_id}"])

    async def clear_guest(self, guest_id: str | None = None) -> bool:
        """Flush entries tagged with a guest identity (the bound guest by default)."""
        if guest_id is None:
            caller = current_identity()
            if caller.authenticated:
                return False
            tag = resolve_identity(caller, self._settings.GUEST_FALLBACK)
        else:
            tag = f"{GUEST_TAG_PREFIX}{guest_id}"
        return await self._invalidation.flush([tag])

    async def clear_all(self) -> bool:
        """Remove every entry of the store, statistics included."""
        result = await self._store.flush()
        log_stage(logger, Stage.TAGS, "Cache cleared", driver=self._store.name)
        return result

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def global_stats(self) -> StatsSnapshot:
        return await self._stats.get_global_stats()

    async def key_stats(self, key: str) -> KeyStats:
        return await self._stats.get_key_stats(key)

    async def model_stats(self, type_name: str) -> dict[str, Any]:
        return await self._stats.get_model_stats(type_name)

    async def reset_stats(self) -> None:
        await self._stats.reset()

    async def export_stats(self) -> dict[str, Any]:
        return await self._stats.export()

    async def stats_report(self) -> str:
        return await self._stats.generate_report()

    # -------------------------------------------------------------------------
    # Warming
    # -------------------------------------------------------------------------

    async def warm(self, requests: Iterable[WarmRequest]) -> dict[str, Any]:
        """
        Precompute entries with forced refreshes, WARM_CONCURRENCY at a time.

        Returns:
            Summary with total, warmed, failed and error messages
        """
        requests = list(requests)
        semaphore = asyncio.Semaphore(max(1, self._settings.WARM_CONCURRENCY))

        async def _warm_one(request: WarmRequest) -> Any:
            async with semaphore:
                options = dataclasses.replace(request.options, force_refresh=True)
                return await self._executor.execute(request.target, request.producer, options)

        results = await asyncio.gather(*(_warm_one(r) for r in requests), return_exceptions=True)

        summary: dict[str, Any] = {"total": len(requests), "warmed": 0, "failed": 0, "errors": []}
        for outcome in results:
            if isinstance(outcome, Exception):
                logger.error("Cache warm task failed", stage=Stage.WARM.value, error=str(outcome))
                summary["failed"] += 1
                summary["errors"].append(str(outcome))
            else:
                summary["warmed"] += 1

        log_stage(logger, Stage.WARM, "Cache warming finished", **{k: v for k, v in summary.items() if k != "errors"})
        return summary

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def driver_info(self) -> dict[str, Any]:
        info: dict[str, Any] = {
            "driver": self._store.name,
            "supports_tags": self._store.supports_tags(),
            "reachable": await self._store.ping(),
        }
        if hasattr(self._store, "size_info"):
            info["size"] = await self._store.size_info()
        if hasattr(self._store, "memory_info"):
            info["memory"] = await self._store.memory_info()
        return info

    async def status(self) -> dict[str, Any]:
        return {
            "enabled": self._settings.ENABLED,
            "driver": self._store.name,
            "supports_tags": self._store.supports_tags(),
            "version": self._settings.VERSION,
            "default_ttl": self._settings.DEFAULT_TTL,
            "global_tags": list(self._settings.GLOBAL_TAGS),
            "adaptive_ttl": self._settings.ADAPTIVE_TTL_ENABLED,
            "auto_invalidation": self._settings.AUTO_INVALIDATION_ENABLED,
            "statistics": (await self._stats.get_global_stats()).to_dict(),
        }

    async def health(self) -> HealthReport:
        return await self._health.check()
