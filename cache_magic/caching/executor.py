"""
Cache-Aside Executor

Orchestrates one get-or-compute-and-store call:

    CHECK_BYPASS -> RESOLVE_KEY -> RESOLVE_TTL -> [INVALIDATE if forced]
        -> READ -> HIT | MISS -> PRODUCE -> WRITE

Guarantees:
- A hit never invokes the producer.
- A failing producer propagates its exception unchanged; nothing is
  written and no hit is recorded.
- Backing store failures propagate as BackendUnavailableError; there is
  no silent fallback to uncached execution.
- Statistics and event listener failures never change the outcome.

Not guaranteed: single-flight. Two concurrent misses on one key both run
the producer and both write; the last write wins.

Author: System Architect
Date: 2025-12-12
"""

import dataclasses
import inspect
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from cache_magic.caching.events import CacheHit, CacheMiss, CacheWrite, EventDispatcher
from cache_magic.caching.keys import Fingerprint, IsolationContext, KeyGenerator
from cache_magic.caching.stats import StatsCollector
from cache_magic.caching.tags import InvalidationEngine, normalize_tags
from cache_magic.caching.ttl import TTLPolicy
from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import Stage
from cache_magic.core.interfaces.jobs import JobTransport
from cache_magic.core.logging.logger import get_logger, log_stage
from cache_magic.infrastructure.jobs.in_process import InProcessJobTransport

logger = get_logger(__name__)

Producer = Callable[[], Any | Awaitable[Any]]
Target = Fingerprint | str


@dataclass(frozen=True)
class CacheOptions:
    """
    Per-call options.

    Attributes:
        ttl: Seconds; None uses Settings.DEFAULT_TTL, 0 stores without expiry
        tags: Extra tags for the entry (global and identity tags are added)
        force_refresh: Always run the producer and overwrite the entry
        adaptive: Scale TTL by access frequency; None uses the setting
        bypass: Skip the cache entirely for this call
        version: Key version; None uses Settings.VERSION
        model: Model type name for per-model statistics
    """

    ttl: int | None = None
    tags: tuple[str, ...] = ()
    force_refresh: bool = False
    adaptive: bool | None = None
    bypass: bool = False
    version: str | None = None
    model: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "tags", normalize_tags(self.tags))


@dataclass(frozen=True)
class CachePlan:
    """Resolved key, tags and TTL of one call."""

    key: str
    tags: tuple[str, ...]
    ttl: int | None
    model: str | None = None


async def call_producer(producer: Producer) -> Any:
    """Run a sync or async producer."""
    result = producer()
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class RefreshJob:
    """Background refresh of one planned entry."""

    job_id: str
    queue: str
    executor: "CacheAsideExecutor"
    plan: CachePlan
    producer: Producer

    async def run(self) -> None:
        await self.executor.run_plan(self.plan, self.producer, forced=True)


class CacheAsideExecutor:
    """
    get-or-compute-and-store.

    STAGE-0.0 .. 7.0: Cache-aside lifecycle

    Usage:
        value = await executor.execute(
            Fingerprint("select * from posts where id = ?", (42,)),
            lambda: repo.load_post(42),
            CacheOptions(ttl=60, tags=("posts",)),
        )
    """

    def __init__(
        self,
        settings: Settings,
        keys: KeyGenerator,
        ttl_policy: TTLPolicy,
        tags: InvalidationEngine,
        stats: StatsCollector,
        events: EventDispatcher | None = None,
        jobs: JobTransport | None = None,
    ):
        self._settings = settings
        self._keys = keys
        self._ttl = ttl_policy
        self._tags = tags
        self._stats = stats
        self._events = events or EventDispatcher()
        self._jobs = jobs or InProcessJobTransport()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def jobs(self) -> JobTransport:
        return self._jobs

    def _bypassed(self, options: CacheOptions) -> bool:
        return not self._settings.ENABLED or options.bypass

    def _trace(self, operation: str, stage: Stage, **fields) -> None:
        if self._settings.DEBUG:
            log_stage(
                logger,
                stage,
                f"Cache {operation}",
                operation=operation,
                driver=self._tags.store.name,
                supports_tags=self._tags.supports_tags(),
                **fields,
            )

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve_key(
        self, target: Target, options: CacheOptions, isolation: IsolationContext | None = None
    ) -> tuple[str, tuple[str, ...]]:
        """
        Key and effective tags of a call.

        Effective tags are the option tags, the global tags and, with
        AUTO_USER_TAGS, the caller identity tag.
        """
        if isolation is None:
            isolation = self._keys.isolation(version=options.version)
        elif options.version is not None:
            isolation = dataclasses.replace(isolation, version=str(options.version))

        if isinstance(target, Fingerprint):
            key = self._keys.derive_key(target, target.method, isolation)
        else:
            key = self._keys.explicit_key(target, isolation)

        tags = [*options.tags, *self._settings.GLOBAL_TAGS]
        if self._settings.AUTO_USER_TAGS:
            tags.append(isolation.identity)

        return key, normalize_tags(tags)

    async def plan(
        self, target: Target, options: CacheOptions, isolation: IsolationContext | None = None
    ) -> CachePlan:
        key, tags = self.resolve_key(target, options, isolation)
        adaptive = options.adaptive if options.adaptive is not None else self._settings.ADAPTIVE_TTL_ENABLED
        configured = options.ttl if options.ttl is not None else self._settings.DEFAULT_TTL
        ttl = await self._ttl.resolve(key, configured, adaptive)
        return CachePlan(key=key, tags=tags, ttl=ttl, model=options.model)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(
        self,
        target: Target,
        producer: Producer,
        options: CacheOptions | None = None,
        isolation: IsolationContext | None = None,
    ) -> Any:
        """
        Return the cached value for target, producing and storing it on a miss.

        Args:
            target: Fingerprint to derive a key from, or an explicit key
            producer: Zero-argument callable or coroutine function
            options: Per-call options
            isolation: Explicit version/identity; defaults to the bound caller

        Raises:
            Whatever the producer raises, unchanged
            BackendUnavailableError: If the backing store fails
        """
        options = options or CacheOptions()

        if self._bypassed(options):
            self._trace("bypass", Stage.BYPASS_CHECK, enabled=self._settings.ENABLED)
            return await call_producer(producer)

        plan = await self.plan(target, options, isolation)
        self._trace("attempt", Stage.KEY_RESOLUTION, key=plan.key, tags=list(plan.tags), ttl=plan.ttl)
        return await self.run_plan(plan, producer, forced=options.force_refresh)

    async def run_plan(self, plan: CachePlan, producer: Producer, forced: bool = False) -> Any:
        """Steps after resolution: optional invalidation, read, produce, write."""
        if forced:
            await self._tags.forget_key(plan.key, plan.tags)
            self._trace("refresh", Stage.FORCED_INVALIDATION, key=plan.key, tags=list(plan.tags))
        else:
            value, found = await self._tags.read(plan.key, plan.tags)
            if found:
                await self._stats.record_hit(plan.key, plan.model)
                await self._events.dispatch(CacheHit(key=plan.key, tags=plan.tags))
                self._trace("hit", Stage.CACHE_HIT, key=plan.key)
                return value

        await self._stats.record_miss(plan.key, plan.model)
        await self._events.dispatch(CacheMiss(key=plan.key, tags=plan.tags))
        self._trace("miss", Stage.CACHE_READ, key=plan.key, forced=forced)

        started = time.perf_counter()
        value = await call_producer(producer)
        duration = time.perf_counter() - started

        await self._tags.write(plan.key, value, plan.ttl, plan.tags)
        await self._stats.record_write(plan.key, plan.model)
        await self._events.dispatch(CacheWrite(key=plan.key, tags=plan.tags, ttl=plan.ttl, duration=duration))
        self._trace("write", Stage.CACHE_WRITE, key=plan.key, ttl=plan.ttl, duration_ms=round(duration * 1000, 2))
        return value

    async def execute_deferred(
        self,
        target: Target,
        producer: Producer,
        options: CacheOptions | None = None,
        isolation: IsolationContext | None = None,
    ) -> str | None:
        """
        Schedule a forced refresh and return without waiting for it.

        Key, tags and TTL are resolved before returning, so the refresh uses
        the caller's identity. Producer failures in the background are
        logged by the transport.

        Returns:
            Job id, or None when caching is disabled or bypassed
        """
        options = options or CacheOptions()

        if self._bypassed(options):
            self._trace("deferred-skip", Stage.BYPASS_CHECK, enabled=self._settings.ENABLED)
            return None

        plan = await self.plan(target, options, isolation)
        job = RefreshJob(
            job_id=uuid.uuid4().hex,
            queue=self._settings.ASYNC_QUEUE,
            executor=self,
            plan=plan,
            producer=producer,
        )
        log_stage(logger, Stage.DEFERRED, "Deferred refresh scheduled", key=plan.key, job_id=job.job_id)
        return self._jobs.dispatch(job)

    async def forget(
        self, target: Target, options: CacheOptions | None = None, isolation: IsolationContext | None = None
    ) -> bool:
        """Forget the entry a call with these arguments would read."""
        key, tags = self.resolve_key(target, options or CacheOptions(), isolation)
        return await self._tags.forget_key(key, tags)
