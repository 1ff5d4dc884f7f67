"""
Unit Tests for CacheAsideExecutor

Tests the get-or-compute-and-store lifecycle: hits, misses, forced
refresh, bypass, failure propagation and deferred refresh.
"""

from unittest.mock import AsyncMock

import pytest

from cache_magic.caching.events import CacheHit, CacheMiss, CacheWrite
from cache_magic.caching.executor import CacheOptions, call_producer
from cache_magic.caching.keys import Fingerprint, IsolationContext, identity_scope
from cache_magic.config.settings import Settings
from cache_magic.core.exceptions import BackendUnavailableError
from tests.test_fixtures import StoreTestFactory, build_executor


FP = Fingerprint("select * from posts where author_id = ?", (7,))


class ProducerError(Exception):
    pass


@pytest.mark.unit
class TestExecuteHitMiss:
    """Test basic cache-aside behaviour."""

    async def test_miss_then_hit(self, executor, counting_producer):
        first = await executor.execute(FP, counting_producer)
        second = await executor.execute(FP, counting_producer)

        assert first == second == {"value": 1}
        assert counting_producer.calls == 1

    async def test_sync_producer(self, executor):
        assert await executor.execute("sync", lambda: [1, 2, 3]) == [1, 2, 3]

    async def test_cached_none_is_a_hit(self, executor):
        producer = AsyncMock(return_value=None)

        await executor.execute("none", producer)
        await executor.execute("none", producer)

        assert producer.await_count == 1

    async def test_entry_written_with_ttl(self, executor, memory_store, clock, counting_producer):
        await executor.execute(FP, counting_producer, CacheOptions(ttl=60))
        clock.advance(60)
        await executor.execute(FP, counting_producer, CacheOptions(ttl=60))

        assert counting_producer.calls == 2

    async def test_ttl_zero_never_expires(self, executor, clock, counting_producer):
        await executor.execute(FP, counting_producer, CacheOptions(ttl=0))
        clock.advance(10**8)
        await executor.execute(FP, counting_producer, CacheOptions(ttl=0))

        assert counting_producer.calls == 1

    async def test_stats_recorded(self, executor, counting_producer):
        await executor.execute(FP, counting_producer)
        await executor.execute(FP, counting_producer)

        snapshot = await executor._stats.get_global_stats()
        assert (snapshot.hits, snapshot.misses, snapshot.writes) == (1, 1, 1)

    async def test_events_dispatched(self, executor, events, counting_producer):
        seen = []
        events.listen(CacheHit, seen.append)
        events.listen(CacheMiss, seen.append)
        events.listen(CacheWrite, seen.append)

        await executor.execute(FP, counting_producer, CacheOptions(tags=("posts",)))
        await executor.execute(FP, counting_producer, CacheOptions(tags=("posts",)))

        assert [type(e) for e in seen] == [CacheMiss, CacheWrite, CacheHit]
        assert seen[1].tags == ("posts",)
        assert seen[1].ttl == 3600


@pytest.mark.unit
class TestForcedRefresh:
    """Test force_refresh."""

    async def test_force_refresh_always_produces(self, executor, counting_producer):
        await executor.execute(FP, counting_producer)
        refreshed = await executor.execute(FP, counting_producer, CacheOptions(force_refresh=True))
        after = await executor.execute(FP, counting_producer)

        assert refreshed == {"value": 2}
        assert after == {"value": 2}
        assert counting_producer.calls == 2

    async def test_force_refresh_records_miss_not_hit(self, executor, counting_producer):
        await executor.execute(FP, counting_producer, CacheOptions(force_refresh=True))

        snapshot = await executor._stats.get_global_stats()
        assert snapshot.hits == 0
        assert snapshot.misses == 1


@pytest.mark.unit
class TestBypass:
    """Test bypass and master switch."""

    async def test_bypass_skips_cache(self, executor, memory_store, counting_producer):
        await executor.execute(FP, counting_producer, CacheOptions(bypass=True))
        await executor.execute(FP, counting_producer, CacheOptions(bypass=True))

        assert counting_producer.calls == 2
        assert memory_store.keys() == []

    async def test_disabled_settings_skip_cache(self, settings, memory_store, counting_producer):
        executor = build_executor(settings.model_copy(update={"ENABLED": False}), memory_store)

        await executor.execute(FP, counting_producer)
        await executor.execute(FP, counting_producer)

        assert counting_producer.calls == 2

    async def test_deferred_returns_none_when_bypassed(self, executor, counting_producer):
        assert await executor.execute_deferred(FP, counting_producer, CacheOptions(bypass=True)) is None


@pytest.mark.unit
class TestFailures:
    """Test failure propagation."""

    async def test_producer_error_propagates_and_nothing_is_written(self, executor, memory_store):
        async def failing():
            raise ProducerError("boom")

        with pytest.raises(ProducerError):
            await executor.execute("k", failing)

        assert await memory_store.has("v1:k") is False
        snapshot = await executor._stats.get_global_stats()
        assert snapshot.hits == 0
        assert snapshot.writes == 0

    async def test_store_failure_propagates(self, settings, counting_producer):
        executor = build_executor(settings, StoreTestFactory.failing_store())

        with pytest.raises(BackendUnavailableError):
            await executor.execute(FP, counting_producer)

        assert counting_producer.calls == 0

    async def test_failing_listener_does_not_change_outcome(self, executor, events, counting_producer):
        def broken(event):
            raise RuntimeError("listener bug")

        events.listen(CacheMiss, broken)

        assert await executor.execute(FP, counting_producer) == {"value": 1}


@pytest.mark.unit
class TestKeyResolution:
    """Test key and tag resolution."""

    def test_explicit_key_is_versioned(self, executor):
        key, _ = executor.resolve_key("homepage", CacheOptions())
        assert key == "v1:homepage"

    def test_version_override(self, executor):
        key, _ = executor.resolve_key("homepage", CacheOptions(version="2"))
        assert key == "v2:homepage"

    def test_version_override_applies_to_explicit_isolation(self, executor):
        key, _ = executor.resolve_key(FP, CacheOptions(version="3"), IsolationContext("1", "user:1"))
        assert key.startswith("v3:get:")

    def test_effective_tags_include_global_and_identity(self, memory_store):
        settings = Settings(_env_file=None, GLOBAL_TAGS=["app"], AUTO_USER_TAGS=True)
        executor = build_executor(settings, memory_store)

        with identity_scope(user_id=5):
            key, tags = executor.resolve_key(FP, CacheOptions(tags=("posts",)))

        assert tags == ("posts", "app", "user:5")
        assert key.endswith(":user:5")

    async def test_forget(self, executor, counting_producer):
        await executor.execute(FP, counting_producer, CacheOptions(tags=("posts",)))

        assert await executor.forget(FP, CacheOptions(tags=("posts",))) is True
        await executor.execute(FP, counting_producer)
        assert counting_producer.calls == 2


@pytest.mark.unit
class TestAdaptiveExecution:
    """Test adaptive TTL through the executor."""

    async def test_hot_key_written_with_doubled_ttl(self, memory_store, clock, events):
        settings = Settings(_env_file=None, GLOBAL_TAGS=[], AUTO_USER_TAGS=False, ADAPTIVE_TTL_ENABLED=True, GUEST_FALLBACK="ip")
        executor = build_executor(settings, memory_store, events)
        writes = []
        events.listen(CacheWrite, writes.append)
        key, _ = executor.resolve_key("hot", CacheOptions())
        for _ in range(150):
            await executor._stats.access_counter.touch(key)

        await executor.execute("hot", lambda: 1, CacheOptions(ttl=3600))

        assert writes[0].ttl == 7200


@pytest.mark.unit
class TestDeferred:
    """Test deferred refresh."""

    async def test_deferred_refresh_writes_in_background(self, executor, jobs, counting_producer):
        job_id = await executor.execute_deferred(FP, counting_producer)
        await jobs.drain()

        assert job_id
        assert await executor.execute(FP, counting_producer) == {"value": 1}
        assert counting_producer.calls == 1

    async def test_deferred_failure_is_logged_not_raised(self, executor, jobs):
        async def failing():
            raise ProducerError("boom")

        await executor.execute_deferred("k", failing)
        await jobs.drain()

        assert jobs.stats()["failed"] == 1


@pytest.mark.unit
class TestCallProducer:
    async def test_awaits_coroutines(self):
        async def produce():
            return 1

        assert await call_producer(produce) == 1
