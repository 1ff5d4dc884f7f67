"""
Unit Tests for CacheManager

Tests the operational surface: cache-aside delegation, clearing,
statistics, warming and introspection.
"""

import pytest

from cache_magic.caching.executor import CacheOptions
from cache_magic.caching.keys import Fingerprint, identity_scope
from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import HealthStatus
from cache_magic.manager import CacheManager, WarmRequest
from tests.test_fixtures import SamplePost


FP = Fingerprint("select * from plans")


@pytest.mark.unit
class TestCacheAside:
    """Test delegation to the executor."""

    async def test_execute_caches(self, manager, counting_producer):
        await manager.execute(FP, counting_producer)
        await manager.execute(FP, counting_producer)

        assert counting_producer.calls == 1

    async def test_default_settings_hit_for_anonymous_caller(self, counting_producer):
        async with CacheManager(Settings(_env_file=None)) as cache:
            await cache.execute(FP, counting_producer)
            await cache.execute(FP, counting_producer)

            assert counting_producer.calls == 1
            assert await cache.clear_guest() is True
            await cache.execute(FP, counting_producer)

        assert counting_producer.calls == 2

    async def test_remember_and_forget(self, manager, counting_producer):
        await manager.remember("homepage", 60, counting_producer)
        await manager.remember("homepage", 60, counting_producer)
        assert counting_producer.calls == 1

        assert await manager.forget("homepage") is True
        await manager.remember("homepage", 60, counting_producer)
        assert counting_producer.calls == 2

    async def test_query(self, manager, post_query):
        posts = manager.query(post_query, ttl=60, tags=["posts"])

        assert await posts.count() == 3
        assert posts.options.tags == ("posts",)

    async def test_cached_decorator(self, manager):
        calls = []

        @manager.cached(ttl=60)
        def load(x):
            calls.append(x)
            return x

        await load(1)
        await load(1)

        assert calls == [1]

    async def test_disable_returns_bypassing_manager(self, manager, counting_producer):
        disabled = manager.disable()

        await disabled.execute(FP, counting_producer)
        await disabled.execute(FP, counting_producer)

        assert counting_producer.calls == 2
        assert disabled.is_enabled is False
        assert manager.is_enabled is True
        assert disabled.store is manager.store
        assert disabled.enable().is_enabled is True

    async def test_with_settings_keeps_shared_components(self, manager):
        other = manager.with_settings(VERSION="2")

        assert other.settings.VERSION == "2"
        assert other.events is manager.events
        assert other.jobs is manager.jobs

    async def test_on_entity_changed(self, manager, counting_producer):
        post = SamplePost(id=4, author_id=1)
        await manager.entities.remember(post, "body", counting_producer)

        assert await manager.on_entity_changed(post, "updated") is True
        await manager.entities.remember(post, "body", counting_producer)
        assert counting_producer.calls == 2


@pytest.mark.unit
class TestClearing:
    """Test invalidation operations."""

    async def test_clear_tags(self, manager, counting_producer):
        await manager.execute(FP, counting_producer, CacheOptions(tags=("plans",)))

        assert await manager.clear_tags(["plans"]) is True
        await manager.execute(FP, counting_producer, CacheOptions(tags=("plans",)))
        assert counting_producer.calls == 2

    async def test_clear_key_uses_stored_key(self, manager, counting_producer):
        await manager.remember("homepage", 60, counting_producer)

        assert await manager.clear_key("v1:homepage") is True

    async def test_clear_model(self, manager, counting_producer):
        await manager.entities.find("Plan", 1, counting_producer)

        assert await manager.clear_model("Plan") is True
        await manager.entities.find("Plan", 1, counting_producer)
        assert counting_producer.calls == 2

    async def test_clear_user(self, settings, memory_store, counting_producer):
        manager = CacheManager(settings.model_copy(update={"AUTO_USER_TAGS": True}), store=memory_store)

        with identity_scope(user_id=12):
            await manager.execute(FP, counting_producer)
            assert await manager.clear_user() is True
            await manager.execute(FP, counting_producer)

        assert counting_producer.calls == 2

    async def test_clear_user_without_bound_user(self, manager):
        assert await manager.clear_user() is False

    async def test_clear_guest_explicit_id(self, manager):
        assert await manager.clear_guest("abc") is True

    async def test_clear_all(self, manager, memory_store, counting_producer):
        await manager.execute(FP, counting_producer)

        assert await manager.clear_all() is True
        assert memory_store.keys() == []


@pytest.mark.unit
class TestStatisticsAndWarming:
    """Test statistics pass-through and warm()."""

    async def test_stats(self, manager, counting_producer):
        await manager.execute(FP, counting_producer)
        await manager.execute(FP, counting_producer)

        snapshot = await manager.global_stats()
        assert (snapshot.hits, snapshot.misses) == (1, 1)

        await manager.reset_stats()
        assert (await manager.global_stats()).total_requests == 0

    async def test_export_and_report(self, manager):
        assert (await manager.export_stats())["cache_driver"] == "memory"
        assert "Statistics Report" in await manager.stats_report()

    async def test_warm(self, manager):
        async def fail():
            raise RuntimeError("warm failed")

        summary = await manager.warm(
            [
                WarmRequest("a", lambda: 1),
                WarmRequest("b", lambda: 2, CacheOptions(ttl=60)),
                WarmRequest("c", fail),
            ]
        )

        assert summary == {"total": 3, "warmed": 2, "failed": 1, "errors": ["warm failed"]}
        assert await manager.execute("a", lambda: "not used") == 1

    async def test_warm_overwrites_existing_entries(self, manager):
        await manager.remember("a", 60, lambda: "stale")

        await manager.warm([WarmRequest("a", lambda: "fresh")])

        assert await manager.execute("a", lambda: "unused") == "fresh"


@pytest.mark.unit
class TestIntrospection:
    """Test status, driver info and health."""

    async def test_status(self, manager):
        status = await manager.status()

        assert status["enabled"] is True
        assert status["driver"] == "memory"
        assert status["supports_tags"] is True
        assert status["version"] == "1"

    async def test_driver_info(self, manager):
        info = await manager.driver_info()

        assert info["reachable"] is True
        assert "entries" in info["size"]

    async def test_health(self, manager):
        report = await manager.health()

        assert report.status in set(HealthStatus)
        assert "driver" in report.checks

    async def test_attach_metrics(self, manager):
        collector = manager.attach_metrics()

        assert manager.events.has_listeners()
        collector.detach(manager.events)
