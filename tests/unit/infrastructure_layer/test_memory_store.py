"""
Unit Tests for MemoryStore

Tests expiry, LRU eviction, counters and tag references of the in-process
store.
"""

import asyncio

import pytest

from cache_magic.core.exceptions import CacheKeyError
from cache_magic.infrastructure.cache.tagged import TaggedCache
from tests.test_fixtures import FakeClock, StoreTestFactory


@pytest.mark.unit
class TestMemoryStoreBasics:
    """Test get/put/forget/has."""

    async def test_put_then_get(self, memory_store):
        await memory_store.put("k", {"a": [1, 2]}, 60)

        assert await memory_store.get("k") == ({"a": [1, 2]}, True)

    async def test_missing_key(self, memory_store):
        assert await memory_store.get("nope") == (None, False)

    async def test_stored_none_is_a_hit(self, memory_store):
        await memory_store.put("k", None, 60)

        assert await memory_store.get("k") == (None, True)

    async def test_returned_value_is_a_copy(self, memory_store):
        await memory_store.put("k", {"items": [1]}, 60)
        value, _ = await memory_store.get("k")
        value["items"].append(2)

        assert await memory_store.get("k") == ({"items": [1]}, True)

    async def test_empty_key_rejected(self, memory_store):
        with pytest.raises(CacheKeyError):
            await memory_store.put("", 1, 60)

    async def test_forget(self, memory_store):
        await memory_store.put("k", 1, 60)

        assert await memory_store.forget("k") is True
        assert await memory_store.forget("k") is False
        assert await memory_store.has("k") is False


@pytest.mark.unit
class TestMemoryStoreExpiry:
    """Test TTL handling with an injected clock."""

    async def test_entry_expires(self, memory_store, clock):
        await memory_store.put("k", 1, 10)

        clock.advance(9)
        assert await memory_store.has("k") is True

        clock.advance(1)
        assert await memory_store.get("k") == (None, False)

    @pytest.mark.parametrize("ttl", [None, 0])
    async def test_no_expiry(self, memory_store, clock, ttl):
        await memory_store.put("k", 1, ttl)
        clock.advance(10**9)

        assert await memory_store.has("k") is True


@pytest.mark.unit
class TestMemoryStoreEviction:
    """Test LRU eviction."""

    async def test_least_recently_used_is_evicted(self):
        store = StoreTestFactory.memory_store(max_entries=2)
        await store.put("a", 1, None)
        await store.put("b", 2, None)
        await store.get("a")
        await store.put("c", 3, None)

        assert await store.has("a") is True
        assert await store.has("b") is False
        assert (await store.size_info())["evictions"] == 1


@pytest.mark.unit
class TestMemoryStoreCounters:
    """Test increment()."""

    async def test_increment_creates_and_adds(self, memory_store):
        assert await memory_store.increment("c") == 1
        assert await memory_store.increment("c", 5) == 6
        assert await memory_store.get("c") == (6, True)

    async def test_ttl_applies_on_creation_only(self, memory_store, clock):
        await memory_store.increment("c", 1, ttl=10)
        clock.advance(8)
        await memory_store.increment("c", 1, ttl=10)
        clock.advance(3)

        assert await memory_store.get("c") == (None, False)

    async def test_concurrent_increments_are_not_lost(self):
        store = StoreTestFactory.memory_store(clock=FakeClock())

        await asyncio.gather(*(store.increment("c") for _ in range(50)))

        assert await store.get("c") == (50, True)


@pytest.mark.unit
class TestMemoryStoreTags:
    """Test tag reference bookkeeping."""

    def test_supports_tags(self, memory_store):
        assert memory_store.supports_tags() is True
        assert isinstance(memory_store.tagged(["a"]), TaggedCache)

    async def test_tagged_put_links_both_ways(self, memory_store):
        await memory_store.put("k1", 1, 60, tags=["a", "b"])
        await memory_store.put("k2", 2, None, tags=["a"])

        assert await memory_store.key_tags("k1") == {"a", "b"}
        assert sorted(await memory_store.pop_tag_references("a")) == ["k1", "k2"]
        assert await memory_store.pop_tag_references("a") == []

    async def test_rewrite_replaces_tag_set(self, memory_store):
        await memory_store.put("k", 1, 60, tags=["a"])
        await memory_store.put("k", 2, 60, tags=["b"])

        assert await memory_store.key_tags("k") == {"b"}
        assert await memory_store.pop_tag_references("a") == []
        assert await memory_store.pop_tag_references("b") == ["k"]

    async def test_untagged_rewrite_drops_tags(self, memory_store):
        await memory_store.put("k", 1, 60, tags=["a"])
        await memory_store.put("k", 2, 60)

        assert await memory_store.key_tags("k") == set()
        assert (await memory_store.size_info())["tags"] == 0

    async def test_forget_unlinks_tags(self, memory_store):
        await memory_store.put("k", 1, None, tags=["a", "b"])

        await memory_store.forget("k")

        assert (await memory_store.size_info())["tags"] == 0

    async def test_expiry_unlinks_tags(self, memory_store, clock):
        await memory_store.put("k", 1, 5, tags=["a"])
        clock.advance(10)

        assert await memory_store.has("k") is False
        assert await memory_store.pop_tag_references("a") == []

    async def test_eviction_unlinks_tags(self, clock):
        store = StoreTestFactory.memory_store(max_entries=2, clock=clock)
        for i in range(5):
            await store.put(f"k{i}", i, None, tags=["app", f"t{i}"])

        info = await store.size_info()
        assert info["entries"] == 2
        assert info["tags"] == 3
        assert sorted(await store.pop_tag_references("app")) == ["k3", "k4"]

    async def test_counters_keep_tags(self, memory_store):
        await memory_store.put("c", 1, None, tags=["a"])
        await memory_store.increment("c")

        assert await memory_store.key_tags("c") == {"a"}

    async def test_flush_clears_entries_and_tags(self, memory_store):
        await memory_store.tagged(["a"]).put("k", 1, 60)

        assert await memory_store.flush() is True
        assert memory_store.keys() == []
        assert await memory_store.pop_tag_references("a") == []
