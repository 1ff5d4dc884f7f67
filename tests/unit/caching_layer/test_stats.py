"""
Unit Tests for StatsCollector

Tests counters, rates, detailed mode, reset and failure tolerance.
"""

from unittest.mock import AsyncMock, call

import pytest

from cache_magic.caching.stats import KeyStats, StatsCollector, StatsSnapshot
from cache_magic.caching.ttl import AccessCounter
from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import STATS_GLOBAL_HITS
from tests.test_fixtures import StoreTestFactory


@pytest.fixture
def stats(memory_store, settings):
    return StatsCollector(memory_store, settings)


@pytest.mark.unit
class TestStatsSnapshot:
    """Test derived rates."""

    def test_hit_rate(self):
        snapshot = StatsSnapshot(hits=3, misses=1, writes=1)

        assert snapshot.total_requests == 4
        assert snapshot.hit_rate == 0.75
        assert snapshot.miss_rate == 0.25

    def test_empty_rates_are_zero(self):
        snapshot = StatsSnapshot()

        assert snapshot.hit_rate == 0.0
        assert snapshot.miss_rate == 0.0

    def test_to_dict_uses_percentages(self):
        assert StatsSnapshot(hits=1, misses=2).to_dict()["hit_rate"] == 33.33

    def test_disabled_key_stats(self):
        assert KeyStats(key="k", enabled=False).to_dict()["error"] == "Detailed statistics not enabled"


@pytest.mark.unit
class TestRecording:
    """Test counters."""

    async def test_global_counters(self, stats):
        await stats.record_hit("k")
        await stats.record_hit("k")
        await stats.record_miss("k")
        await stats.record_write("k")

        assert await stats.get_global_stats() == StatsSnapshot(hits=2, misses=1, writes=1)
        assert stats.local == StatsSnapshot(hits=2, misses=1, writes=1)

    async def test_key_stats_in_detailed_mode(self, stats):
        await stats.record_miss("k")
        await stats.record_write("k")
        await stats.record_hit("k")

        key_stats = await stats.get_key_stats("k")

        assert key_stats.enabled is True
        assert (key_stats.hits, key_stats.misses, key_stats.writes) == (1, 1, 1)
        assert key_stats.access_count == 2
        assert key_stats.hit_rate == 0.5

    async def test_key_stats_disabled(self, memory_store):
        stats = StatsCollector(memory_store, Settings(_env_file=None, STATISTICS_DETAILED=False))
        await stats.record_hit("k")

        assert (await stats.get_key_stats("k")).enabled is False

    async def test_model_stats(self, stats):
        await stats.record_hit("k", model="Post")
        await stats.record_miss("k", model="post")

        model = await stats.get_model_stats("Post")

        assert model["tag"] == "model:post"
        assert model["hits"] == 1
        assert model["misses"] == 1

    async def test_disabled_statistics_record_nothing(self, memory_store):
        stats = StatsCollector(memory_store, Settings(_env_file=None, STATISTICS_ENABLED=False))
        await stats.record_hit("k")

        assert await memory_store.get(STATS_GLOBAL_HITS) == (None, False)

    async def test_hits_touch_access_counter(self, stats):
        await stats.record_hit("k")
        await stats.record_miss("k")

        assert await stats.access_counter.count("k") == 1


@pytest.mark.unit
class TestResetAndFailures:
    """Test reset and best-effort behaviour."""

    async def test_reset_clears_only_globals(self, stats):
        await stats.record_hit("k")
        await stats.reset()

        assert await stats.get_global_stats() == StatsSnapshot()
        assert (await stats.get_key_stats("k")).hits == 1

    async def test_recording_failure_is_swallowed(self, settings):
        stats = StatsCollector(StoreTestFactory.failing_store(), settings)

        await stats.record_hit("k")
        await stats.record_write("k")

    async def test_access_counter_touched_when_counters_fail(self, settings):
        access = AsyncMock(spec=AccessCounter)
        stats = StatsCollector(StoreTestFactory.failing_store(), settings, access_counter=access)

        await stats.record_hit("k")
        await stats.record_write("k")
        await stats.record_miss("k")

        assert access.touch.await_args_list == [call("k"), call("k")]

    async def test_touch_failure_keeps_counters(self, memory_store, settings):
        access = AccessCounter(StoreTestFactory.failing_store(), 60)
        stats = StatsCollector(memory_store, settings, access_counter=access)

        await stats.record_hit("k")

        assert await stats.get_global_stats() == StatsSnapshot(hits=1)

    async def test_global_read_falls_back_to_local(self, settings):
        stats = StatsCollector(StoreTestFactory.failing_store(), settings)
        await stats.record_miss("k")

        assert await stats.get_global_stats() == StatsSnapshot(misses=1)


@pytest.mark.unit
class TestReporting:
    """Test export and report output."""

    async def test_export(self, stats):
        await stats.record_hit("k")

        exported = await stats.export()

        assert exported["global"]["hits"] == 1
        assert exported["cache_driver"] == "memory"
        assert exported["supports_tags"] is True

    async def test_report(self, stats):
        await stats.record_hit("k")

        report = await stats.generate_report()

        assert "Cache Magic Statistics Report" in report
        assert "Cache Hits: 1" in report
        assert "Hit Rate: 100.0%" in report
