"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cache_magic.caching.entities import EntityCache  # noqa: E402
from cache_magic.caching.events import EventDispatcher  # noqa: E402
from cache_magic.caching.tags import InvalidationEngine  # noqa: E402
from cache_magic.config.settings import Settings  # noqa: E402
from cache_magic.infrastructure.cache.file_store import FileStore  # noqa: E402
from cache_magic.infrastructure.jobs.in_process import InProcessJobTransport  # noqa: E402
from cache_magic.manager import CacheManager  # noqa: E402
from tests.test_fixtures import FakeClock, FakeQuery, StoreTestFactory, build_executor, sample_rows  # noqa: E402


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """
    Settings for testing.

    Identity tags are off and there are no global tags, so effective tag
    sets in assertions are exactly the tags a test passes. Guests are
    identified by address, so an unbound caller maps to one stable key.
    """
    return Settings(
        _env_file=None,
        DRIVER="memory",
        DEFAULT_TTL=3600,
        VERSION="1",
        GLOBAL_TAGS=[],
        AUTO_USER_TAGS=False,
        GUEST_FALLBACK="ip",
        STATISTICS_DETAILED=True,
    )


@pytest.fixture(scope="session")
def use_real_redis():
    """Check if real Redis should be used for integration tests."""
    return os.getenv("USE_REAL_REDIS", "0").lower() in ("1", "true", "yes")


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return StoreTestFactory.memory_store(max_entries=100, clock=clock)


@pytest.fixture
async def file_store(tmp_path, clock):
    store = FileStore(tmp_path / "cache", clock=clock)
    await store.connect()
    return store


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def events():
    return EventDispatcher()


@pytest.fixture
def jobs():
    return InProcessJobTransport()


@pytest.fixture
def executor(settings, memory_store, events, jobs):
    return build_executor(settings, memory_store, events, jobs)


@pytest.fixture
def file_executor(settings, file_store, events, jobs):
    return build_executor(settings, file_store, events, jobs)


@pytest.fixture
def entity_cache(settings, executor, memory_store):
    return EntityCache(settings, executor, InvalidationEngine(memory_store))


@pytest.fixture
async def manager(settings, memory_store, events, jobs):
    async with CacheManager(settings, store=memory_store, events=events, jobs=jobs) as cache:
        yield cache


@pytest.fixture
def post_query():
    return FakeQuery("posts", sample_rows())


@pytest.fixture
def counting_producer():
    """Producer recording each call; returns the call number."""

    class CountingProducer:
        def __init__(self):
            self.calls = 0

        async def __call__(self):
            self.calls += 1
            return {"value": self.calls}

    return CountingProducer()
