"""
Unit Tests for EventDispatcher

Tests listener registration, subclass matching and failure isolation.
"""

import pytest

from cache_magic.caching.events import CacheEvent, CacheHit, CacheMiss, CacheWrite, EventDispatcher


@pytest.mark.unit
class TestEventDispatcher:
    """Test observer registration and dispatch."""

    async def test_listener_receives_matching_events(self):
        events = EventDispatcher()
        hits = []
        events.listen(CacheHit, hits.append)

        await events.dispatch(CacheHit(key="a"))
        await events.dispatch(CacheMiss(key="b"))

        assert hits == [CacheHit(key="a")]

    async def test_base_type_receives_everything(self):
        events = EventDispatcher()
        seen = []
        events.listen(CacheEvent, seen.append)

        await events.dispatch(CacheMiss(key="a"))
        await events.dispatch(CacheWrite(key="a", ttl=60))

        assert [type(e) for e in seen] == [CacheMiss, CacheWrite]

    async def test_async_listener_is_awaited(self):
        events = EventDispatcher()
        seen = []

        async def listener(event):
            seen.append(event.key)

        events.listen(CacheHit, listener)
        await events.dispatch(CacheHit(key="k"))

        assert seen == ["k"]

    async def test_failing_listener_does_not_stop_others(self):
        events = EventDispatcher()
        seen = []

        def broken(event):
            raise ValueError("bug")

        events.listen(CacheHit, broken)
        events.listen(CacheHit, seen.append)

        await events.dispatch(CacheHit(key="k"))

        assert len(seen) == 1

    async def test_forget(self):
        events = EventDispatcher()
        seen = []
        listener = events.listen(CacheHit, seen.append)
        events.forget(listener)

        await events.dispatch(CacheHit(key="k"))

        assert seen == []
        assert events.has_listeners() is False
