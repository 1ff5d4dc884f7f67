#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

Exports cache-aside outcomes as Prometheus metrics:
- Hit / miss / write counters per driver
- Producer duration histogram (time spent computing values on a miss)

The collector is an ordinary event listener: attach() registers it on an
EventDispatcher, so metrics never sit on the cache-aside code path itself.

Author: Senior Solution Architect
Date: 2025-12-05
"""

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest

from cache_magic.caching.events import CacheEvent, CacheHit, CacheMiss, CacheWrite, EventDispatcher
from cache_magic.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

CACHE_HITS = Counter(
    'cache_magic_hits_total',
    'Total cache hits',
    ['driver']
)

CACHE_MISSES = Counter(
    'cache_magic_misses_total',
    'Total cache misses',
    ['driver']
)

CACHE_WRITES = Counter(
    'cache_magic_writes_total',
    'Total cache writes',
    ['driver']
)

PRODUCER_DURATION = Histogram(
    'cache_magic_producer_duration_seconds',
    'Time spent producing a value on a miss',
    ['driver'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)


class MetricsCollector:
    """
    Prometheus listener for cache events.

    STAGE-M: Metrics collection

    Usage:
        metrics = MetricsCollector(driver="redis")
        metrics.attach(manager.events)
    """

    def __init__(self, driver: str):
        self._driver = driver

    def attach(self, events: EventDispatcher) -> None:
        events.listen(CacheEvent, self.record)
        logger.info("Metrics collector attached", stage="M.0", driver=self._driver)

    def detach(self, events: EventDispatcher) -> None:
        events.forget(self.record)

    def record(self, event: CacheEvent) -> None:
        if isinstance(event, CacheHit):
            CACHE_HITS.labels(driver=self._driver).inc()
        elif isinstance(event, CacheMiss):
            CACHE_MISSES.labels(driver=self._driver).inc()
        elif isinstance(event, CacheWrite):
            CACHE_WRITES.labels(driver=self._driver).inc()
            PRODUCER_DURATION.labels(driver=self._driver).observe(event.duration)

    @staticmethod
    def get_metrics() -> bytes:
        """Metrics in Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST
