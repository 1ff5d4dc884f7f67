#!/usr/bin/env python3
"""
Cache Health Monitor

Synthetic probes against the backing store plus a hit-rate check fed by
the statistics collector. Every check yields its own status; the overall
status is the worst of them (critical > warning > healthy).

Checks:
- driver: put/get/forget round trip of a throwaway key
- performance: N put/get/forget cycles of a 1 KiB payload, average per cycle
- hit_rate: global hit rate against the configured minimum
- memory: fragmentation ratio, only for stores exposing memory_info()
- connection: ping latency

Author: Senior Solution Architect
Date: 2025-12-05
"""

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cache_magic.caching.stats import StatsCollector
from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import (
    CONNECTION_HEALTHY_MS,
    CONNECTION_WARNING_MS,
    FRAGMENTATION_HIGH,
    FRAGMENTATION_LOW,
    HEALTH_PROBE_KEY,
    HIT_RATE_EXCELLENT,
    HIT_RATE_GOOD,
    PERFORMANCE_EXCELLENT_MS,
    PERFORMANCE_GOOD_MS,
    PERFORMANCE_PAYLOAD_SIZE,
    PERFORMANCE_WARNING_MS,
    HealthStatus,
    Stage,
)
from cache_magic.core.interfaces.cache import BackingStore
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

SUMMARIES = {
    HealthStatus.HEALTHY: "Cache system is healthy. Using {driver} driver.",
    HealthStatus.WARNING: "Cache system has warnings. Review recommendations.",
    HealthStatus.CRITICAL: "Cache system has critical issues. Immediate action required.",
}


@dataclass(frozen=True)
class CheckResult:
    status: HealthStatus
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "message": self.message, **self.data}


@dataclass(frozen=True)
class Recommendation:
    type: str
    priority: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "priority": self.priority, "message": self.message}


@dataclass(frozen=True)
class HealthReport:
    status: HealthStatus
    checks: dict[str, CheckResult]
    metrics: dict[str, Any]
    recommendations: list[Recommendation]
    summary: str
    last_check: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
            "metrics": self.metrics,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "summary": self.summary,
            "last_check": self.last_check,
        }


def worst_status(statuses) -> HealthStatus:
    return max(statuses, key=lambda status: status.severity, default=HealthStatus.HEALTHY)


class HealthMonitor:
    """
    Health checker for the cache layer.

    STAGE-H: Health check orchestration

    Usage:
        monitor = HealthMonitor(store, stats, settings)
        report = await monitor.check()
        print(report.status, report.recommendations)
    """

    def __init__(
        self,
        store: BackingStore,
        stats: StatsCollector,
        settings: Settings,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """
        Args:
            store: Store to probe
            stats: Source of the global hit rate
            settings: Thresholds and iteration count
            clock: Seconds source for latency measurement (injectable for tests)
        """
        self._store = store
        self._stats = stats
        self._threshold = settings.HEALTH_HIT_RATE_THRESHOLD * 100
        self._iterations = settings.HEALTH_PERFORMANCE_ITERATIONS
        self._clock = clock

    async def check(self) -> HealthReport:
        """
        Run every check and aggregate a report.

        STAGE-H.1: Full health report
        """
        checks: dict[str, CheckResult] = {
            "driver": await self.check_driver(),
            "performance": await self.check_performance(),
            "hit_rate": await self.check_hit_rate(),
        }
        if hasattr(self._store, "memory_info"):
            checks["memory"] = await self.check_memory()
        checks["connection"] = await self.check_connection()

        status = worst_status(check.status for check in checks.values())
        metrics = await self._metrics(checks)
        recommendations = self._recommendations(checks)

        log_stage(
            logger,
            Stage.HEALTH,
            "Health check completed",
            status=status.value,
            checks={name: check.status.value for name, check in checks.items()},
        )

        return HealthReport(
            status=status,
            checks=checks,
            metrics=metrics,
            recommendations=recommendations,
            summary=SUMMARIES[status].format(driver=self._store.name),
            last_check=datetime.now(timezone.utc).isoformat(),
        )

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    async def check_driver(self) -> CheckResult:
        key = f"{HEALTH_PROBE_KEY}:{uuid.uuid4().hex}"
        try:
            await self._store.put(key, "test", 10)
            value, found = await self._store.get(key)
            await self._store.forget(key)
        except Exception as e:
            return CheckResult(
                HealthStatus.CRITICAL,
                f"Cache driver error: {e}",
                {"driver": self._store.name, "supports_tags": False},
            )

        if not found or value != "test":
            return CheckResult(
                HealthStatus.CRITICAL,
                "Cache driver did not return the value it stored",
                {"driver": self._store.name, "supports_tags": self._store.supports_tags()},
            )

        return CheckResult(
            HealthStatus.HEALTHY,
            f"Cache driver '{self._store.name}' is working correctly",
            {"driver": self._store.name, "supports_tags": self._store.supports_tags()},
        )

    async def check_performance(self) -> CheckResult:
        payload = "x" * PERFORMANCE_PAYLOAD_SIZE
        prefix = f"{HEALTH_PROBE_KEY}:perf:{uuid.uuid4().hex}"
        started = self._clock()
        try:
            for i in range(self._iterations):
                key = f"{prefix}:{i}"
                await self._store.put(key, payload, 10)
                await self._store.get(key)
                await self._store.forget(key)
        except Exception as e:
            return CheckResult(HealthStatus.CRITICAL, f"Performance probe failed: {e}")

        elapsed = (self._clock() - started) * 1000
        avg = elapsed / self._iterations

        if avg < PERFORMANCE_EXCELLENT_MS:
            status, message = HealthStatus.HEALTHY, "Excellent performance"
        elif avg < PERFORMANCE_GOOD_MS:
            status, message = HealthStatus.HEALTHY, "Good performance"
        elif avg < PERFORMANCE_WARNING_MS:
            status, message = HealthStatus.WARNING, "Performance could be improved"
        else:
            status, message = HealthStatus.CRITICAL, "Poor performance detected"

        return CheckResult(
            status,
            message,
            {
                "avg_operation_time_ms": round(avg, 3),
                "total_time_ms": round(elapsed, 2),
                "operations": self._iterations * 3,
            },
        )

    async def check_hit_rate(self) -> CheckResult:
        snapshot = await self._stats.get_global_stats()
        hit_rate = snapshot.hit_rate * 100

        if hit_rate >= HIT_RATE_EXCELLENT:
            status, message = HealthStatus.HEALTHY, "Excellent hit rate"
        elif hit_rate >= HIT_RATE_GOOD:
            status, message = HealthStatus.HEALTHY, "Good hit rate"
        elif hit_rate >= self._threshold:
            status, message = HealthStatus.WARNING, "Hit rate below optimal level"
        else:
            status, message = HealthStatus.CRITICAL, "Hit rate critically low"

        return CheckResult(
            status,
            message,
            {
                "hit_rate": round(hit_rate, 2),
                "hits": snapshot.hits,
                "misses": snapshot.misses,
                "threshold": self._threshold,
            },
        )

    async def check_memory(self) -> CheckResult:
        try:
            info = await self._store.memory_info()
        except Exception as e:
            return CheckResult(HealthStatus.WARNING, f"Unable to check memory: {e}")

        fragmentation = float(info.get("fragmentation_ratio") or 1.0)
        if fragmentation > FRAGMENTATION_HIGH:
            status, message = HealthStatus.WARNING, "High memory fragmentation detected"
        elif fragmentation < FRAGMENTATION_LOW:
            status, message = HealthStatus.WARNING, "Memory swapping may be occurring"
        else:
            status, message = HealthStatus.HEALTHY, "Memory usage is healthy"

        return CheckResult(
            status,
            message,
            {
                "used_memory": info.get("used_memory"),
                "peak_memory": info.get("peak_memory"),
                "fragmentation_ratio": fragmentation,
            },
        )

    async def check_connection(self) -> CheckResult:
        started = self._clock()
        try:
            reachable = await self._store.ping()
        except Exception as e:
            return CheckResult(HealthStatus.CRITICAL, f"Connection failed: {e}")
        elapsed = (self._clock() - started) * 1000

        if not reachable:
            return CheckResult(HealthStatus.CRITICAL, "Connection failed: store is unreachable")

        if elapsed < CONNECTION_HEALTHY_MS:
            status, message = HealthStatus.HEALTHY, "Connection is fast"
        elif elapsed < CONNECTION_WARNING_MS:
            status, message = HealthStatus.WARNING, "Connection is slow"
        else:
            status, message = HealthStatus.CRITICAL, "Connection is very slow"

        return CheckResult(status, message, {"response_time_ms": round(elapsed, 3)})

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------

    async def _metrics(self, checks: dict[str, CheckResult]) -> dict[str, Any]:
        snapshot = await self._stats.get_global_stats()
        metrics: dict[str, Any] = {
            "total_operations": snapshot.total_requests,
            "hit_rate": round(snapshot.hit_rate * 100, 2),
            "avg_response_time_ms": checks["performance"].data.get("avg_operation_time_ms"),
            "cache_size": None,
            "evictions": None,
        }
        if hasattr(self._store, "size_info"):
            try:
                size = await self._store.size_info()
            except Exception as e:
                logger.warning("Cache size unavailable", stage=Stage.HEALTH.value, error=str(e))
            else:
                metrics["cache_size"] = size.get("entries")
                metrics["evictions"] = size.get("evictions")
        if "memory" in checks:
            metrics["memory_usage"] = checks["memory"].data.get("used_memory")
        return metrics

    def _recommendations(self, checks: dict[str, CheckResult]) -> list[Recommendation]:
        recommendations: list[Recommendation] = []

        if checks["hit_rate"].data.get("hit_rate", 0) < HIT_RATE_GOOD:
            recommendations.append(
                Recommendation("performance", "high", "Consider increasing cache TTL for frequently accessed data")
            )
            recommendations.append(
                Recommendation("performance", "medium", "Implement cache warming for critical queries")
            )

        if not self._store.supports_tags():
            recommendations.append(
                Recommendation("configuration", "medium", "Consider a tag-capable store such as Redis for grouped invalidation")
            )

        if checks.get("memory") and checks["memory"].data.get("fragmentation_ratio", 1.0) > FRAGMENTATION_HIGH:
            recommendations.append(
                Recommendation("maintenance", "low", "Consider restarting Redis to reduce memory fragmentation")
            )

        if checks["performance"].status == HealthStatus.WARNING:
            recommendations.append(
                Recommendation("infrastructure", "medium", "Consider upgrading cache server resources")
            )

        return recommendations
