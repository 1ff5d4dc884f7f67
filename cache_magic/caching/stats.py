"""
Cache Statistics

Hit/miss/write counters kept in the backing store so every process sees
the same totals, mirrored in process for quick inspection.

Recording is best-effort: any failure while recording is logged and
swallowed, the cache-aside call that triggered it completes normally.

Counter layout (all under 'cache_magic:stats:'):
- global:hits, global:misses, global:writes
- key:<md5(key)>:<stat>      detailed mode only, retained STATISTICS_TTL
- model:<type>:<stat>        when the call names a model
- access:<md5(key)>          access history for adaptive TTL

reset() clears the three global counters and the in-process mirror only.
Per-key, per-model and access counters expire on their own.

Author: System Architect
Date: 2025-12-11
"""

import hashlib
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import (
    STATS_GLOBAL_HITS,
    STATS_GLOBAL_MISSES,
    STATS_GLOBAL_WRITES,
    STATS_KEY_PREFIX,
    STATS_MODEL_PREFIX,
    Stage,
)
from cache_magic.core.interfaces.cache import BackingStore
from cache_magic.core.logging.logger import get_logger, log_stage
from cache_magic.caching.ttl import AccessCounter

logger = get_logger(__name__)

HIT, MISS, WRITE = "hits", "misses", "writes"
_GLOBAL_KEYS = {HIT: STATS_GLOBAL_HITS, MISS: STATS_GLOBAL_MISSES, WRITE: STATS_GLOBAL_WRITES}


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total > 0 else 0.0


@dataclass(frozen=True)
class StatsSnapshot:
    """Global counters at one point in time."""

    hits: int = 0
    misses: int = 0
    writes: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of reads served from cache, 0.0 when nothing was read."""
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    @property
    def miss_rate(self) -> float:
        return 1.0 - self.hit_rate if self.total_requests > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            **asdict(self),
            "total_requests": self.total_requests,
            "hit_rate": _rate(self.hits, self.total_requests),
            "miss_rate": _rate(self.misses, self.total_requests),
        }


@dataclass(frozen=True)
class KeyStats:
    """Per-key counters, or a marker that detailed statistics are off."""

    key: str
    enabled: bool
    hits: int = 0
    misses: int = 0
    writes: int = 0
    access_count: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        if not self.enabled:
            return {"key": self.key, "enabled": False, "error": "Detailed statistics not enabled"}
        total = self.hits + self.misses
        return {
            "key": self.key,
            "enabled": True,
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "access_count": self.access_count,
            "total_requests": total,
            "hit_rate": _rate(self.hits, total),
        }


class StatsCollector:
    """
    Records and reads cache statistics.

    STAGE-S: Statistics
    """

    def __init__(self, store: BackingStore, settings: Settings, access_counter: AccessCounter | None = None):
        statistics = settings.statistics
        self._store = store
        self._settings = settings
        self._enabled = statistics.ENABLED
        self._detailed = statistics.DETAILED
        self._retention = statistics.TTL or None
        self._access = access_counter or AccessCounter(store, statistics.TTL)
        self._local = {HIT: 0, MISS: 0, WRITE: 0}

    @property
    def access_counter(self) -> AccessCounter:
        return self._access

    @property
    def local(self) -> StatsSnapshot:
        """Counters recorded by this process since start or reset."""
        return StatsSnapshot(**self._local)

    @staticmethod
    def _key_stat(key: str, stat: str) -> str:
        return f"{STATS_KEY_PREFIX}{hashlib.md5(key.encode('utf-8')).hexdigest()}:{stat}"

    @staticmethod
    def _model_stat(model: str, stat: str) -> str:
        return f"{STATS_MODEL_PREFIX}{model.lower()}:{stat}"

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    async def record_hit(self, key: str, model: str | None = None) -> None:
        await self._record(HIT, key, model, touch=True)

    async def record_miss(self, key: str, model: str | None = None) -> None:
        await self._record(MISS, key, model, touch=False)

    async def record_write(self, key: str, model: str | None = None) -> None:
        await self._record(WRITE, key, model, touch=True)

    async def _record(self, stat: str, key: str, model: str | None, touch: bool) -> None:
        try:
            if self._enabled:
                self._local[stat] += 1
                await self._store.increment(_GLOBAL_KEYS[stat])
                if model:
                    await self._store.increment(self._model_stat(model, stat), 1, ttl=self._retention)
            if self._detailed:
                await self._store.increment(self._key_stat(key, stat), 1, ttl=self._retention)
        except Exception as e:
            self._log_failure("Failed to record statistic", stat, key, e)

        if not touch:
            return
        # Access counts drive adaptive TTL; recorded even when statistics fail
        try:
            await self._access.touch(key)
        except Exception as e:
            self._log_failure("Failed to touch access counter", stat, key, e)

    @staticmethod
    def _log_failure(message: str, stat: str, key: str, error: Exception) -> None:
        log_stage(
            logger,
            Stage.STATISTICS,
            message,
            level="warning",
            stat=stat,
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def _read(self, counter_key: str) -> int:
        value, found = await self._store.get(counter_key)
        return int(value) if found else 0

    async def get_global_stats(self) -> StatsSnapshot:
        """
        Shared global counters.

        Falls back to the in-process mirror when the store cannot be read.
        """
        try:
            return StatsSnapshot(
                hits=await self._read(STATS_GLOBAL_HITS),
                misses=await self._read(STATS_GLOBAL_MISSES),
                writes=await self._read(STATS_GLOBAL_WRITES),
            )
        except Exception as e:
            log_stage(
                logger, Stage.STATISTICS, "Global statistics unavailable", level="warning", error=str(e)
            )
            return self.local

    async def get_key_stats(self, key: str) -> KeyStats:
        """
        Counters of a single key.

        Returns KeyStats(enabled=False) unless detailed statistics are on.
        """
        if not self._detailed:
            return KeyStats(key=key, enabled=False)
        return KeyStats(
            key=key,
            enabled=True,
            hits=await self._read(self._key_stat(key, HIT)),
            misses=await self._read(self._key_stat(key, MISS)),
            writes=await self._read(self._key_stat(key, WRITE)),
            access_count=await self._access.count(key),
        )

    async def get_model_stats(self, model: str) -> dict[str, Any]:
        """Counters of calls made on behalf of a model type."""
        snapshot = StatsSnapshot(
            hits=await self._read(self._model_stat(model, HIT)),
            misses=await self._read(self._model_stat(model, MISS)),
            writes=await self._read(self._model_stat(model, WRITE)),
        )
        return {
            "model": model,
            "tag": f"model:{model.lower()}",
            **snapshot.to_dict(),
        }

    async def reset(self) -> None:
        """Clear the global counters (partial reset, see module docstring)."""
        self._local = {HIT: 0, MISS: 0, WRITE: 0}
        for counter_key in _GLOBAL_KEYS.values():
            await self._store.forget(counter_key)
        log_stage(logger, Stage.STATISTICS, "Global statistics reset")

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    async def export(self) -> dict[str, Any]:
        snapshot = await self.get_global_stats()
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "global": snapshot.to_dict(),
            "in_process": self.local.to_dict(),
            "cache_driver": self._store.name,
            "supports_tags": self._store.supports_tags(),
            "config": {
                "enabled": self._settings.ENABLED,
                "default_ttl": self._settings.DEFAULT_TTL,
                "adaptive_ttl": self._settings.ADAPTIVE_TTL_ENABLED,
                "auto_invalidation": self._settings.AUTO_INVALIDATION_ENABLED,
                "detailed_statistics": self._detailed,
            },
        }

    async def generate_report(self) -> str:
        """Plain-text summary for the command line."""
        stats = (await self.get_global_stats()).to_dict()
        lines = [
            "Cache Magic Statistics Report",
            "==============================",
            "",
            f"Generated: {datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC",
            f"Cache Driver: {self._store.name}",
            f"Tags Support: {'Yes' if self._store.supports_tags() else 'No'}",
            "",
            "Performance Metrics:",
            "-------------------",
            f"Total Requests: {stats['total_requests']}",
            f"Cache Hits: {stats['hits']}",
            f"Cache Misses: {stats['misses']}",
            f"Cache Writes: {stats['writes']}",
            f"Hit Rate: {stats['hit_rate']}%",
            f"Miss Rate: {stats['miss_rate']}%",
        ]
        return "\n".join(lines) + "\n"
