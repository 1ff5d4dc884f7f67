"""
TTL Resolution

Static TTL: the configured value, sanitized (negative values are clamped to
the configured minimum, 0/None means no expiry).

Adaptive TTL: scaled by how often the key was accessed recently.

    count > hot   -> min(ttl * 2, max_ttl)
    count > warm  -> ttl
    otherwise     -> max(ttl // 2, min_ttl)

Access counts live in the backing store with their own retention, separate
from the entry TTL, and are recorded on every hit and write whether or not
adaptive mode is active.

Author: System Architect
Date: 2025-12-10
"""

import hashlib

from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import STATS_ACCESS_PREFIX, Stage
from cache_magic.core.exceptions import CacheMagicError
from cache_magic.core.interfaces.cache import BackingStore
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class AccessCounter:
    """
    Per-key access counts kept in the backing store.

    Counter keys are 'cache_magic:stats:access:<md5(key)>'. A counter
    expires retention seconds after its first increment.
    """

    def __init__(self, store: BackingStore, retention: int):
        self._store = store
        self._retention = retention

    @staticmethod
    def counter_key(key: str) -> str:
        return STATS_ACCESS_PREFIX + hashlib.md5(key.encode("utf-8")).hexdigest()

    async def touch(self, key: str) -> int:
        return await self._store.increment(self.counter_key(key), 1, ttl=self._retention or None)

    async def count(self, key: str) -> int:
        value, found = await self._store.get(self.counter_key(key))
        return int(value) if found else 0


class TTLPolicy:
    """
    Effective TTL for a key.

    STAGE-2.0: TTL resolution
    """

    def __init__(self, settings: Settings, counter: AccessCounter):
        adaptive = settings.adaptive
        self._min_ttl = max(adaptive.MIN_TTL, 0)
        self._max_ttl = max(adaptive.MAX_TTL, self._min_ttl)
        self._hot = adaptive.HOT_THRESHOLD
        self._warm = adaptive.WARM_THRESHOLD
        self._counter = counter

    @property
    def min_ttl(self) -> int:
        return self._min_ttl

    @property
    def max_ttl(self) -> int:
        return self._max_ttl

    def sanitize(self, ttl: int | None) -> int | None:
        """
        Clamp a configured TTL.

        Returns:
            None for "no expiry", otherwise a positive number of seconds
        """
        if ttl is None or ttl == 0:
            return None
        if ttl < 0:
            log_stage(
                logger,
                Stage.TTL_RESOLUTION,
                "Negative TTL clamped to minimum",
                level="warning",
                configured_ttl=ttl,
                min_ttl=self._min_ttl,
            )
            return self._min_ttl or None
        return int(ttl)

    def scale(self, ttl: int, access_count: int) -> int:
        """Apply the adaptive bands to a positive TTL."""
        if access_count > self._hot:
            return min(ttl * 2, self._max_ttl)
        if access_count > self._warm:
            return ttl
        return max(ttl // 2, self._min_ttl)

    async def resolve(self, key: str, configured_ttl: int | None, adaptive: bool) -> int | None:
        """
        Resolve the TTL to write with.

        Args:
            key: Cache key the TTL is for
            configured_ttl: TTL from options or settings
            adaptive: Whether access frequency should scale the TTL

        Returns:
            Seconds, or None for no expiry
        """
        ttl = self.sanitize(configured_ttl)
        if ttl is None or not adaptive:
            return ttl

        try:
            count = await self._counter.count(key)
        except CacheMagicError as e:
            log_stage(
                logger,
                Stage.TTL_RESOLUTION,
                "Access count unavailable, using configured TTL",
                level="warning",
                key=key,
                error=str(e),
            )
            return ttl

        effective = self.scale(ttl, count)
        log_stage(
            logger,
            Stage.TTL_RESOLUTION,
            "Adaptive TTL resolved",
            level="debug",
            key=key,
            access_count=count,
            configured_ttl=ttl,
            effective_ttl=effective,
        )
        return effective
