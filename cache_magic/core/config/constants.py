"""
System Constants and Enumerations

Constants and enumerations shared by the cache-aside layer: stage
identifiers for structured logging, health statuses, guest identity
strategies, entity lifecycle events and the backend key namespaces used
for statistics.

Author: System Architect
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages of a cache-aside call.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    - SEQUENCE: Numeric order (0.0, 1.0, 2.0) or alphabetic prefix (T, S, H)
    - DESCRIPTIVE_NAME: Clear, uppercase description with underscores

    The numeric stages follow the execute() state machine; the alphabetic
    ones belong to out-of-band subsystems.
    """

    # Cache-aside lifecycle (sequential)
    BYPASS_CHECK = "0.0_BYPASS_CHECK"
    KEY_RESOLUTION = "1.0_KEY_RESOLUTION"
    TTL_RESOLUTION = "2.0_TTL_RESOLUTION"
    FORCED_INVALIDATION = "3.0_FORCED_INVALIDATION"
    CACHE_READ = "4.0_CACHE_READ"
    CACHE_HIT = "5.0_CACHE_HIT"
    PRODUCE = "6.0_PRODUCE"
    CACHE_WRITE = "7.0_CACHE_WRITE"

    # Cross-cutting subsystems
    TAGS = "T_TAG_INVALIDATION"
    STATISTICS = "S_STATISTICS"
    HEALTH = "H_HEALTH_CHECK"
    DEFERRED = "D_DEFERRED_REFRESH"
    WARM = "W_CACHE_WARMING"
    EVENTS = "E_EVENT_DISPATCH"
    STORE = "B_BACKING_STORE"


# ============================================================================
# Health
# ============================================================================


class HealthStatus(str, Enum):
    """
    Health status of a single check or of the overall report.

    Ordered by severity: HEALTHY < WARNING < CRITICAL.
    """

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.CRITICAL: 2,
}


# ============================================================================
# Identity
# ============================================================================


class GuestStrategy(str, Enum):
    """
    How an unauthenticated caller is identified inside a cache key.

    SESSION: bound to the session id
    IP: bound to an md5 of the network address
    UNIQUE: a fresh id per call, which opts the caller out of caching
    """

    SESSION = "session"
    IP = "ip"
    UNIQUE = "unique"


# ============================================================================
# Entity lifecycle
# ============================================================================


class EntityEvent(str, Enum):
    """Domain-object lifecycle events that may trigger invalidation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"
    FORCE_DELETED = "force_deleted"


# ============================================================================
# Backend key namespaces
# ============================================================================

STATS_PREFIX = "cache_magic:stats:"
STATS_GLOBAL_HITS = STATS_PREFIX + "global:hits"
STATS_GLOBAL_MISSES = STATS_PREFIX + "global:misses"
STATS_GLOBAL_WRITES = STATS_PREFIX + "global:writes"
STATS_KEY_PREFIX = STATS_PREFIX + "key:"
STATS_MODEL_PREFIX = STATS_PREFIX + "model:"
STATS_ACCESS_PREFIX = STATS_PREFIX + "access:"

HEALTH_PROBE_KEY = "cache_magic:health_check"

MODEL_TAG_PREFIX = "model:"
USER_TAG_PREFIX = "user:"
GUEST_TAG_PREFIX = "guest:"

# ============================================================================
# Defaults and thresholds
# ============================================================================

DEFAULT_TTL = 3600  # 1 hour
ADAPTIVE_MIN_TTL = 300  # 5 minutes
ADAPTIVE_MAX_TTL = 86400  # 24 hours
ADAPTIVE_HOT_THRESHOLD = 100
ADAPTIVE_WARM_THRESHOLD = 50
ACCESS_COUNTER_TTL = 86400  # access history retention

# Performance probe (average milliseconds per put/get/forget cycle)
PERFORMANCE_EXCELLENT_MS = 1.0
PERFORMANCE_GOOD_MS = 5.0
PERFORMANCE_WARNING_MS = 10.0
PERFORMANCE_PAYLOAD_SIZE = 1024

# Hit-rate bands (percent)
HIT_RATE_EXCELLENT = 90.0
HIT_RATE_GOOD = 70.0

# Connectivity probe (milliseconds)
CONNECTION_HEALTHY_MS = 10.0
CONNECTION_WARNING_MS = 50.0

# Memory fragmentation bounds
FRAGMENTATION_HIGH = 1.5
FRAGMENTATION_LOW = 1.0
