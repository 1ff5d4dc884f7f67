from .decorators import cached, invalidates
from .entities import EntityCache
from .events import CacheEvent, CacheHit, CacheMiss, CacheWrite, EventDispatcher
from .executor import CacheAsideExecutor, CacheOptions, CachePlan
from .keys import (
    CallerIdentity,
    Fingerprint,
    IsolationContext,
    KeyGenerator,
    bind_identity,
    identity_scope,
    reset_identity,
)
from .query import CachedQuery, QueryLike
from .stats import KeyStats, StatsCollector, StatsSnapshot
from .tags import InvalidationEngine, model_instance_tag, model_type_tag
from .ttl import AccessCounter, TTLPolicy

__all__ = [
    "AccessCounter",
    "CacheAsideExecutor",
    "CacheEvent",
    "CacheHit",
    "CacheMiss",
    "CacheOptions",
    "CachePlan",
    "CacheWrite",
    "CachedQuery",
    "CallerIdentity",
    "EntityCache",
    "EventDispatcher",
    "Fingerprint",
    "InvalidationEngine",
    "IsolationContext",
    "KeyGenerator",
    "KeyStats",
    "QueryLike",
    "StatsCollector",
    "StatsSnapshot",
    "TTLPolicy",
    "bind_identity",
    "cached",
    "identity_scope",
    "invalidates",
    "model_instance_tag",
    "model_type_tag",
    "reset_identity",
]
