"""
cache-magic: a cache-aside decoration layer.

    from cache_magic import CacheManager, CacheOptions, Fingerprint

    async with CacheManager() as cache:
        posts = await cache.execute(
            Fingerprint("select * from posts where author_id = ?", (7,)),
            load_posts,
            CacheOptions(ttl=600, tags=("posts",)),
        )
"""

from cache_magic.caching import (
    CachedQuery,
    CacheHit,
    CacheMiss,
    CacheOptions,
    CacheWrite,
    EventDispatcher,
    Fingerprint,
    IsolationContext,
    QueryLike,
    bind_identity,
    cached,
    identity_scope,
    invalidates,
    model_instance_tag,
    model_type_tag,
    reset_identity,
)
from cache_magic.config.settings import Settings, get_settings
from cache_magic.core.config.constants import EntityEvent, GuestStrategy, HealthStatus
from cache_magic.core.exceptions import (
    BackendUnavailableError,
    CacheKeyError,
    CacheMagicError,
    ConfigurationError,
    UnsupportedOperationError,
)
from cache_magic.core.interfaces import BackingStore, CacheableEntity
from cache_magic.manager import CacheManager, WarmRequest

__version__ = "1.0.0"

__all__ = [
    "BackendUnavailableError",
    "BackingStore",
    "CacheHit",
    "CacheKeyError",
    "CacheMagicError",
    "CacheManager",
    "CacheMiss",
    "CacheOptions",
    "CacheWrite",
    "CacheableEntity",
    "CachedQuery",
    "ConfigurationError",
    "EntityEvent",
    "EventDispatcher",
    "Fingerprint",
    "GuestStrategy",
    "HealthStatus",
    "IsolationContext",
    "QueryLike",
    "Settings",
    "UnsupportedOperationError",
    "WarmRequest",
    "bind_identity",
    "cached",
    "get_settings",
    "identity_scope",
    "invalidates",
    "model_instance_tag",
    "model_type_tag",
    "reset_identity",
    "__version__",
]
