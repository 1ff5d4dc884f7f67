"""
Cache-Related Exceptions

All exceptions raised while talking to a backing store.

Author: System Architect
Date: 2025-12-08
"""

from cache_magic.core.exceptions.base import CacheMagicError


class CacheError(CacheMagicError):
    """Base exception for cache-related errors."""
    pass


class BackendUnavailableError(CacheError):
    """
    Raised when an I/O operation against the backing store fails.

    Propagated to the caller unchanged: the executor never falls back to
    uncached execution, callers decide whether to retry.

    Common causes:
    - Redis server is down or timing out
    - Cache directory is not writable
    """
    pass


class CacheConnectionError(BackendUnavailableError):
    """
    Raised when unable to establish a connection to the store (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a key or value cannot be handled by the store.

    Common causes:
    - Empty key
    - Value that cannot be serialized
    - Stored payload that cannot be decoded
    """
    pass


class UnsupportedOperationError(CacheError):
    """
    Raised by tag-incapable stores when a tag-scoped view is requested.

    The invalidation engine checks capability first and turns this case
    into a no-op returning False; it never reaches callers of flush().
    """
    pass
