"""
Exception Module

Structured exception hierarchy for the cache-aside layer.

Module Structure:
-----------------
- **base.py**: CacheMagicError base class + ConfigurationError
- **cache.py**: Backing store exceptions

Producer exceptions are never wrapped: they propagate to the caller
exactly as raised.

Usage:
------
```python
from cache_magic.core.exceptions import BackendUnavailableError, CacheKeyError
```

Author: System Architect
Date: 2025-12-08
"""

from cache_magic.core.exceptions.base import CacheMagicError, ConfigurationError
from cache_magic.core.exceptions.cache import (
    BackendUnavailableError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    UnsupportedOperationError,
)

__all__ = [
    "BackendUnavailableError",
    "CacheConnectionError",
    "CacheError",
    "CacheKeyError",
    "CacheMagicError",
    "ConfigurationError",
    "UnsupportedOperationError",
]
