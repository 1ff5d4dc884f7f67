"""
Backing Store Protocol

This module defines the protocols every backing store implements, so the
cache-aside core never depends on a concrete backend.

Architectural Decision: Protocol-based capability interface
- Tag support is a capability queried with supports_tags(), not a subclass
- Stores are swapped by configuration (memory, file, redis)
- Tests can hand in any object with the same shape

Author: System Architect
Date: 2025-12-08
"""

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TagScopedView(Protocol):
    """
    A view of the store restricted to a set of tags.

    Entries written through a view are grouped under every tag of the view,
    replacing whatever tags an earlier write of the same key carried;
    flush() on the view invalidates every entry currently carrying any of
    its tags.
    """

    async def get(self, key: str) -> tuple[Any, bool]:
        ...

    async def put(self, key: str, value: Any, ttl: int | None) -> bool:
        ...

    async def forget(self, key: str) -> bool:
        ...

    async def flush(self) -> bool:
        ...


@runtime_checkable
class BackingStore(Protocol):
    """
    Protocol defining the interface for backing store implementations.

    Implementations:
    - MemoryStore: in-process, tag capable
    - FileStore: one file per entry, tag incapable
    - RedisStore: networked, tag capable

    Every I/O failure surfaces as BackendUnavailableError. A ttl of None or
    0 means the entry never expires.
    """

    name: str

    async def connect(self) -> None:
        """
        Prepare the store for use.

        Raises:
            CacheConnectionError: If the backend cannot be reached
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        ...

    async def get(self, key: str) -> tuple[Any, bool]:
        """
        Read a value.

        Returns:
            (value, found): found is False on a miss or an expired entry
        """
        ...

    async def put(self, key: str, value: Any, ttl: int | None) -> bool:
        """Write a value, replacing any existing entry."""
        ...

    async def forget(self, key: str) -> bool:
        """
        Delete a value.

        Returns:
            True if an entry was removed
        """
        ...

    async def has(self, key: str) -> bool:
        """Check whether a live entry exists."""
        ...

    async def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        """
        Atomically increment an integer counter.

        A missing counter starts at zero; ttl is applied only when the
        counter is created.

        Returns:
            The counter value after incrementing
        """
        ...

    async def flush(self) -> bool:
        """Remove every entry owned by this store."""
        ...

    def supports_tags(self) -> bool:
        """Whether tagged() and grouped flush are available."""
        ...

    def tagged(self, tags: Iterable[str]) -> TagScopedView:
        """
        Return a view scoped to the given tags.

        Raises:
            UnsupportedOperationError: If the store is tag incapable
        """
        ...

    async def ping(self) -> bool:
        """Check if the store is reachable."""
        ...
