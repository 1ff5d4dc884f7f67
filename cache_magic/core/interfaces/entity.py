"""
Cacheable Entity Protocol

Domain objects opt into cache invalidation by implementing this protocol.
Nothing is mixed into the domain class: the entity describes its tags and
the invalidation engine decides what to flush.

Author: System Architect
Date: 2025-12-08
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheableEntity(Protocol):
    """
    Capability interface for domain objects whose changes flush cache tags.

    Usage:
        class Post:
            def cache_tags(self): return ["posts"]
            def dynamic_tags(self): return [f"author:{self.author_id}"]
            def expiry(self): return 600
            def type_tag(self): return model_type_tag("Post")
            def instance_tag(self): return model_instance_tag("Post", self.id)
    """

    def cache_tags(self) -> list[str]:
        """Static tags shared by every instance of the type."""
        ...

    def dynamic_tags(self) -> list[str]:
        """Tags derived from the instance state."""
        ...

    def expiry(self) -> int | None:
        """TTL for entries remembered on behalf of this entity."""
        ...

    def type_tag(self) -> str:
        """Tag shared by every instance, 'model:<lowercase type name>'."""
        ...

    def instance_tag(self) -> str:
        """Tag of this instance, '<type tag>:<id>'."""
        ...
