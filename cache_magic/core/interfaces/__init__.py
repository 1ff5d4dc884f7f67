from .cache import BackingStore, TagScopedView
from .entity import CacheableEntity
from .jobs import Job, JobTransport

__all__ = ["BackingStore", "CacheableEntity", "Job", "JobTransport", "TagScopedView"]
