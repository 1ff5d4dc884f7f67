from .factory import create_store
from .file_store import FileStore
from .memory_store import MemoryStore
from .redis_store import RedisStore
from .tagged import TaggedCache

__all__ = ["FileStore", "MemoryStore", "RedisStore", "TaggedCache", "create_store"]
