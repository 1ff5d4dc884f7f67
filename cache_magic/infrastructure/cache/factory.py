"""
Backing store factory.

Builds the store named by Settings.DRIVER.
"""

from cache_magic.config.settings import Settings
from cache_magic.core.exceptions import ConfigurationError
from cache_magic.core.interfaces.cache import BackingStore
from cache_magic.infrastructure.cache.file_store import FileStore
from cache_magic.infrastructure.cache.memory_store import MemoryStore
from cache_magic.infrastructure.cache.redis_store import RedisStore

DRIVERS = ("memory", "file", "redis")


def create_store(settings: Settings, driver: str | None = None) -> BackingStore:
    """
    Create a backing store.

    Args:
        settings: Application settings
        driver: Override for settings.DRIVER

    Raises:
        ConfigurationError: If the driver is unknown
    """
    driver = driver or settings.DRIVER

    if driver == "memory":
        return MemoryStore(max_entries=settings.MEMORY_MAX_ENTRIES)
    if driver == "file":
        return FileStore(settings.FILE_PATH)
    if driver == "redis":
        return RedisStore(settings.redis)

    raise ConfigurationError(f"Unknown cache driver: {driver}", details={"supported": list(DRIVERS)})
