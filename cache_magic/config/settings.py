#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the cache-aside layer.
A Settings instance is immutable: it is built once (from the environment,
a .env file or explicit keyword overrides) and handed to every component
through its constructor.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support (prefix CACHE_MAGIC_)
- Type validation at startup (fail fast on misconfiguration)
- Frozen model: components can never mutate shared configuration
- Easy testing: Settings(DEFAULT_TTL=60) or settings.model_copy(update=...)

Author: System Architect
Date: 2025-12-05
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cache_magic.core.config.constants import (
    ACCESS_COUNTER_TTL,
    ADAPTIVE_HOT_THRESHOLD,
    ADAPTIVE_MAX_TTL,
    ADAPTIVE_MIN_TTL,
    ADAPTIVE_WARM_THRESHOLD,
    DEFAULT_TTL,
    EntityEvent,
    GuestStrategy,
)


class AdaptiveTTLSettings(BaseModel):
    """
    Adaptive TTL bounds and thresholds.

    STAGE-2.0: TTL resolution configuration
    """

    model_config = ConfigDict(frozen=True)

    ENABLED: bool = False
    MIN_TTL: int = ADAPTIVE_MIN_TTL
    MAX_TTL: int = ADAPTIVE_MAX_TTL
    HOT_THRESHOLD: int = ADAPTIVE_HOT_THRESHOLD
    WARM_THRESHOLD: int = ADAPTIVE_WARM_THRESHOLD


class StatisticsSettings(BaseModel):
    """Statistics collection flags."""

    model_config = ConfigDict(frozen=True)

    ENABLED: bool = True
    DETAILED: bool = False
    TTL: int = ACCESS_COUNTER_TTL


class InvalidationSettings(BaseModel):
    """Which entity lifecycle events flush tags."""

    model_config = ConfigDict(frozen=True)

    ENABLED: bool = True
    EVENTS: frozenset[EntityEvent] = frozenset(EntityEvent)

    def handles(self, event: EntityEvent) -> bool:
        return self.ENABLED and event in self.EVENTS


class RedisSettings(BaseModel):
    """
    Redis configuration for the networked backing store.

    STAGE-B: Redis connection configuration
    """

    model_config = ConfigDict(frozen=True)

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_PREFIX: str = "cache_magic:"
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_HEALTH_CHECK_INTERVAL: int = 30
    REDIS_CONNECT_RETRIES: int = 3


class LoggingSettings(BaseModel):
    """Logging configuration for structured logging."""

    model_config = ConfigDict(frozen=True)

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"


class Settings(BaseSettings):
    """
    Main settings class for the cache-aside layer.

    STAGE-0: Centralized configuration initialization

    Usage:
        from cache_magic.config.settings import get_settings

        settings = get_settings()
        ttl = settings.DEFAULT_TTL
        hot = settings.adaptive.HOT_THRESHOLD

    Negative TTLs and an inverted min/max pair are accepted here and
    sanitized by the TTL policy at resolution time, so a bad value never
    fails a call.
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHE_MAGIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Core behaviour
    ENABLED: bool = Field(default=True, description="Master switch for caching")
    DRIVER: Literal["memory", "file", "redis"] = Field(default="memory", description="Backing store driver")
    DEFAULT_TTL: int = Field(default=DEFAULT_TTL, description="Default TTL in seconds (0 = no expiry)")
    VERSION: str = Field(default="1", description="Key version prefix")
    GLOBAL_TAGS: list[str] = Field(default=["app"], description="Tags added to every entry")
    DEBUG: bool = Field(default=False, description="Log every cache operation")

    # Identity isolation
    AUTO_USER_TAGS: bool = Field(default=True, description="Tag entries with the caller identity")
    GUEST_FALLBACK: GuestStrategy = Field(default=GuestStrategy.SESSION, description="Guest identity strategy")

    # Auto invalidation
    AUTO_INVALIDATION_ENABLED: bool = Field(default=True, description="Flush tags on entity events")
    INVALIDATE_ON_CREATED: bool = Field(default=True)
    INVALIDATE_ON_UPDATED: bool = Field(default=True)
    INVALIDATE_ON_DELETED: bool = Field(default=True)
    INVALIDATE_ON_RESTORED: bool = Field(default=True)
    INVALIDATE_ON_FORCE_DELETED: bool = Field(default=True)

    # Adaptive TTL
    ADAPTIVE_TTL_ENABLED: bool = Field(default=False, description="Adapt TTL to access frequency")
    ADAPTIVE_MIN_TTL: int = Field(default=ADAPTIVE_MIN_TTL, description="Lower TTL bound")
    ADAPTIVE_MAX_TTL: int = Field(default=ADAPTIVE_MAX_TTL, description="Upper TTL bound")
    ADAPTIVE_HOT_THRESHOLD: int = Field(default=ADAPTIVE_HOT_THRESHOLD, description="Accesses above which TTL doubles")
    ADAPTIVE_WARM_THRESHOLD: int = Field(default=ADAPTIVE_WARM_THRESHOLD, description="Accesses above which TTL is kept")

    # Statistics
    STATISTICS_ENABLED: bool = Field(default=True, description="Record global counters")
    STATISTICS_DETAILED: bool = Field(default=False, description="Record per-key counters")
    STATISTICS_TTL: int = Field(default=ACCESS_COUNTER_TTL, description="Retention of per-key and access counters")

    # Health
    HEALTH_HIT_RATE_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0, description="Minimum acceptable hit rate")
    HEALTH_PERFORMANCE_ITERATIONS: int = Field(default=100, ge=1, description="Probe cycles per performance check")

    # Deferred refresh and warming
    ASYNC_QUEUE: str = Field(default="default", description="Queue name for deferred refresh jobs")
    WARM_CONCURRENCY: int = Field(default=5, ge=1, description="Concurrent producers while warming")

    # Memory driver
    MEMORY_MAX_ENTRIES: int = Field(default=10000, ge=1, description="LRU capacity of the memory store")

    # File driver
    FILE_PATH: str = Field(default=".cache/cache_magic", description="Directory of the file store")

    # Redis driver
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_PREFIX: str = Field(default="cache_magic:", description="Prefix for every Redis key")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_RETRIES: int = Field(default=3, ge=1, description="Connection attempts before giving up")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("VERSION")
    @classmethod
    def validate_version(cls, v):
        """Reject versions that would break the key layout."""
        if not v or ":" in v:
            raise ValueError("VERSION must be non-empty and must not contain ':'")
        return v

    # Nested read-only views
    @property
    def adaptive(self) -> AdaptiveTTLSettings:
        """Get adaptive TTL settings."""
        return AdaptiveTTLSettings(
            ENABLED=self.ADAPTIVE_TTL_ENABLED,
            MIN_TTL=self.ADAPTIVE_MIN_TTL,
            MAX_TTL=self.ADAPTIVE_MAX_TTL,
            HOT_THRESHOLD=self.ADAPTIVE_HOT_THRESHOLD,
            WARM_THRESHOLD=self.ADAPTIVE_WARM_THRESHOLD,
        )

    @property
    def statistics(self) -> StatisticsSettings:
        """Get statistics settings."""
        return StatisticsSettings(
            ENABLED=self.STATISTICS_ENABLED,
            DETAILED=self.STATISTICS_DETAILED,
            TTL=self.STATISTICS_TTL,
        )

    @property
    def invalidation(self) -> InvalidationSettings:
        """Get auto-invalidation settings."""
        toggles = {
            EntityEvent.CREATED: self.INVALIDATE_ON_CREATED,
            EntityEvent.UPDATED: self.INVALIDATE_ON_UPDATED,
            EntityEvent.DELETED: self.INVALIDATE_ON_DELETED,
            EntityEvent.RESTORED: self.INVALIDATE_ON_RESTORED,
            EntityEvent.FORCE_DELETED: self.INVALIDATE_ON_FORCE_DELETED,
        }
        return InvalidationSettings(
            ENABLED=self.AUTO_INVALIDATION_ENABLED,
            EVENTS=frozenset(event for event, on in toggles.items() if on),
        )

    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_PREFIX=self.REDIS_PREFIX,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_CONNECT_RETRIES=self.REDIS_CONNECT_RETRIES,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)


# Global settings instance (singleton pattern) for entrypoints only.
# Library components receive their Settings through constructors.
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the process-wide settings loaded from the environment.

    Returns:
        Settings: Application settings
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """
    Re-read settings from the environment.

    Returns:
        Settings: Fresh settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
