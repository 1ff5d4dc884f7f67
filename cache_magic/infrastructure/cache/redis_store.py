"""
Redis Backing Store

Architecture:
    RedisStore (BackingStore)
        ├── ConnectionManager (pool lifecycle, connect retries)
        └── _execute() (command execution with error translation)

Tag support:
    Each tag keeps a sorted set of the keys written under it, scored by
    expiry timestamp (-1 for entries that never expire). Each key keeps a
    set of the tags it was last written with, expiring with the entry.
    A write replaces the value, the key's tag set and its tag memberships
    in one MULTI block; forget removes all three. Members whose entry
    already expired are pruned on every write. Flushing a tag reads and
    deletes its sorted set in one MULTI block, then deletes the keys whose
    tag set still contains the tag.

Every key is stored under the configured prefix. Values are orjson bytes;
counters are native Redis integers, which decode as JSON numbers.

Author: System Architect
Date: 2025-12-13
"""

import time
from collections.abc import Iterable
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from cache_magic.config.settings import RedisSettings
from cache_magic.core.config.constants import Stage
from cache_magic.core.exceptions import BackendUnavailableError, CacheConnectionError, CacheKeyError
from cache_magic.core.logging.logger import get_logger, log_stage
from cache_magic.infrastructure.cache import serializer
from cache_magic.infrastructure.cache.tagged import TaggedCache

logger = get_logger(__name__)

SCAN_BATCH = 500


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Connection establishment is retried with exponential backoff and
    jitter; once connected, the pool handles reconnection.
    """

    def __init__(self, settings: RedisSettings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-B.1: Connection establishment

        Raises:
            CacheConnectionError: If every connection attempt fails
        """
        if self._is_connected and self._client:
            return self._client

        self._pool = ConnectionPool(
            host=self._settings.REDIS_HOST,
            port=self._settings.REDIS_PORT,
            db=self._settings.REDIS_DB,
            password=self._settings.REDIS_PASSWORD,
            max_connections=self._settings.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=self._settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=self._settings.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=True,
            health_check_interval=self._settings.REDIS_HEALTH_CHECK_INTERVAL,
        )
        self._client = redis.Redis(connection_pool=self._pool)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.REDIS_CONNECT_RETRIES),
                wait=wait_exponential_jitter(initial=0.1, max=2.0),
                retry=retry_if_exception_type((ConnectionError, TimeoutError)),
                before_sleep=lambda retry_state: logger.info(
                    "Redis connect retry",
                    stage="B.1",
                    attempt=retry_state.attempt_number,
                    delay=round(retry_state.idle_for, 3),
                ),
            ):
                with attempt:
                    await self._client.ping()
        except (RetryError, ConnectionError, TimeoutError) as e:
            cause = e.last_attempt.exception() if isinstance(e, RetryError) else e
            logger.error("Failed to connect to Redis", stage="B.1", error=str(cause))
            await self.disconnect()
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {cause}",
                details={"host": self._settings.REDIS_HOST, "port": self._settings.REDIS_PORT},
            )

        self._is_connected = True
        logger.info(
            "Redis connected successfully",
            stage="B.1",
            host=self._settings.REDIS_HOST,
            port=self._settings.REDIS_PORT,
            max_connections=self._settings.REDIS_MAX_CONNECTIONS,
        )
        return self._client

    async def disconnect(self) -> None:
        """
        Close Redis client and pool.

        STAGE-B.2: Connection cleanup
        """
        if self._client:
            await self._client.aclose()
        if self._pool:
            await self._pool.disconnect()
        self._client = None
        self._pool = None
        self._is_connected = False

    async def client(self) -> redis.Redis:
        if self._is_connected and self._client:
            return self._client
        return await self.connect()

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: STORE
# =============================================================================


class RedisStore:
    """
    Networked, tag-capable store.

    STAGE-B: Backing store (redis driver)

    Error Handling Strategy:
    - Catch RedisError around every command
    - Log with stage and key
    - Raise BackendUnavailableError, preserving the original error in details
    """

    name = "redis"

    def __init__(self, settings: RedisSettings, client: redis.Redis | None = None):
        """
        Initialize the store.

        Args:
            settings: Redis settings
            client: Pre-built client (skips pool creation, used in tests)
        """
        self._prefix = settings.REDIS_PREFIX
        self._connection = ConnectionManager(settings)
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = await self._connection.connect()

    async def close(self) -> None:
        await self._connection.disconnect()
        self._client = None

    def _key(self, key: str) -> str:
        return self._prefix + key

    def _tag_key(self, tag: str) -> str:
        return f"{self._prefix}tag:{tag}:entries"

    def _key_tags_key(self, key: str) -> str:
        return f"{self._prefix}keytags:{key}"

    async def _execute(self, operation: str, key: str | None, fn):
        if self._client is None:
            await self.connect()
        try:
            return await fn(self._client)
        except RedisError as e:
            logger.error("Redis command failed", stage=f"B.{operation.upper()}", key=key, error=str(e))
            raise BackendUnavailableError.from_exception(
                e, message=f"Redis {operation.upper()} failed: {e}", key=key, driver=self.name
            )

    # -------------------------------------------------------------------------
    # Basic Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> tuple[Any, bool]:
        payload = await self._execute("get", key, lambda c: c.get(self._key(key)))
        if payload is None:
            return None, False
        return serializer.loads(payload, key=key), True

    async def put(self, key: str, value: Any, ttl: int | None, tags: Iterable[str] = ()) -> bool:
        """Write a value; the entry carries exactly the given tags afterwards."""
        if not key:
            raise CacheKeyError("Cache key must not be empty")
        payload = serializer.dumps(value, key=key)
        tags = tuple(dict.fromkeys(tags))
        previous = await self.key_tags(key)

        if not tags and not previous:
            result = await self._execute("set", key, lambda c: c.set(self._key(key), payload, ex=ttl or None))
            return bool(result)

        now = time.time()
        score = now + ttl if ttl else -1

        async def _put(client: redis.Redis) -> list[Any]:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._key(key), payload, ex=ttl or None)
                for stale in previous.difference(tags):
                    pipe.zrem(self._tag_key(stale), key)
                pipe.delete(self._key_tags_key(key))
                if tags:
                    pipe.sadd(self._key_tags_key(key), *tags)
                    if ttl:
                        pipe.expire(self._key_tags_key(key), ttl)
                for tag in tags:
                    pipe.zadd(self._tag_key(tag), {key: score})
                    pipe.zremrangebyscore(self._tag_key(tag), 0, now)
                return await pipe.execute()

        results = await self._execute("set", key, _put)
        return bool(results[0])

    async def forget(self, key: str) -> bool:
        previous = await self.key_tags(key)
        if not previous:
            return bool(await self._execute("delete", key, lambda c: c.delete(self._key(key))))

        async def _forget(client: redis.Redis) -> list[Any]:
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(self._key(key))
                pipe.delete(self._key_tags_key(key))
                for tag in previous:
                    pipe.zrem(self._tag_key(tag), key)
                return await pipe.execute()

        results = await self._execute("delete", key, _forget)
        return bool(results[0])

    async def has(self, key: str) -> bool:
        return bool(await self._execute("exists", key, lambda c: c.exists(self._key(key))))

    async def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        value = int(await self._execute("incrby", key, lambda c: c.incrby(self._key(key), amount)))
        if ttl and value == amount:
            # Counter was just created
            await self._execute("expire", key, lambda c: c.expire(self._key(key), ttl))
        return value

    async def flush(self) -> bool:
        async def _flush(client: redis.Redis) -> int:
            removed = 0
            batch: list[bytes] = []
            async for raw in client.scan_iter(match=self._prefix + "*", count=SCAN_BATCH):
                batch.append(raw)
                if len(batch) >= SCAN_BATCH:
                    removed += await client.delete(*batch)
                    batch.clear()
            if batch:
                removed += await client.delete(*batch)
            return removed

        removed = await self._execute("flush", None, _flush)
        log_stage(logger, Stage.STORE, "Redis store flushed", prefix=self._prefix, removed=removed)
        return True

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def supports_tags(self) -> bool:
        return True

    def tagged(self, tags: Iterable[str]) -> TaggedCache:
        return TaggedCache(self, tags)

    async def key_tags(self, key: str) -> set[str]:
        members = await self._execute("smembers", key, lambda c: c.smembers(self._key_tags_key(key)))
        return {m.decode("utf-8") if isinstance(m, bytes) else m for m in members or ()}

    async def pop_tag_references(self, tag: str) -> list[str]:
        async def _pop(client: redis.Redis) -> list[bytes]:
            async with client.pipeline(transaction=True) as pipe:
                pipe.zrange(self._tag_key(tag), 0, -1)
                pipe.delete(self._tag_key(tag))
                members, _ = await pipe.execute()
            return members

        members = await self._execute("zrange", None, _pop)
        return [m.decode("utf-8") if isinstance(m, bytes) else m for m in members]

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def ping(self) -> bool:
        try:
            return bool(await self._execute("ping", None, lambda c: c.ping()))
        except BackendUnavailableError:
            return False

    async def memory_info(self) -> dict[str, Any]:
        """Memory usage and fragmentation from INFO memory."""
        info = await self._execute("info", None, lambda c: c.info("memory"))
        return {
            "used_memory": info.get("used_memory_human"),
            "peak_memory": info.get("used_memory_peak_human"),
            "fragmentation_ratio": info.get("mem_fragmentation_ratio"),
        }

    async def size_info(self) -> dict[str, Any]:
        """Key count of the database and evictions reported by Redis."""
        entries = await self._execute("dbsize", None, lambda c: c.dbsize())
        stats = await self._execute("info", None, lambda c: c.info("stats"))
        return {"entries": entries, "evictions": stats.get("evicted_keys", 0)}
