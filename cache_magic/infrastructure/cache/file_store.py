"""
File Backing Store

One file per entry under a cache directory. The file name is the sha1 of
the key, sharded into two directory levels; the file body is a 10-digit
expiry timestamp followed by the orjson payload.

This store has no tag support: supports_tags() is False and tagged()
raises UnsupportedOperationError. Grouped invalidation against it is a
no-op in the invalidation engine; single keys can still be forgotten.

Blocking file I/O runs in a worker thread via asyncio.to_thread.

Author: System Architect
Date: 2025-12-10
"""

import asyncio
import hashlib
import shutil
import time
import uuid
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from cache_magic.core.config.constants import Stage
from cache_magic.core.exceptions import BackendUnavailableError, CacheKeyError, UnsupportedOperationError
from cache_magic.core.logging.logger import get_logger, log_stage
from cache_magic.infrastructure.cache import serializer

logger = get_logger(__name__)

FOREVER = 9999999999
EXPIRY_WIDTH = 10


class FileStore:
    """
    Filesystem store.

    STAGE-B: Backing store (file driver)

    Counter increments are serialized by an asyncio.Lock, which makes them
    atomic within one process only.
    """

    name = "file"

    def __init__(self, directory: str | Path, clock: Callable[[], float] = time.time):
        """
        Initialize the store.

        Args:
            directory: Root directory for cache files
            clock: Wall-clock seconds source (injectable for tests)
        """
        self._directory = Path(directory)
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self._directory / digest[:2] / digest[2:4] / digest

    def _expiry(self, ttl: int | None) -> int:
        if not ttl:
            return FOREVER
        return min(int(self._clock()) + ttl, FOREVER)

    async def _run(self, operation: str, key: str | None, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except CacheKeyError as e:
            raise CacheKeyError(e.message, key=key, details={**e.details, "operation": operation}) from e
        except OSError as e:
            logger.error("File store operation failed", stage=Stage.STORE.value, operation=operation, key=key, error=str(e))
            raise BackendUnavailableError.from_exception(
                e, message=f"File store {operation} failed: {e}", key=key, driver=self.name
            )

    # -------------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # -------------------------------------------------------------------------

    def _read(self, path: Path) -> tuple[int, bytes] | None:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        if len(raw) < EXPIRY_WIDTH:
            return None
        header = raw[:EXPIRY_WIDTH]
        if not header.isdigit():
            raise CacheKeyError("Cache file header is corrupt", details={"path": str(path)})
        return int(header), raw[EXPIRY_WIDTH:]

    def _read_live(self, path: Path) -> tuple[int, bytes] | None:
        record = self._read(path)
        if record is None:
            return None
        if record[0] <= self._clock():
            path.unlink(missing_ok=True)
            return None
        return record

    def _write(self, path: Path, expiry: int, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Temp name is unique per write
        tmp = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp.write_bytes(str(expiry).zfill(EXPIRY_WIDTH).encode("ascii") + payload)
            tmp.replace(path)
        finally:
            tmp.unlink(missing_ok=True)

    def _delete(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def _clear(self) -> None:
        if not self._directory.exists():
            return
        for child in self._directory.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()

    def _scan(self) -> dict[str, int]:
        files = 0
        size = 0
        if self._directory.exists():
            for path in self._directory.rglob("*"):
                if path.is_file():
                    files += 1
                    size += path.stat().st_size
        return {"entries": files, "bytes": size}

    # -------------------------------------------------------------------------
    # BackingStore
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        await self._run("connect", None, self._directory.mkdir, 0o755, True, True)

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> tuple[Any, bool]:
        record = await self._run("get", key, self._read_live, self.path_for(key))
        if record is None:
            return None, False
        return serializer.loads(record[1], key=key), True

    async def put(self, key: str, value: Any, ttl: int | None) -> bool:
        if not key:
            raise CacheKeyError("Cache key must not be empty")
        payload = serializer.dumps(value, key=key)
        await self._run("put", key, self._write, self.path_for(key), self._expiry(ttl), payload)
        return True

    async def forget(self, key: str) -> bool:
        return await self._run("forget", key, self._delete, self.path_for(key))

    async def has(self, key: str) -> bool:
        return await self._run("has", key, self._read_live, self.path_for(key)) is not None

    async def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        path = self.path_for(key)
        async with self._lock:
            record = await self._run("increment", key, self._read_live, path)
            if record is None:
                value, expiry = amount, self._expiry(ttl)
            else:
                value, expiry = int(serializer.loads(record[1], key=key)) + amount, record[0]
            await self._run("increment", key, self._write, path, expiry, serializer.dumps(value, key=key))
        return value

    async def flush(self) -> bool:
        await self._run("flush", None, self._clear)
        log_stage(logger, Stage.STORE, "File store flushed", directory=str(self._directory))
        return True

    def supports_tags(self) -> bool:
        return False

    def tagged(self, tags: Iterable[str]):
        raise UnsupportedOperationError(
            "The file store does not support tags", details={"driver": self.name, "tags": list(tags)}
        )

    async def ping(self) -> bool:
        try:
            await self.connect()
        except BackendUnavailableError:
            return False
        return True

    async def size_info(self) -> dict[str, Any]:
        """Number of files and bytes on disk."""
        return await self._run("size", None, self._scan)
