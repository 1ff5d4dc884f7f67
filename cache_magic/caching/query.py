"""
Cached Query Wrapper

Wraps any query object with an explicit, enumerated set of cached terminal
operations: get, first, count, sum, avg, max, min, exists and pluck. Each
terminal builds a Fingerprint from the query statement, its bindings, the
projection and the operation name, then runs through the executor.

Builder methods are not forwarded implicitly: compose(fn) applies a
builder step to the wrapped query and re-wraps the result with the same
options.

Usage:
    posts = CachedQuery(PostQuery().where("published", True), executor)
    rows = await posts.ttl(600).tags("posts").get()
    total = await posts.compose(lambda q: q.where("author_id", 7)).count()
"""

import dataclasses
from collections.abc import Callable, Sequence
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from cache_magic.caching.executor import CacheAsideExecutor, CacheOptions, Producer
from cache_magic.caching.keys import Fingerprint


@runtime_checkable
class QueryLike(Protocol):
    """
    What a query object must provide to be cached.

    Terminal methods may be plain or coroutine methods.
    """

    def statement(self) -> str:
        ...

    def bindings(self) -> Sequence[Any]:
        ...

    def get(self, columns: Sequence[str] = ("*",)) -> Any:
        ...

    def first(self, columns: Sequence[str] = ("*",)) -> Any:
        ...

    def count(self, column: str = "*") -> Any:
        ...

    def sum(self, column: str) -> Any:
        ...

    def avg(self, column: str) -> Any:
        ...

    def max(self, column: str) -> Any:
        ...

    def min(self, column: str) -> Any:
        ...

    def exists(self) -> Any:
        ...

    def pluck(self, column: str, key: str | None = None) -> Any:
        ...


Q = TypeVar("Q", bound=QueryLike)


class CachedQuery(Generic[Q]):
    """
    Immutable cached view of a query.

    Option setters return a new CachedQuery; the wrapped query is shared.
    """

    def __init__(
        self,
        query: Q,
        executor: CacheAsideExecutor,
        options: CacheOptions | None = None,
        key: str | None = None,
    ):
        self._query = query
        self._executor = executor
        self._options = options or CacheOptions()
        self._key = key

    @property
    def query(self) -> Q:
        return self._query

    @property
    def options(self) -> CacheOptions:
        return self._options

    def _with(self, **changes) -> "CachedQuery[Q]":
        key = changes.pop("key", self._key)
        options = dataclasses.replace(self._options, **changes) if changes else self._options
        return CachedQuery(self._query, self._executor, options, key)

    # -------------------------------------------------------------------------
    # Fluent options
    # -------------------------------------------------------------------------

    def ttl(self, seconds: int | None) -> "CachedQuery[Q]":
        return self._with(ttl=seconds)

    def tags(self, *tags: str) -> "CachedQuery[Q]":
        return self._with(tags=(*self._options.tags, *tags))

    def key(self, key: str) -> "CachedQuery[Q]":
        return self._with(key=key)

    def refresh(self, force: bool = True) -> "CachedQuery[Q]":
        return self._with(force_refresh=force)

    def version(self, version: str) -> "CachedQuery[Q]":
        return self._with(version=version)

    def adaptive(self, enabled: bool = True) -> "CachedQuery[Q]":
        return self._with(adaptive=enabled)

    def bypass(self, skip: bool = True) -> "CachedQuery[Q]":
        return self._with(bypass=skip)

    def model(self, name: str) -> "CachedQuery[Q]":
        return self._with(model=name)

    def do_not_cache(self) -> Q:
        """The underlying query, for calls that must never be cached."""
        return self._query

    def compose(self, step: Callable[[Q], Q]) -> "CachedQuery[Q]":
        """Apply a builder step to the wrapped query, keeping the options."""
        return CachedQuery(step(self._query), self._executor, self._options, self._key)

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def fingerprint(self, method: str = "get", projection: Sequence[str] = ("*",)) -> Fingerprint:
        return Fingerprint(
            operation=self._query.statement(),
            bindings=tuple(self._query.bindings()),
            projection=tuple(projection),
            method=method,
        )

    def _target(self, method: str, projection: Sequence[str]) -> Fingerprint | str:
        return self._key if self._key else self.fingerprint(method, projection)

    def cache_key(self, method: str = "get", projection: Sequence[str] = ("*",)) -> str:
        """Key a terminal call with these arguments reads and writes."""
        key, _ = self._executor.resolve_key(self._target(method, projection), self._options)
        return key

    async def _run(self, method: str, projection: Sequence[str], producer: Producer) -> Any:
        return await self._executor.execute(self._target(method, projection), producer, self._options)

    # -------------------------------------------------------------------------
    # Terminal operations
    # -------------------------------------------------------------------------

    async def get(self, columns: Sequence[str] = ("*",)) -> Any:
        return await self._run("get", columns, lambda: self._query.get(columns))

    async def first(self, columns: Sequence[str] = ("*",)) -> Any:
        return await self._run("first", columns, lambda: self._query.first(columns))

    async def count(self, column: str = "*") -> Any:
        return await self._run("count", (column,), lambda: self._query.count(column))

    async def sum(self, column: str) -> Any:
        return await self._run("sum", (column,), lambda: self._query.sum(column))

    async def avg(self, column: str) -> Any:
        return await self._run("avg", (column,), lambda: self._query.avg(column))

    async def max(self, column: str) -> Any:
        return await self._run("max", (column,), lambda: self._query.max(column))

    async def min(self, column: str) -> Any:
        return await self._run("min", (column,), lambda: self._query.min(column))

    async def exists(self) -> Any:
        return await self._run("exists", (), lambda: self._query.exists())

    async def pluck(self, column: str, key: str | None = None) -> Any:
        projection = (column, key) if key else (column,)
        return await self._run("pluck", projection, lambda: self._query.pluck(column, key))

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def clear_cache(self, method: str = "get", columns: Sequence[str] = ("*",)) -> bool:
        """Forget the entry of one terminal call."""
        return await self._executor.forget(self._target(method, columns), self._options)

    async def refresh_async(self, columns: Sequence[str] = ("*",)) -> str | None:
        """Schedule a background refresh of get(columns)."""
        return await self._executor.execute_deferred(
            self._target("get", columns), lambda: self._query.get(columns), self._options
        )

    async def warm_up(self, columns: Sequence[str] = ("*",)) -> Any:
        """Run get(columns) and overwrite the cached entry."""
        return await self.refresh().get(columns)
