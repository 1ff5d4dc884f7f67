"""
Function decorators.

    @cached(manager.executor, ttl=300, tags=["plans"])
    async def read_plan(plan_id: str): ...

    @invalidates(manager.invalidation, tags=["plans"])
    async def write_plan(plan_id: str, body: dict): ...

The cache key is derived from the function's qualified name and its
arguments unless key_fn supplies an explicit key. Arguments must be JSON
encodable or have a stable str().
"""

import functools
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from cache_magic.caching.executor import CacheAsideExecutor, CacheOptions, call_producer
from cache_magic.caching.keys import Fingerprint
from cache_magic.caching.tags import InvalidationEngine


def function_fingerprint(fn: Callable[..., Any], args: tuple, kwargs: dict) -> Fingerprint:
    return Fingerprint(
        operation=f"{fn.__module__}.{fn.__qualname__}",
        bindings=(*args, sorted(kwargs.items())),
        projection=(),
        method="call",
    )


def cached(
    executor: CacheAsideExecutor,
    ttl: int | None = None,
    tags: Iterable[str] = (),
    key_fn: Callable[..., str] | None = None,
    **options,
):
    """
    Cache the result of a sync or async function.

    Extra keyword arguments become CacheOptions fields (adaptive, version,
    model, ...). The wrapped function is always a coroutine function.
    """
    call_options = CacheOptions(ttl=ttl, tags=tuple(tags), **options)

    def wrap(fn: Callable[..., Any | Awaitable[Any]]):
        @functools.wraps(fn)
        async def inner(*args, **kwargs):
            target = key_fn(*args, **kwargs) if key_fn else function_fingerprint(fn, args, kwargs)
            return await executor.execute(target, lambda: fn(*args, **kwargs), call_options)

        return inner

    return wrap


def invalidates(engine: InvalidationEngine, tags: Iterable[str] | Callable[..., Iterable[str]]):
    """
    Flush tags after the wrapped function returns successfully.

    tags may be a callable receiving the function arguments.
    """

    def wrap(fn: Callable[..., Any | Awaitable[Any]]):
        @functools.wraps(fn)
        async def inner(*args, **kwargs):
            out = await call_producer(lambda: fn(*args, **kwargs))
            await engine.flush(tags(*args, **kwargs) if callable(tags) else tags)
            return out

        return inner

    return wrap
