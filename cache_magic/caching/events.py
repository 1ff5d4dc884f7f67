"""
Cache events and observer registration.

The executor reports every hit, miss and write to an EventDispatcher.
Listeners are registered explicitly per dispatcher; there is no global
event bus. A failing listener is logged and skipped, it never changes the
outcome of the cache operation that emitted the event.
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field

from cache_magic.core.config.constants import Stage
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEvent:
    key: str
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CacheHit(CacheEvent):
    pass


@dataclass(frozen=True)
class CacheMiss(CacheEvent):
    pass


@dataclass(frozen=True)
class CacheWrite(CacheEvent):
    ttl: int | None = None
    duration: float = 0.0  # producer wall time in seconds


Listener = Callable[[CacheEvent], object]


class EventDispatcher:
    """
    Observer registry for cache events.

    Usage:
        events = EventDispatcher()
        events.listen(CacheHit, lambda event: print(event.key))
        events.listen(CacheEvent, audit)  # every event
    """

    def __init__(self):
        self._listeners: list[tuple[type[CacheEvent], Listener]] = []

    def listen(self, event_type: type[CacheEvent], listener: Listener) -> Listener:
        """
        Register a listener for an event type and its subclasses.

        Listeners may be plain functions or coroutine functions.

        Returns:
            The listener, so this can be used as a decorator factory target
        """
        self._listeners.append((event_type, listener))
        return listener

    def forget(self, listener: Listener) -> None:
        """Remove every registration of a listener."""
        self._listeners = [(t, fn) for t, fn in self._listeners if fn != listener]

    def has_listeners(self) -> bool:
        return bool(self._listeners)

    async def dispatch(self, event: CacheEvent) -> None:
        for event_type, listener in list(self._listeners):
            if not isinstance(event, event_type):
                continue
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log_stage(
                    logger,
                    Stage.EVENTS,
                    "Cache event listener failed",
                    level="warning",
                    event=type(event).__name__,
                    key=event.key,
                    error=str(e),
                )
