"""
Cache Key Generation

Derives deterministic cache keys from a query fingerprint and an isolation
context:

    v<version>:<method>:<md5 of normalized fingerprint>:<identity>

Determinism: the fingerprint is normalized (whitespace collapsed, JSON
encoded with sorted keys) before hashing, and nothing time based enters
the key, so the same inputs give the same key in every process.

Identity: 'user:<id>' for authenticated callers, otherwise
'guest:<strategy id>'. A guest without a session is 'guest:anonymous'
under the session strategy. The caller of the current request is bound
with bind_identity(), a context variable that follows the async call chain.

Author: System Architect
Date: 2025-12-10
"""

import hashlib
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

import orjson

from cache_magic.config.settings import Settings
from cache_magic.core.config.constants import GUEST_TAG_PREFIX, USER_TAG_PREFIX, GuestStrategy
from cache_magic.core.exceptions import CacheKeyError

ANONYMOUS_GUEST = "anonymous"


@dataclass(frozen=True)
class Fingerprint:
    """
    Identity of a logical read.

    Attributes:
        operation: Query text or operation name; whitespace is normalized
        bindings: Positional parameter values
        projection: Requested columns/fields
        method: Terminal operation name (get, first, count, ...)
    """

    operation: str
    bindings: tuple[Any, ...] = ()
    projection: tuple[str, ...] = ("*",)
    method: str = "get"

    def __post_init__(self):
        object.__setattr__(self, "operation", " ".join(self.operation.split()))
        object.__setattr__(self, "bindings", tuple(self.bindings))
        object.__setattr__(self, "projection", tuple(self.projection))

    def normalized(self) -> bytes:
        """Canonical bytes of the fingerprint, independent of the method."""
        return orjson.dumps(
            {
                "operation": self.operation,
                "bindings": list(self.bindings),
                "projection": list(self.projection),
            },
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
            default=str,
        )

    def digest(self) -> str:
        return hashlib.md5(self.normalized()).hexdigest()


@dataclass(frozen=True)
class CallerIdentity:
    """Who is asking: an authenticated user, or a guest known by session/ip."""

    user_id: str | int | None = None
    session_id: str | None = None
    ip: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class IsolationContext:
    """Version and identity appended to every derived key."""

    version: str
    identity: str = field(default=GUEST_TAG_PREFIX + ANONYMOUS_GUEST)


_caller_ctx: ContextVar[CallerIdentity] = ContextVar("cache_caller", default=CallerIdentity())


def bind_identity(
    user_id: str | int | None = None, session_id: str | None = None, ip: str | None = None
) -> Token:
    """
    Bind the caller identity for the current context.

    Returns:
        Token for reset_identity()
    """
    return _caller_ctx.set(CallerIdentity(user_id=user_id, session_id=session_id, ip=ip))


def reset_identity(token: Token) -> None:
    _caller_ctx.reset(token)


def current_identity() -> CallerIdentity:
    return _caller_ctx.get()


@contextmanager
def identity_scope(
    user_id: str | int | None = None, session_id: str | None = None, ip: str | None = None
) -> Iterator[CallerIdentity]:
    """Bind a caller identity for the duration of a block."""
    token = bind_identity(user_id=user_id, session_id=session_id, ip=ip)
    try:
        yield current_identity()
    finally:
        reset_identity(token)


def resolve_identity(caller: CallerIdentity, strategy: GuestStrategy) -> str:
    """
    Identity segment of a key.

    A guest without a session shares the stable anonymous identity under
    the SESSION strategy. Only the UNIQUE strategy returns a fresh id on
    every call, so those guests never share or even reuse an entry.
    """
    if caller.authenticated:
        return f"{USER_TAG_PREFIX}{caller.user_id}"

    if strategy == GuestStrategy.IP:
        guest_id = hashlib.md5((caller.ip or "no-ip").encode("utf-8")).hexdigest()
    elif strategy == GuestStrategy.UNIQUE:
        guest_id = f"guest-{uuid.uuid4().hex}"
    else:
        guest_id = caller.session_id or ANONYMOUS_GUEST

    return f"{GUEST_TAG_PREFIX}{guest_id}"


class KeyGenerator:
    """
    Deterministic key derivation.

    STAGE-1.0: Key resolution
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    def isolation(
        self, version: str | None = None, caller: CallerIdentity | None = None
    ) -> IsolationContext:
        """
        Build the isolation context for the current caller.

        Args:
            version: Override for Settings.VERSION
            caller: Explicit caller; defaults to the bound identity
        """
        caller = caller if caller is not None else current_identity()
        return IsolationContext(
            version=str(version if version is not None else self._settings.VERSION),
            identity=resolve_identity(caller, self._settings.GUEST_FALLBACK),
        )

    def derive_key(
        self, fingerprint: Fingerprint, method: str | None, isolation: IsolationContext
    ) -> str:
        """Key for a fingerprint: v<version>:<method>:<hash>:<identity>."""
        method = method or fingerprint.method
        return f"v{isolation.version}:{method}:{fingerprint.digest()}:{isolation.identity}"

    def explicit_key(self, key: str, isolation: IsolationContext) -> str:
        """
        Caller-chosen key, used verbatim apart from the version prefix.

        Raises:
            CacheKeyError: If the key is empty
        """
        if not key:
            raise CacheKeyError("Explicit cache key must not be empty")
        return f"v{isolation.version}:{key}"
