"""
Value serialization for backing stores.

Every store keeps values as orjson bytes, so a caller mutating a returned
value can never alter what is cached. Values round-trip as JSON: tuples
come back as lists and dataclasses as dicts.
"""

from typing import Any

import orjson

from cache_magic.core.exceptions import CacheKeyError

_DUMP_OPTIONS = orjson.OPT_NON_STR_KEYS


def dumps(value: Any, key: str | None = None) -> bytes:
    """
    Serialize a value for storage.

    Raises:
        CacheKeyError: If the value is not JSON serializable
    """
    try:
        return orjson.dumps(value, option=_DUMP_OPTIONS)
    except orjson.JSONEncodeError as e:
        raise CacheKeyError.from_exception(
            e, message=f"Value is not serializable: {e}", key=key, value_type=type(value).__name__
        )


def loads(payload: bytes | str, key: str | None = None) -> Any:
    """
    Deserialize a stored payload.

    Raises:
        CacheKeyError: If the payload is corrupt
    """
    try:
        return orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise CacheKeyError.from_exception(e, message=f"Stored payload is corrupt: {e}", key=key)
