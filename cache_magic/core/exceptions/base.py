"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.

Author: System Architect
Date: 2025-12-08
"""

from typing import Any


class CacheMagicError(Exception):
    """
    Base exception for all cache-aside layer errors.

    Attributes:
        message: Error message
        key: Cache key involved in the failure (if any)
        details: Additional error details (dict)

    Example:
        raise BackendUnavailableError(
            "Redis GET failed",
            key="v1:get:9f8e...:guest:abc",
            details={"driver": "redis", "error": "Connection refused"}
        )
    """

    def __init__(
        self, message: str, key: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.key = key
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging.

        Returns:
            Dict with error_type, message, key, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "key": self.key,
            "details": self.details,
        }

    def with_context(self, **context) -> "CacheMagicError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        key_str = f", key='{self.key}'" if self.key else ""
        return f"{self.__class__.__name__}(message='{self.message}'{key_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        key: str | None = None,
        **details
    ) -> "CacheMagicError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions (redis, OSError) with
        additional context.

        Args:
            exc: Original exception to wrap
            message: Custom message (defaults to original exception message)
            key: Cache key involved
            **details: Additional context to include

        Returns:
            New instance with wrapped exception details
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, key=key, details=error_details)


class ConfigurationError(CacheMagicError):
    """Raised when configuration is unusable (e.g. unknown driver)."""
    pass
