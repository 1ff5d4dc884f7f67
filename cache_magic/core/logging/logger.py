#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the cache-aside layer with:
- Correlation id propagation across an async call chain
- Stage numbering that follows the execute() state machine
- JSON formatting for log aggregation
- Shortening of long cache keys so log lines stay readable

Author: System Architect
Date: 2025-12-05
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TextIO

import structlog
from structlog.types import EventDict, WrappedLogger

# Context variable for the correlation id of the current logical request
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Fields that carry cache keys and get shortened in log output
KEY_FIELDS = ("key", "cache_key", "physical_key")
MAX_KEY_LENGTH = 96


def add_correlation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation id to log event from context variable.

    STAGE-L.1: Correlation id injection
    """
    correlation_id = correlation_id_ctx.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def shorten_cache_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Truncate very long cache keys.

    STAGE-L.3: Key shortening

    Explicit keys are caller supplied and unbounded; derived keys are
    short already and pass through untouched.
    """
    for field in KEY_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str) and len(value) > MAX_KEY_LENGTH:
            event_dict[field] = value[:MAX_KEY_LENGTH] + "..."
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add log level name to event dict.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None, stream: TextIO | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
        stream: Output stream, stdout by default
    """
    if log_level is None or log_format is None:
        from cache_magic.config.settings import get_settings

        settings = get_settings()
        log_level = log_level or settings.logging.LOG_LEVEL
        log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=stream or sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            shorten_cache_keys,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage="1.0")
    """
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation id for the current context."""
    correlation_id_ctx.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the correlation id of the current context."""
    return correlation_id_ctx.get()


def clear_correlation_id() -> None:
    """Clear the correlation id from the current context."""
    correlation_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (e.g., Stage.CACHE_HIT or "5.0")
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.CACHE_HIT, "Cache hit", key=key)
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=str(getattr(stage, "value", stage)), **kwargs)
