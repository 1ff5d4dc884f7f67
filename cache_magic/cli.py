#!/usr/bin/env python3
"""
cache-magic command line

Operational commands against the store configured by CACHE_MAGIC_*
environment variables (or .env):

    cache-magic clear --tags posts users   flush entries tagged posts OR users
    cache-magic clear --key v1:homepage    forget one stored key
    cache-magic clear --model Post         flush model:post
    cache-magic clear --all                remove every entry
    cache-magic clear --stats              reset global counters
    cache-magic stats [--key K | --model M | --export | --reset]
    cache-magic health
    cache-magic warm myapp.cache:warm_requests

The warm target is a callable receiving the CacheManager and returning an
iterable of WarmRequest (it may be a coroutine function).

Exit codes: 0 on success, 1 when the operation was not performed or the
cache is unhealthy.

Author: System Architect
Date: 2025-12-15
"""

import argparse
import asyncio
import importlib
import inspect
import sys
import uuid
from collections.abc import Sequence
from typing import Any

import orjson

from cache_magic.config.settings import get_settings
from cache_magic.core.config.constants import HealthStatus
from cache_magic.core.exceptions import CacheMagicError
from cache_magic.core.logging.logger import get_logger, set_correlation_id, setup_logging
from cache_magic.manager import CacheManager

logger = get_logger(__name__)


def _print_json(data: Any) -> None:
    print(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS, default=str).decode())


def _status(ok: bool, message: str) -> int:
    print(f"[{'OK' if ok else 'X'}] {message}")
    return 0 if ok else 1


def load_callable(target: str):
    """Resolve 'package.module:attribute' to an object."""
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:callable', got {target!r}")
    obj = importlib.import_module(module_name)
    for part in attribute.split("."):
        obj = getattr(obj, part)
    return obj


# =============================================================================
# Commands
# =============================================================================


async def cmd_clear(manager: CacheManager, args: argparse.Namespace) -> int:
    if args.all:
        await manager.clear_all()
        return _status(True, "Cache cleared")

    if args.stats:
        await manager.reset_stats()
        return _status(True, "Statistics reset")

    if args.key:
        removed = await manager.clear_key(args.key)
        return _status(removed, f"Key {args.key} {'forgotten' if removed else 'not found'}")

    if args.model:
        flushed = await manager.clear_model(args.model)
        return _status(flushed, f"Model {args.model} {'flushed' if flushed else 'not flushed: store has no tag support'}")

    if args.tags:
        flushed = await manager.clear_tags(args.tags)
        return _status(
            flushed, f"Tags {', '.join(args.tags)} {'flushed' if flushed else 'not flushed: store has no tag support'}"
        )

    print("Nothing to clear: pass --tags, --key, --model, --all or --stats", file=sys.stderr)
    return 1


async def cmd_stats(manager: CacheManager, args: argparse.Namespace) -> int:
    if args.reset:
        await manager.reset_stats()
        return _status(True, "Statistics reset")

    if args.key:
        _print_json((await manager.key_stats(args.key)).to_dict())
    elif args.model:
        _print_json(await manager.model_stats(args.model))
    elif args.export:
        _print_json(await manager.export_stats())
    else:
        print(await manager.stats_report(), end="")
    return 0


async def cmd_health(manager: CacheManager, args: argparse.Namespace) -> int:
    report = await manager.health()
    _print_json(report.to_dict())
    return 0 if report.status != HealthStatus.CRITICAL else 1


async def cmd_warm(manager: CacheManager, args: argparse.Namespace) -> int:
    factory = load_callable(args.target)
    requests = factory(manager)
    if inspect.isawaitable(requests):
        requests = await requests

    summary = await manager.warm(requests)
    _print_json(summary)
    return 0 if summary["failed"] == 0 else 1


COMMANDS = {
    "clear": cmd_clear,
    "stats": cmd_stats,
    "health": cmd_health,
    "warm": cmd_warm,
}


# =============================================================================
# Entry point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cache-magic", description="Cache-aside layer operations")
    parser.add_argument("--driver", choices=("memory", "file", "redis"), help="Override CACHE_MAGIC_DRIVER")
    sub = parser.add_subparsers(dest="command", required=True)

    clear = sub.add_parser("clear", help="Invalidate cached entries")
    clear.add_argument("--tags", nargs="+", metavar="TAG", help="Flush entries carrying any of these tags")
    clear.add_argument("--key", help="Forget one stored key")
    clear.add_argument("--model", help="Flush every entry of a model type")
    clear.add_argument("--all", action="store_true", help="Remove every entry of the store")
    clear.add_argument("--stats", action="store_true", help="Reset global statistics")

    stats = sub.add_parser("stats", help="Show cache statistics")
    group = stats.add_mutually_exclusive_group()
    group.add_argument("--key", help="Per-key statistics (detailed mode)")
    group.add_argument("--model", help="Per-model statistics")
    group.add_argument("--export", action="store_true", help="Full statistics as JSON")
    group.add_argument("--reset", action="store_true", help="Reset global statistics")

    sub.add_parser("health", help="Run health checks")

    warm = sub.add_parser("warm", help="Precompute entries")
    warm.add_argument("target", help="module:callable returning WarmRequest objects")

    return parser


async def run(args: argparse.Namespace) -> int:
    set_correlation_id(f"cli-{args.command}-{uuid.uuid4().hex[:8]}")
    settings = get_settings()
    if args.driver:
        settings = settings.model_copy(update={"DRIVER": args.driver})

    async with CacheManager(settings) as manager:
        return await COMMANDS[args.command](manager, args)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(stream=sys.stderr)

    try:
        return asyncio.run(run(args))
    except CacheMagicError as e:
        logger.error("Command failed", command=args.command, **e.to_dict())
        print(f"[X] {e.message}", file=sys.stderr)
        return 1
    except (ImportError, AttributeError, ValueError) as e:
        print(f"[X] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
