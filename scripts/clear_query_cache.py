#!/usr/bin/env python3
"""
Print or delete the cache entry for one query.

Computes the same key a QueryCacher would for the given collection, operation
and JSON criteria, then deletes it from Redis unless --dry-run is given.
Criteria containing operator keys cannot be expressed in JSON; clear those
from application code with QueryCacher.clear_cache.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Optional
import sys

from query_cacher.adapters.cache_store import RedisCacheStore
from query_cacher.caching.cacher import FIELD_OPERATIONS, CacheOptions, Operation, QueryCacher
from query_cacher.shared.config import get_config
from query_cacher.shared.logging import configure_logging

# Entries are only deleted here, so the TTL is never used
_UNUSED_TTL = 1


def build_cacher(store: Any, *, collection: Optional[str], prefix: str) -> QueryCacher:
    options = CacheOptions.build(ttl=_UNUSED_TTL, collection=collection, prefix=prefix)
    return QueryCacher(source=None, store=store, options=options)


async def clear(
    *,
    redis_url: str,
    collection: Optional[str],
    operation: str,
    field: Optional[str],
    criteria: Any,
    prefix: str,
    dry_run: bool,
) -> str:
    """Delete the entry and return its key."""
    store = RedisCacheStore.from_config(get_config(redis_url=redis_url))
    cacher = build_cacher(store, collection=collection, prefix=prefix)
    op = Operation(operation)

    if dry_run:
        args = (field, criteria) if op in FIELD_OPERATIONS else (criteria,)
        return cacher.cache_key(op, *args)

    try:
        return await cacher.clear_cache(criteria, operation=op, field=field)
    finally:
        await store.stop()


def _load_criteria(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    if raw.startswith("@"):
        raw = Path(raw[1:]).read_text()
    return json.loads(raw)


def _parse_args() -> argparse.Namespace:
    config = get_config()
    parser = argparse.ArgumentParser(description="Print or delete the cache entry for one query.")
    parser.add_argument("--redis-url", default=config.redis_url, help="Redis connection URL")
    parser.add_argument("--prefix", default=config.key_prefix, help="Cache key prefix")
    parser.add_argument("--collection", default=None, help="Collection name (omit for raw queries)")
    parser.add_argument("--operation", required=True, choices=[op.value for op in Operation], help="Cached operation")
    parser.add_argument("--field", default=None, help="Field for sum/max/min")
    parser.add_argument("--criteria", default=None, help="JSON criteria, or @path to a JSON file; SQL text for query")
    parser.add_argument("--dry-run", action="store_true", help="Print the key without deleting it")
    parser.add_argument("--log-level", default=config.log_level, help="Log level")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("cacher", args.log_level)
    try:
        criteria = args.criteria if args.operation == Operation.QUERY.value else _load_criteria(args.criteria)
        key = asyncio.run(
            clear(
                redis_url=args.redis_url,
                collection=args.collection,
                operation=args.operation,
                field=args.field,
                criteria=criteria,
                prefix=args.prefix,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-clear] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[cache-clear] DRY RUN - no Redis deletes executed")
    print(key)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
