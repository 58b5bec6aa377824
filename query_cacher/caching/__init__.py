"""
Caching package.

Normalizes query arguments into deterministic keys and serves repeated reads
from the cache store. Entries expire by TTL or are removed by explicit clears;
writes to the underlying data source do not invalidate anything.
"""

from .cacher import CacheOptions, CallOutcome, Operation, QueryCacher
from .key_serializer import build_cache_key, serialize_key
from .normalizer import DUPLICATE_MARKER, normalize
from .plain import to_plain

__all__ = [
    "CacheOptions",
    "CallOutcome",
    "DUPLICATE_MARKER",
    "Operation",
    "QueryCacher",
    "build_cache_key",
    "normalize",
    "serialize_key",
    "to_plain",
]
