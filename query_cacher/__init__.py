"""
Read-through Redis cache for data-access queries.

Structure:
- query_cacher.caching: key normalization, serialization and the QueryCacher.
- query_cacher.adapters: cache store and data source boundaries, Redis and
  PostgreSQL implementations.
- query_cacher.models: Nameable capability, collections, rows and operators.
- query_cacher.shared: configuration, logging, metrics and errors.
"""

from .caching import CacheOptions, CallOutcome, Operation, QueryCacher
from .models import Collection, Nameable, Op, Row

__all__ = [
    "CacheOptions",
    "CallOutcome",
    "Collection",
    "Nameable",
    "Op",
    "Operation",
    "QueryCacher",
    "Row",
]
