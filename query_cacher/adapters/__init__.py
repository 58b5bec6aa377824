"""
Adapters package.

Boundaries the caching core consumes, with concrete implementations:

- CacheStore / RedisCacheStore: get, set with TTL, delete
- DataSource / PostgresDataSource: reads over registered collections

Adapters never swallow errors from the systems they wrap.
"""

from .cache_store import CacheStore, RedisCacheStore
from .data_source import DataSource
from .postgres_source import PostgresDataSource

__all__ = [
    "CacheStore",
    "DataSource",
    "PostgresDataSource",
    "RedisCacheStore",
]
