"""
Data-access boundary consumed by the cacher.
"""

from typing import Any, Dict, List, Optional, Protocol

Criteria = Optional[Dict[str, Any]]


class DataSource(Protocol):
    """
    Read operations the cacher can front.

    Results may be plain values, mappings, lists of mappings, or Nameable
    rows (anything exposing `as_plain()`); the cacher converts them to plain
    data before caching.
    """

    async def find_one(self, collection: str, criteria: Criteria = None) -> Any:
        ...

    async def find_all(self, collection: str, criteria: Criteria = None) -> List[Any]:
        ...

    async def find_and_count(self, collection: str, criteria: Criteria = None) -> Dict[str, Any]:
        ...

    async def count(self, collection: str, criteria: Criteria = None) -> int:
        ...

    async def sum(self, collection: str, field: str, criteria: Criteria = None) -> Any:
        ...

    async def max(self, collection: str, field: str, criteria: Criteria = None) -> Any:
        ...

    async def min(self, collection: str, field: str, criteria: Criteria = None) -> Any:
        ...

    async def query(self, sql: str) -> List[Any]:
        ...
