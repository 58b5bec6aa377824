"""
Shared fixtures for query cacher tests.
"""

from typing import Dict, Optional, Tuple, Union
from unittest.mock import AsyncMock

import pytest

from query_cacher.models import Collection, Row


class InMemoryStore:
    """Dict-backed CacheStore double that records TTLs."""

    def __init__(self):
        self.data: Dict[str, Union[bytes, str]] = {}
        self.ttls: Dict[str, int] = {}
        self.get_calls = 0
        self.set_calls = 0
        self.deleted = []

    async def get(self, key: str) -> Optional[Union[bytes, str]]:
        self.get_calls += 1
        return self.data.get(key)

    async def set(self, key: str, value: Union[bytes, str], ttl_seconds: int) -> None:
        self.set_calls += 1
        self.data[key] = value.encode("utf-8") if isinstance(value, str) else value
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.data.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def store():
    """In-memory cache store."""
    return InMemoryStore()


@pytest.fixture
def collections() -> Tuple[Collection, Collection]:
    """Two mutually associated collections, as a real schema would declare."""
    entity = Collection("entity", table="entities")
    entity2 = Collection("entity2", table="entity2s")
    entity.has_many(entity2, foreign_key="entity_id")
    entity2.belongs_to(entity, foreign_key="entity_id")
    return entity, entity2


@pytest.fixture
def entity_row(collections):
    """A loaded entity row with one included child row."""
    entity, entity2 = collections
    row = Row(entity, {"id": 1, "name": "Test Instance"})
    row.related["entity2s"] = [Row(entity2, {"id": 1, "entity_id": 1})]
    return row


@pytest.fixture
def source(entity_row):
    """Data source double whose operations are AsyncMocks."""
    mock = AsyncMock()
    mock.find_one.return_value = entity_row
    mock.find_all.return_value = [entity_row]
    mock.find_and_count.return_value = {"rows": [entity_row], "count": 1}
    mock.count.return_value = 1
    mock.sum.return_value = 1
    mock.max.return_value = 1
    mock.min.return_value = 1
    mock.query.return_value = [{"id": 1, "name": "Test Instance"}]
    return mock
