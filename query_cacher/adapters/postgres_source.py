"""
PostgreSQL data source for the query cacher.
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

import asyncpg

from ..models import Collection, Row
from ..shared.errors import ConfigurationError, ExternalServiceError, ValidationError
from ..shared.logging import get_logger
from .data_source import Criteria
from .sql import build_aggregate, build_related, build_select, validate_criteria

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..shared.config import CacherConfig


class PostgresDataSource:
    """asyncpg-backed implementation of the DataSource boundary."""

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("cacher.postgres")
        self.pool: Optional[asyncpg.Pool] = None
        self.collections: Dict[str, Collection] = {}

    @classmethod
    def from_config(cls, config: "CacherConfig") -> "PostgresDataSource":
        """Build a data source from process settings."""
        return cls(
            config.postgres_dsn,
            min_size=config.postgres_min_pool,
            max_size=config.postgres_max_pool,
            command_timeout=config.postgres_command_timeout
        )

    def register(self, *collections: Collection) -> None:
        """Make collections addressable by name."""
        for collection in collections:
            self.collections[collection.name] = collection

    async def start(self):
        """Start the connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )

            self.logger.info("PostgreSQL data source started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL data source", error=str(e))
            raise ExternalServiceError("postgres", str(e), {"code": "POSTGRES_START_FAILED"}) from e

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL data source stopped")

    async def find_one(self, collection: str, criteria: Criteria = None) -> Optional[Row]:
        rows = await self._find(self._collection(collection), criteria, limit=1)
        return rows[0] if rows else None

    async def find_all(self, collection: str, criteria: Criteria = None) -> List[Row]:
        return await self._find(self._collection(collection), criteria)

    async def find_and_count(self, collection: str, criteria: Criteria = None) -> Dict[str, Any]:
        rows = await self.find_all(collection, criteria)
        total = await self.count(collection, criteria)
        return {"rows": rows, "count": total}

    async def count(self, collection: str, criteria: Criteria = None) -> int:
        return await self._aggregate(collection, "count", None, criteria)

    async def sum(self, collection: str, field: str, criteria: Criteria = None) -> Any:
        return await self._aggregate(collection, "sum", field, criteria)

    async def max(self, collection: str, field: str, criteria: Criteria = None) -> Any:
        return await self._aggregate(collection, "max", field, criteria)

    async def min(self, collection: str, field: str, criteria: Criteria = None) -> Any:
        return await self._aggregate(collection, "min", field, criteria)

    async def query(self, sql: str) -> List[Dict[str, Any]]:
        records = await self._fetch(sql, [])
        return [dict(record) for record in records]

    def _collection(self, name: str) -> Collection:
        try:
            return self.collections[name]
        except KeyError:
            raise ConfigurationError("Unknown collection", {"collection": name}) from None

    async def _fetch(self, sql: str, params: Sequence[Any]) -> List[asyncpg.Record]:
        if self.pool is None:
            raise ConfigurationError("PostgreSQL data source is not started")
        self.logger.debug("Executing query", sql=sql, params=len(params))
        async with self.pool.acquire() as conn:
            return await conn.fetch(sql, *params)

    async def _aggregate(self, collection: str, function: str, field: Optional[str], criteria: Criteria) -> Any:
        criteria = validate_criteria(criteria)
        filters = {"where": criteria["where"]} if criteria.get("where") else None
        sql, params = build_aggregate(self._collection(collection).table_name, function, field, filters)
        records = await self._fetch(sql, params)
        return records[0]["value"] if records else None

    async def _find(self, collection: Collection, criteria: Criteria, limit: Optional[int] = None) -> List[Row]:
        criteria = validate_criteria(criteria)
        sql, params = build_select(collection.table_name, criteria, limit=limit)
        records = await self._fetch(sql, params)
        rows = [Row(collection, dict(record)) for record in records]

        for target in criteria.get("include") or []:
            await self._include(collection, rows, target)
        return rows

    async def _include(self, collection: Collection, rows: List[Row], target: Any) -> None:
        """Attach associated rows for one include target."""
        association = collection.association_for(target) if isinstance(target, Collection) else None
        if association is None:
            raise ValidationError(
                "Include target is not associated",
                {"collection": collection.name, "include": str(getattr(target, "name", target))}
            )
        if not rows:
            return

        related = association.target
        if association.kind == "has_many":
            keys = {row.values.get(collection.primary_key) for row in rows} - {None}
            grouped = defaultdict(list)
            if keys:
                sql, params = build_related(related.table_name, association.foreign_key, sorted(keys))
                for record in await self._fetch(sql, params):
                    grouped[record[association.foreign_key]].append(Row(related, dict(record)))
            for row in rows:
                row.related[association.alias] = grouped.get(row.values.get(collection.primary_key), [])
        else:
            keys = {row.values.get(association.foreign_key) for row in rows} - {None}
            by_key = {}
            if keys:
                sql, params = build_related(related.table_name, related.primary_key, sorted(keys))
                for record in await self._fetch(sql, params):
                    by_key[record[related.primary_key]] = Row(related, dict(record))
            for row in rows:
                row.related[association.alias] = by_key.get(row.values.get(association.foreign_key))
