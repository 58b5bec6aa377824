"""
Read-through query cache.

A QueryCacher fronts one collection of a DataSource. Each call computes a key
from the operation and its normalized arguments, returns the stored payload on
a hit, and otherwise runs the data-source operation, converts the result to
plain data and stores it with the configured TTL. Empty results are never
stored.

Store and data-source errors propagate unchanged, including failures of the
miss-path write. Concurrent misses on one key may both compute and both
write; the last write wins.
"""

import json
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, StrictInt, ValidationError as PydanticValidationError, field_validator

from ..shared.errors import ConfigurationError
from ..shared.logging import get_logger
from .key_serializer import KEY_SEPARATOR, build_cache_key
from .plain import to_plain

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.cache_store import CacheStore
    from ..adapters.data_source import DataSource
    from ..shared.config import CacherConfig
    from ..shared.metrics import MetricsCollector

DEFAULT_PREFIX = "cacher"

_COLLECTION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


class Operation(str, Enum):
    """Read operations a QueryCacher can front."""
    FIND_ONE = "find_one"
    FIND_ALL = "find_all"
    FIND_AND_COUNT = "find_and_count"
    COUNT = "count"
    SUM = "sum"
    MAX = "max"
    MIN = "min"
    QUERY = "query"


FIELD_OPERATIONS = {Operation.SUM, Operation.MAX, Operation.MIN}


class CacheOptions(BaseModel):
    """Immutable per-cacher configuration."""

    model_config = ConfigDict(frozen=True)

    ttl: StrictInt
    collection: Optional[str] = None
    prefix: str = DEFAULT_PREFIX

    @field_validator("ttl")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("ttl must be a positive number of seconds")
        return value

    @field_validator("collection")
    @classmethod
    def _valid_collection(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _COLLECTION_NAME.match(value):
            raise ValueError(f"invalid collection name {value!r}")
        return value

    @field_validator("prefix")
    @classmethod
    def _valid_prefix(cls, value: str) -> str:
        if not value or KEY_SEPARATOR in value:
            raise ValueError(f"prefix must be non-empty and must not contain {KEY_SEPARATOR!r}")
        return value

    @classmethod
    def build(cls, **values: Any) -> "CacheOptions":
        """Construct options, raising ConfigurationError when invalid."""
        try:
            return cls(**values)
        except PydanticValidationError as exc:
            raise ConfigurationError(
                "Invalid cache options",
                {"errors": [error["msg"] for error in exc.errors()]}
            ) from exc

    @classmethod
    def from_config(cls, config: "CacherConfig", *, collection: Optional[str] = None,
                    ttl: Optional[int] = None) -> "CacheOptions":
        ttl = ttl if ttl is not None else config.default_ttl
        if ttl is None:
            raise ConfigurationError("No TTL configured", {"collection": collection})
        return cls.build(ttl=ttl, collection=collection, prefix=config.key_prefix)


@dataclass(frozen=True)
class CallOutcome:
    """Result of one cached call."""
    key: str
    hit: bool
    value: Any


class QueryCacher:
    """Get-or-compute cache in front of one DataSource collection."""

    def __init__(
        self,
        source: "DataSource",
        store: "CacheStore",
        options: CacheOptions,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if not isinstance(options, CacheOptions):
            raise ConfigurationError("options must be CacheOptions", {"type": type(options).__name__})
        self.source = source
        self.store = store
        self.options = options
        self.metrics = metrics
        self.logger = get_logger("cacher.query_cacher")
        self._last_call: Optional[Tuple[Operation, Tuple[Any, ...], str]] = None
        self._last_outcome: Optional[CallOutcome] = None

    @property
    def cache_hit(self) -> Optional[bool]:
        """Hit flag of the most recent call on this instance."""
        return self._last_outcome.hit if self._last_outcome else None

    def key(self) -> Optional[str]:
        """Cache key of the most recent call on this instance."""
        return self._last_call[2] if self._last_call else None

    async def find_one(self, criteria: Any = None) -> Any:
        return (await self.execute(Operation.FIND_ONE, criteria)).value

    async def find_all(self, criteria: Any = None) -> Any:
        return (await self.execute(Operation.FIND_ALL, criteria)).value

    async def find_and_count(self, criteria: Any = None) -> Any:
        return (await self.execute(Operation.FIND_AND_COUNT, criteria)).value

    async def count(self, criteria: Any = None) -> Any:
        return (await self.execute(Operation.COUNT, criteria)).value

    async def sum(self, field: str, criteria: Any = None) -> Any:
        return (await self.execute(Operation.SUM, field, criteria)).value

    async def max(self, field: str, criteria: Any = None) -> Any:
        return (await self.execute(Operation.MAX, field, criteria)).value

    async def min(self, field: str, criteria: Any = None) -> Any:
        return (await self.execute(Operation.MIN, field, criteria)).value

    async def query(self, sql: str) -> Any:
        return (await self.execute(Operation.QUERY, sql)).value

    def cache_key(self, operation: Operation, *args: Any) -> str:
        """Key for `operation` called with `args`, without touching the store."""
        operation = _as_operation(operation)
        args = self._arguments(operation, args)
        collection = self._target_collection(operation)
        arguments = list(args) if operation in FIELD_OPERATIONS else args[0]
        return build_cache_key(self.options.prefix, collection, operation.value, arguments)

    async def execute(self, operation: Operation, *args: Any) -> CallOutcome:
        """Run one cached call and return its outcome."""
        operation = _as_operation(operation)
        args = self._arguments(operation, args)
        key = self.cache_key(operation, *args)
        self._last_call = (operation, args, key)
        self._last_outcome = None
        start = time.perf_counter()

        try:
            payload = await self.store.get(key)
            found, value = self._decode(operation, key, payload)
            if found:
                outcome = CallOutcome(key=key, hit=True, value=value)
                self.logger.debug("Cache hit", key=key, operation=operation.value)
            else:
                outcome = await self._compute(operation, args, key)
        except Exception as e:
            self.logger.error("Cached call failed", key=key, operation=operation.value, error=str(e))
            self._record_error(e)
            raise

        self._last_outcome = outcome
        self._record(operation, outcome, time.perf_counter() - start)
        return outcome

    async def clear_cache(self, criteria: Any = None, *, operation: Optional[Operation] = None,
                          field: Optional[str] = None) -> str:
        """
        Delete the entry for `criteria` and return its key.

        Without `operation`, the most recent call's operation is used, and its
        field and criteria fill in whatever is not given here.
        """
        if operation is None:
            if self._last_call is None:
                raise ConfigurationError("clear_cache needs an operation when no call has been made")
            operation, last_args, _ = self._last_call
        else:
            operation, last_args = _as_operation(operation), ()

        if operation in FIELD_OPERATIONS:
            if field is None and last_args:
                field = last_args[0]
            if criteria is None and last_args:
                criteria = last_args[1]
            args = (field, criteria)
        else:
            if criteria is None and last_args:
                criteria = last_args[0]
            args = (criteria,)

        key = self.cache_key(operation, *args)
        await self.store.delete(key)
        self.logger.info("Cleared cache entry", key=key, operation=operation.value)
        self._increment("cache_clears_total", operation)
        return key

    def _target_collection(self, operation: Operation) -> Optional[str]:
        if operation is Operation.QUERY:
            return None
        if not self.options.collection:
            raise ConfigurationError("No collection configured", {"operation": operation.value})
        return self.options.collection

    def _arguments(self, operation: Operation, args: Tuple[Any, ...]) -> Tuple[Any, ...]:
        expected = 2 if operation in FIELD_OPERATIONS else 1
        if len(args) > expected:
            raise ConfigurationError(
                "Too many arguments",
                {"operation": operation.value, "expected": expected, "received": len(args)}
            )
        args = tuple(args) + (None,) * (expected - len(args))
        if operation in FIELD_OPERATIONS and not isinstance(args[0], str):
            raise ConfigurationError("Aggregates need a field name", {"operation": operation.value})
        if operation is Operation.QUERY and not isinstance(args[0], str):
            raise ConfigurationError("Raw queries need SQL text", {"operation": operation.value})
        return args

    async def _compute(self, operation: Operation, args: Tuple[Any, ...], key: str) -> CallOutcome:
        if operation is Operation.QUERY:
            result = await self.source.query(args[0])
        else:
            method = getattr(self.source, operation.value)
            result = await method(self.options.collection, *args)

        if result is None:
            self.logger.debug("Empty result, not caching", key=key, operation=operation.value)
            return CallOutcome(key=key, hit=False, value=None)

        value = to_plain(result)
        await self.store.set(key, json.dumps(value), self.options.ttl)
        self.logger.debug("Cache miss, stored result", key=key, operation=operation.value, ttl=self.options.ttl)
        self._increment("cache_writes_total", operation)
        return CallOutcome(key=key, hit=False, value=value)

    def _decode(self, operation: Operation, key: str, payload: Any) -> Tuple[bool, Any]:
        """Decode a stored payload; anything unusable counts as a miss."""
        if payload is None:
            return False, None

        try:
            if isinstance(payload, (bytes, bytearray)):
                payload = payload.decode("utf-8")
            value = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as exc:
            self.logger.warning("Discarding undecodable cached payload", key=key, error=str(exc))
            self._increment("cache_invalid_payloads_total", operation)
            return False, None

        if not _matches_shape(operation, value):
            self.logger.warning("Discarding cached payload with unexpected shape", key=key, operation=operation.value)
            self._increment("cache_invalid_payloads_total", operation)
            return False, None
        return True, value

    def _increment(self, metric_name: str, operation: Operation) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter(
                metric_name,
                collection=self.options.collection or "",
                operation=operation.value,
            )
        except Exception as exc:  # pragma: no cover - metrics failures should never break a call
            self.logger.debug("Failed to record cache metric", metric=metric_name, error=str(exc))

    def _record_error(self, error: Exception) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.record_error(type(error).__name__)
        except Exception as exc:  # pragma: no cover - metrics failures should never break a call
            self.logger.debug("Failed to record cache error", error=str(exc))

    def _record(self, operation: Operation, outcome: CallOutcome, duration: float) -> None:
        self._increment("cache_hits_total" if outcome.hit else "cache_misses_total", operation)
        if not self.metrics:
            return
        try:
            self.metrics.observe_histogram(
                "cache_lookup_duration_seconds",
                duration,
                collection=self.options.collection or "",
                operation=operation.value,
                result="hit" if outcome.hit else "miss",
            )
        except Exception as exc:  # pragma: no cover - metrics failures should never break a call
            self.logger.debug("Failed to record cache duration", error=str(exc))


def _matches_shape(operation: Operation, value: Any) -> bool:
    if operation is Operation.FIND_ONE:
        return isinstance(value, dict)
    if operation in (Operation.FIND_ALL, Operation.QUERY):
        return isinstance(value, list)
    if operation is Operation.FIND_AND_COUNT:
        return isinstance(value, dict) and isinstance(value.get("rows"), list) and "count" in value
    return not isinstance(value, (dict, list))


def _as_operation(value: Any) -> Operation:
    try:
        return Operation(value)
    except ValueError:
        raise ConfigurationError("Unknown operation", {"operation": str(value)}) from None
