"""
Conversion of data-source results into JSON-safe plain data.

Cached payloads and freshly computed results must have the same shape, so
every miss-path result passes through `to_plain` before it is stored and
returned.
"""

import dataclasses
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

import asyncpg
from pydantic import BaseModel

from ..models import Nameable


def to_plain(value: Any) -> Any:
    """Recursively convert `value` into dicts, lists and JSON scalars."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value

    as_plain = getattr(value, "as_plain", None)
    if callable(as_plain):
        return to_plain(as_plain())
    if isinstance(value, Nameable):
        return value.model_name

    if isinstance(value, BaseModel):
        return to_plain(value.model_dump())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_plain(dataclasses.asdict(value))
    if isinstance(value, asyncpg.Record):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(item) for item in value]

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return _decimal_to_number(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")

    return str(value)


def _decimal_to_number(value: Decimal) -> Any:
    if value.is_finite() and value == value.to_integral_value():
        return int(value)
    return float(value)
