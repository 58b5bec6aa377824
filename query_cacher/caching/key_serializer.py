"""
Cache key serialization.
"""

import json
from datetime import date, datetime, time
from typing import Any, List, Optional, Tuple

from ..shared.errors import ValidationError
from .normalizer import normalize

KEY_SEPARATOR = ":"


def _encode_scalar(value: Any) -> str:
    """Render leaf scalars json cannot encode natively."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    kind = type(value)
    if kind.__str__ is object.__str__ and kind.__repr__ is object.__repr__:
        # Default text embeds the object's address, which differs per process
        raise ValidationError(
            "Value has no stable text form for a cache key",
            {"type": kind.__qualname__}
        )
    return str(value)


def _encode_leaf(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=_encode_scalar)


def _encode_name(key: Any) -> str:
    text = key if isinstance(key, str) else json.dumps(key)
    return json.dumps(text, ensure_ascii=False)


def serialize_key(normalized: Any) -> str:
    """
    Encode a normalized tree as compact JSON with all double quotes removed.

    Only byte-identical encodings share a cache entry, so the string-ness
    conveyed by quotes is not needed to tell keys apart. Output matches
    `json.dumps(..., separators=(",", ":"), ensure_ascii=False)` but the tree
    is walked with an explicit stack, so depth is not limited by recursion.
    """
    parts: List[str] = []
    # (literal, item): literal items are emitted verbatim, others are encoded
    stack: List[Tuple[bool, Any]] = [(False, normalized)]

    while stack:
        literal, item = stack.pop()
        if literal:
            parts.append(item)
        elif isinstance(item, dict):
            entries = list(item.items())
            stack.append((True, "}"))
            for index in range(len(entries) - 1, -1, -1):
                key, value = entries[index]
                stack.append((False, value))
                stack.append((True, _encode_name(key) + ":"))
                if index:
                    stack.append((True, ","))
            stack.append((True, "{"))
        elif isinstance(item, (list, tuple)):
            stack.append((True, "]"))
            for index in range(len(item) - 1, -1, -1):
                stack.append((False, item[index]))
                if index:
                    stack.append((True, ","))
            stack.append((True, "["))
        else:
            parts.append(_encode_leaf(item))

    return "".join(parts).replace('"', "")


def serialize_arguments(arguments: Any) -> str:
    """Normalize then serialize query arguments."""
    return serialize_key(normalize(arguments))


def build_cache_key(prefix: str, collection: Optional[str], operation: str, arguments: Any) -> str:
    """
    Full cache key: prefix, collection, operation, then serialized arguments.

    The segment count is fixed and the first three segments never contain the
    separator, so distinct operations cannot produce the same key.
    """
    return KEY_SEPARATOR.join([
        prefix,
        collection or "",
        operation,
        serialize_arguments(arguments),
    ])
