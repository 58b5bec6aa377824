"""
Criteria normalization for cache keys.

`normalize` turns an arbitrary value graph into a fresh, finite, acyclic tree
of plain values that `json` can encode deterministically:

- mapping keys become strings, string keys first and non-string keys after,
  each group in insertion order
- every composite seen earlier in the same pass becomes DUPLICATE_MARKER,
  whether the repeat is a true cycle or just a second alias
- Nameable values become their model name

The walk keeps its own stack, so nesting depth is bounded by memory rather
than the interpreter's recursion limit. The input graph is never modified.
"""

from typing import Any, Iterator, List, Mapping, Optional, Set, Tuple

from ..models import Nameable

# Stands in for any composite already visited during one normalization pass
DUPLICATE_MARKER = "[Duplicate]"

# Stands in for a Nameable value that declares no name
UNNAMED_MODEL = "[model]"

# Output container still being filled, and the (slot, child) pairs left to visit
_Pending = Tuple[Any, Iterator[Tuple[Any, Any]]]


def normalize(value: Any) -> Any:
    """Return a canonical, cycle-free copy of `value`."""
    seen: Set[int] = set()
    root, pending = _enter(value, seen)
    stack: List[_Pending] = [pending] if pending else []

    while stack:
        target, children = stack[-1]
        step = next(children, None)
        if step is None:
            stack.pop()
            continue

        slot, child = step
        result, pending = _enter(child, seen)
        if isinstance(target, list):
            target.append(result)
        else:
            target[slot] = result
        if pending:
            stack.append(pending)

    return root


def _enter(value: Any, seen: Set[int]) -> Tuple[Any, Optional[_Pending]]:
    """Normalize `value` one level deep; composites come back empty with their children."""
    if value is None or isinstance(value, str):
        return value, None
    if isinstance(value, (list, tuple)):
        return _enter_sequence(value, id(value), seen)
    if isinstance(value, (set, frozenset)):
        return _enter_sequence(sorted(value, key=repr), id(value), seen)
    if isinstance(value, (Mapping, Nameable)):
        return _enter_keyed(value, seen)
    return value, None


def _enter_sequence(items: Any, identity: int, seen: Set[int]) -> Tuple[Any, Optional[_Pending]]:
    if identity in seen:
        return DUPLICATE_MARKER, None
    seen.add(identity)

    normalized: List[Any] = []
    return normalized, (normalized, ((None, item) for item in items))


def _enter_keyed(value: Any, seen: Set[int]) -> Tuple[Any, Optional[_Pending]]:
    if id(value) in seen:
        return DUPLICATE_MARKER, None
    seen.add(id(value))

    if isinstance(value, Nameable):
        return value.model_name or UNNAMED_MODEL, None

    normalized = {}
    return normalized, (normalized, ((str(key), value[key]) for key in _ordered_keys(value)))


def _ordered_keys(value: Mapping) -> List[Any]:
    keys = list(value.keys())
    string_keys = [key for key in keys if type(key) is str]
    tag_keys = [key for key in keys if type(key) is not str]
    return string_keys + tag_keys
