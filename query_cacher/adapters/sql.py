"""
SQL generation for the Postgres data source.

Criteria mappings are translated into parameterized statements for asyncpg:
identifiers are validated and double-quoted, values are bound as $n
placeholders.
"""

import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..models import Op
from ..shared.errors import ValidationError

CRITERIA_KEYS = {"where", "attributes", "order", "limit", "offset", "include"}

AGGREGATES = {"count", "sum", "max", "min"}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COMPARISONS = {
    Op.EQ: "=",
    Op.NE: "<>",
    Op.GT: ">",
    Op.GTE: ">=",
    Op.LT: "<",
    Op.LTE: "<=",
    Op.LIKE: "LIKE",
}


def quote_identifier(name: str) -> str:
    """Validate and quote a column or table name."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValidationError("Invalid identifier", {"identifier": str(name)})
    return f'"{name}"'


class _Params:
    """Accumulates bound values and hands out $n placeholders."""

    def __init__(self):
        self.values: List[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def validate_criteria(criteria: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if criteria is None:
        return {}
    if not isinstance(criteria, Mapping):
        raise ValidationError("Criteria must be a mapping", {"type": type(criteria).__name__})
    unknown = set(criteria) - CRITERIA_KEYS
    if unknown:
        raise ValidationError("Unsupported criteria keys", {"keys": sorted(str(key) for key in unknown)})
    return criteria


def _column_condition(column: str, value: Any, params: _Params) -> str:
    quoted = quote_identifier(column)
    if value is None:
        return f"{quoted} IS NULL"
    if isinstance(value, Mapping):
        parts = [_operator_condition(quoted, op, operand, params) for op, operand in value.items()]
        return " AND ".join(parts) if len(parts) == 1 else "(" + " AND ".join(parts) + ")"
    if isinstance(value, (list, tuple)):
        return f"{quoted} = ANY({params.bind(list(value))})"
    return f"{quoted} = {params.bind(value)}"


def _operator_condition(quoted: str, op: Any, operand: Any, params: _Params) -> str:
    if op in _COMPARISONS:
        return f"{quoted} {_COMPARISONS[op]} {params.bind(operand)}"
    if op is Op.IN:
        return f"{quoted} = ANY({params.bind(list(operand))})"
    if op is Op.NOT_IN:
        return f"{quoted} <> ALL({params.bind(list(operand))})"
    if op is Op.IS:
        if operand is None:
            return f"{quoted} IS NULL"
        if isinstance(operand, bool):
            return f"{quoted} IS {'TRUE' if operand else 'FALSE'}"
        raise ValidationError("Op.IS accepts None, True or False", {"operand": str(operand)})
    raise ValidationError("Unsupported operator", {"operator": str(op)})


def _where_clause(where: Mapping[Any, Any], params: _Params) -> str:
    if not isinstance(where, Mapping):
        raise ValidationError("where must be a mapping")

    conditions = []
    for key, value in where.items():
        if key is Op.AND or key is Op.OR:
            nested = [_where_clause(item, params) for item in value]
            nested = [clause for clause in nested if clause]
            if nested:
                joiner = " AND " if key is Op.AND else " OR "
                conditions.append("(" + joiner.join(nested) + ")")
        else:
            conditions.append(_column_condition(key, value, params))
    return " AND ".join(conditions)


def _order_clause(order: Sequence[Any]) -> str:
    parts = []
    for item in order:
        if isinstance(item, str):
            parts.append(quote_identifier(item))
            continue
        column, direction = item
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise ValidationError("Invalid order direction", {"direction": direction})
        parts.append(f"{quote_identifier(column)} {direction}")
    return ", ".join(parts)


def _filters(criteria: Mapping[str, Any], params: _Params) -> str:
    where = criteria.get("where")
    clause = _where_clause(where, params) if where else ""
    return f" WHERE {clause}" if clause else ""


def build_select(table: str, criteria: Optional[Mapping[str, Any]] = None, *, limit: Optional[int] = None) -> Tuple[str, List[Any]]:
    """SELECT statement for find_one/find_all. `limit` overrides the criteria's."""
    criteria = validate_criteria(criteria)
    params = _Params()

    attributes = criteria.get("attributes")
    columns = ", ".join(quote_identifier(column) for column in attributes) if attributes else "*"
    sql = f"SELECT {columns} FROM {quote_identifier(table)}" + _filters(criteria, params)

    if criteria.get("order"):
        sql += f" ORDER BY {_order_clause(criteria['order'])}"

    limit = limit if limit is not None else criteria.get("limit")
    if limit is not None:
        sql += f" LIMIT {params.bind(int(limit))}"
    if criteria.get("offset") is not None:
        sql += f" OFFSET {params.bind(int(criteria['offset']))}"

    return sql, params.values


def build_aggregate(table: str, function: str, field: Optional[str] = None,
                    criteria: Optional[Mapping[str, Any]] = None) -> Tuple[str, List[Any]]:
    """SELECT <function>(<field>) statement; count without a field counts rows."""
    if function not in AGGREGATES:
        raise ValidationError("Unsupported aggregate", {"function": function})
    criteria = validate_criteria(criteria)
    params = _Params()

    target = quote_identifier(field) if field else "*"
    sql = f"SELECT {function.upper()}({target}) AS value FROM {quote_identifier(table)}" + _filters(criteria, params)
    return sql, params.values


def build_related(table: str, column: str, keys: Sequence[Any]) -> Tuple[str, List[Any]]:
    """SELECT rows whose `column` is one of `keys`, for loading includes."""
    sql = f"SELECT * FROM {quote_identifier(table)} WHERE {quote_identifier(column)} = ANY($1)"
    return sql, [list(keys)]
