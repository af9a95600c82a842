from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import Table, and_, true
from sqlalchemy.sql.elements import ColumnElement

from ..errors import InvalidFilterError

_OPERATORS = {
    "$eq": lambda column, value: column.is_(None) if value is None else column == value,
    "$ne": lambda column, value: column.is_not(None) if value is None else column != value,
    "$gt": lambda column, value: column > value,
    "$gte": lambda column, value: column >= value,
    "$lt": lambda column, value: column < value,
    "$lte": lambda column, value: column <= value,
    "$in": lambda column, value: column.in_(list(value)),
    "$nin": lambda column, value: column.not_in(list(value)),
}


def _field_condition(table: Table, field_name: str, condition: Any) -> ColumnElement:
    if field_name not in table.c:
        raise InvalidFilterError(f"Collection {table.name!r} has no field {field_name!r}")
    column = table.c[field_name]

    if not isinstance(condition, Mapping):
        return _OPERATORS["$eq"](column, condition)

    clauses = []
    for operator, value in condition.items():
        try:
            build = _OPERATORS[operator]
        except KeyError:
            raise InvalidFilterError(
                f"Unsupported filter operator {operator!r} on {table.name}.{field_name}"
            ) from None
        if operator in ("$in", "$nin") and isinstance(value, (str, bytes, Mapping)):
            raise InvalidFilterError(f"{operator} on {table.name}.{field_name} expects a list of values")
        clauses.append(build(column, value))
    if not clauses:
        raise InvalidFilterError(f"Empty condition on {table.name}.{field_name}")
    return and_(*clauses)


def build_where_clause(table: Table, where: Mapping[str, Any] | None) -> ColumnElement:
    """
    Translate a where filter into an SQLAlchemy expression.

    Plain values mean equality; mappings hold operators:

        {"displayName": "Joe"}
        {"id": {"$in": [1, 2]}, "age": {"$gte": 18}}

    Conditions on separate fields are AND-ed. Keys are processed in sorted
    order so identical filters produce identical SQL.
    """
    if not where:
        return true()
    if not isinstance(where, Mapping):
        raise InvalidFilterError(f"Filter must be a mapping, got {type(where).__name__}")
    return and_(*(_field_condition(table, name, where[name]) for name in sorted(where)))
