"""
Translation of document-style filters and update documents into SQLAlchemy
expressions.

Filters look like `{"firm_id": "F1", "status": {"$in": ["paid", "sent"]}}`.
Top-level keys are ANDed; `$and`, `$or` and `$nor` take lists of filters.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import ColumnElement, and_, false, not_, or_, true
from sqlalchemy.sql.expression import ColumnClause

from .errors import FilterError

_COMPARISONS: Dict[str, Callable[[Any, Any], ColumnElement[bool]]] = {
    "$eq": lambda col, v: col.is_(None) if v is None else col == v,
    "$ne": lambda col, v: col.is_not(None) if v is None else or_(col != v, col.is_(None)),
    "$gt": lambda col, v: col > v,
    "$gte": lambda col, v: col >= v,
    "$lt": lambda col, v: col < v,
    "$lte": lambda col, v: col <= v,
}


def resolve_column(columns: Any, name: str) -> ColumnClause:
    """Look up `name` in a column collection, accepting `$field` references."""
    if not isinstance(name, str):
        raise FilterError(f"Field names must be strings, got {name!r}")
    key = name[1:] if name.startswith("$") else name
    try:
        return columns[key]
    except KeyError:
        raise FilterError(f"Unknown field: {key!r}") from None


# PUBLIC_INTERFACE
def compile_filter(columns: Any, filter: Optional[Mapping[str, Any]]) -> List[ColumnElement[bool]]:
    """
    Compile a filter document into a list of boolean clauses (implicitly ANDed).

    Parameters:
        columns: column collection to resolve field names against (table.c or subquery.c)
        filter: the filter document; None or {} yields no clauses
    Raises:
        FilterError: for unknown fields or operators
    """
    if filter is None:
        return []
    if not isinstance(filter, Mapping):
        raise FilterError(f"Filter must be a mapping, got {type(filter).__name__}")

    clauses: List[ColumnElement[bool]] = []
    for key, value in filter.items():
        if key in ("$and", "$or", "$nor"):
            clauses.append(_logical(columns, key, value))
        elif str(key).startswith("$"):
            raise FilterError(f"Unsupported top-level operator: {key!r}")
        else:
            clauses.append(_field_clause(resolve_column(columns, key), value))
    return clauses


def _logical(columns: Any, op: str, value: Any) -> ColumnElement[bool]:
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence) or not value:
        raise FilterError(f"{op} expects a non-empty list of filters")
    branches = [and_(true(), *compile_filter(columns, sub)) for sub in value]
    if op == "$and":
        return and_(*branches)
    if op == "$or":
        return or_(*branches)
    return not_(or_(*branches))


def _field_clause(column: ColumnClause, value: Any) -> ColumnElement[bool]:
    if isinstance(value, Mapping) and value and all(str(k).startswith("$") for k in value):
        return and_(*[_operator_clause(column, op, arg) for op, arg in value.items()])
    if value is None:
        return column.is_(None)
    return column == value


def _operator_clause(column: ColumnClause, op: str, arg: Any) -> ColumnElement[bool]:
    if op in _COMPARISONS:
        return _COMPARISONS[op](column, arg)
    if op in ("$in", "$nin"):
        if isinstance(arg, (str, bytes, Mapping)) or not isinstance(arg, Sequence):
            raise FilterError(f"{op} expects a list")
        values = list(arg)
        if not values:
            return false() if op == "$in" else true()
        clause = column.in_(values)
        return clause if op == "$in" else or_(not_(clause), column.is_(None))
    if op == "$exists":
        return column.is_not(None) if arg else column.is_(None)
    raise FilterError(f"Unsupported operator: {op!r}")


# PUBLIC_INTERFACE
def compile_update(columns: Any, update: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Compile an update document into a `values()` mapping.

    Supports `$set`, `$unset` and `$inc`; a mapping without operators is treated as `$set`.
    The primary key cannot be changed.
    """
    if not isinstance(update, Mapping) or not update:
        raise FilterError("Update must be a non-empty mapping")

    operators = [k for k in update if str(k).startswith("$")]
    if operators and len(operators) != len(update):
        raise FilterError("Update cannot mix operators and plain fields")
    if not operators:
        update = {"$set": update}

    values: Dict[str, Any] = {}
    for op, fields in update.items():
        if not isinstance(fields, Mapping):
            raise FilterError(f"{op} expects a mapping of fields")
        for name, arg in fields.items():
            column = resolve_column(columns, name)
            if column.primary_key:
                raise FilterError(f"Field {name!r} is the primary key and cannot be updated")
            if op == "$set":
                values[column.key] = arg
            elif op == "$unset":
                values[column.key] = None
            elif op == "$inc":
                values[column.key] = column + arg
            else:
                raise FilterError(f"Unsupported update operator: {op!r}")
    return values
