"""
Compilation of aggregation pipelines into a single SQLAlchemy SELECT.

Supported stages: $match, $group, $sort, $limit, $skip, $project, $count.
Stages are applied in order; when a stage cannot be expressed on the current
statement (e.g. $match after $group or $limit) the statement so far becomes a
subquery and the stage is applied on top of it.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select, Table, func, null, select

from .errors import FilterError, PipelineError
from .filters import compile_filter, resolve_column

GROUP_KEY = "_id"


class PipelineCompiler:
    """Builds a SELECT for one pipeline against one table."""

    def __init__(self, table: Table) -> None:
        self.table = table
        self.source: Any = table
        self.stmt: Select = select(*table.c)
        self.depth = 0
        self.pristine = True
        self.grouped = False
        self.limited = False
        self.offset = False
        self.order: List[Tuple[str, int]] = []

    def compile(self, pipeline: Sequence[Any]) -> Select:
        if isinstance(pipeline, (str, bytes, Mapping)) or not isinstance(pipeline, Sequence):
            raise PipelineError("Pipeline must be a list of stages")
        for index, stage in enumerate(pipeline):
            if not isinstance(stage, Mapping) or len(stage) != 1:
                raise PipelineError(f"Stage {index} must be a mapping with exactly one operator")
            (operator, spec), = stage.items()
            handler = getattr(self, "_stage_" + str(operator).lstrip("$"), None)
            if not str(operator).startswith("$") or handler is None:
                raise PipelineError(f"Unsupported pipeline stage {index}: {operator!r}")
            try:
                handler(spec)
            except FilterError as exc:
                raise PipelineError(f"Stage {index} ({operator}): {exc}") from exc
            self.pristine = False
        return self.stmt

    # Helpers
    @property
    def columns(self):
        return self.stmt.selected_columns

    def _rebase(self) -> None:
        """Wrap the statement so far in a subquery and select everything from it."""
        source = self.source = self.stmt.subquery(f"stage_{self.depth}")
        self.depth += 1
        self.stmt = select(*source.c)
        self.order = [(name, direction) for name, direction in self.order if name in source.c]
        if self.order:
            self.stmt = self.stmt.order_by(*self._order_clauses(self.order))
        self.grouped = self.limited = self.offset = False

    def _order_clauses(self, order: List[Tuple[str, int]]):
        clauses = []
        for name, direction in order:
            column = resolve_column(self.columns, name)
            clauses.append(column.desc() if direction < 0 else column.asc())
        return clauses

    # Stages
    def _stage_match(self, spec: Any) -> None:
        if self.grouped or self.limited or self.offset:
            self._rebase()
        self.stmt = self.stmt.where(*compile_filter(self.columns, spec))

    def _stage_group(self, spec: Any) -> None:
        if not isinstance(spec, Mapping) or GROUP_KEY not in spec:
            raise PipelineError("$group requires an _id expression")
        if not self.pristine:
            self._rebase()
        columns = self.columns
        key = spec[GROUP_KEY]
        keys = []
        outputs = []
        if key is None:
            outputs.append(null().label(GROUP_KEY))
        elif isinstance(key, str):
            column = resolve_column(columns, key)
            keys.append(column)
            outputs.append(column.label(GROUP_KEY))
        elif isinstance(key, Mapping) and key:
            for name, ref in key.items():
                column = resolve_column(columns, _field_ref(ref))
                keys.append(column)
                outputs.append(column.label(f"{GROUP_KEY}.{name}"))
        else:
            raise PipelineError("$group _id must be null, a $field reference or a mapping of them")

        for name, accumulator in spec.items():
            if name == GROUP_KEY:
                continue
            outputs.append(_accumulator(columns, accumulator).label(name))

        stmt = select(*outputs).select_from(self.source)
        self.stmt = stmt.group_by(*keys) if keys else stmt
        self.order = []
        self.grouped = True

    def _stage_sort(self, spec: Any) -> None:
        if not isinstance(spec, Mapping) or not spec:
            raise PipelineError("$sort requires a mapping of field -> 1 | -1")
        order = []
        for name, direction in spec.items():
            if direction not in (1, -1):
                raise PipelineError(f"$sort direction for {name!r} must be 1 or -1")
            order.append((name, direction))
        if self.limited or self.offset:
            self._rebase()
        self.stmt = self.stmt.order_by(None).order_by(*self._order_clauses(order))
        self.order = order

    def _stage_limit(self, spec: Any) -> None:
        count = _non_negative_int("$limit", spec)
        if self.limited:
            self._rebase()
        self.stmt = self.stmt.limit(count)
        self.limited = True

    def _stage_skip(self, spec: Any) -> None:
        count = _non_negative_int("$skip", spec)
        if self.limited or self.offset:
            self._rebase()
        self.stmt = self.stmt.offset(count)
        self.offset = True

    def _stage_project(self, spec: Any) -> None:
        if not isinstance(spec, Mapping) or not spec:
            raise PipelineError("$project requires a non-empty mapping")
        if self.grouped:
            self._rebase()
        columns = self.columns
        includes = {k: v for k, v in spec.items() if v not in (0, False)}
        excludes = [k for k, v in spec.items() if v in (0, False)]

        selected = []
        if includes:
            if "id" in columns and "id" not in spec:
                selected.append(columns["id"])
            for name, value in includes.items():
                if isinstance(value, str) and value.startswith("$"):
                    selected.append(resolve_column(columns, value).label(name))
                elif value in (1, True):
                    selected.append(resolve_column(columns, name))
                else:
                    raise PipelineError(f"$project value for {name!r} must be 0, 1 or a $field reference")
        else:
            for name in excludes:
                resolve_column(columns, name)
            selected = [c for c in columns if c.key not in excludes]
        if not selected:
            raise PipelineError("$project removed every field")
        self.stmt = self.stmt.with_only_columns(*selected)

    def _stage_count(self, spec: Any) -> None:
        if not isinstance(spec, str) or not spec or spec.startswith("$"):
            raise PipelineError("$count requires a non-empty output field name")
        source = self.source = self.stmt.subquery(f"stage_{self.depth}")
        self.depth += 1
        self.stmt = select(func.count().label(spec)).select_from(source)
        self.order = []
        self.grouped = True
        self.limited = self.offset = False


def _field_ref(ref: Any) -> str:
    if not isinstance(ref, str) or not ref.startswith("$"):
        raise PipelineError(f"Expected a $field reference, got {ref!r}")
    return ref


def _non_negative_int(stage: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise PipelineError(f"{stage} requires a non-negative integer")
    return value


def _accumulator(columns: Any, accumulator: Any):
    if not isinstance(accumulator, Mapping) or len(accumulator) != 1:
        raise PipelineError("Accumulators must be a mapping with exactly one operator")
    (op, arg), = accumulator.items()
    if op == "$count":
        return func.count()
    if op == "$sum":
        if isinstance(arg, (int, float)) and not isinstance(arg, bool):
            return func.count() if arg == 1 else func.count() * arg
        return func.coalesce(func.sum(resolve_column(columns, _field_ref(arg))), 0)
    if op in ("$avg", "$min", "$max"):
        column = resolve_column(columns, _field_ref(arg))
        return {"$avg": func.avg, "$min": func.min, "$max": func.max}[op](column)
    raise PipelineError(f"Unsupported accumulator: {op!r}")


# PUBLIC_INTERFACE
def compile_pipeline(table: Table, pipeline: Sequence[Any]) -> Select:
    """Compile an aggregation pipeline against `table` into a SELECT statement."""
    return PipelineCompiler(table).compile(pipeline)


def nest_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn `_id.<name>` columns from compound group keys back into a nested `_id` mapping."""
    document: Dict[str, Any] = {}
    for key, value in row.items():
        head, dot, tail = str(key).partition(".")
        if dot and head == GROUP_KEY:
            nested: Optional[Dict[str, Any]] = document.setdefault(GROUP_KEY, {})
            nested[tail] = value  # type: ignore[index]
        else:
            document[key] = value
    return document
