from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from sqlalchemy import Executable, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_api.isolation.operations import (
    BulkOperation,
    DeleteMany,
    DeleteOne,
    InsertOne,
    ReplaceOne,
    UpdateMany,
    UpdateOne,
    parse_bulk_operation,
)
from .errors import BulkOperationError, FilterError, StorageError
from .filters import compile_filter, compile_update, resolve_column
from .pipeline import compile_pipeline, nest_row

logger = logging.getLogger(__name__)

T = TypeVar("T")
SortSpec = Union[Mapping[str, int], Sequence[Tuple[str, int]], None]


@dataclass(frozen=True)
class UpdateResult:
    matched_count: int
    modified_count: int


@dataclass(frozen=True)
class DeleteResult:
    deleted_count: int


@dataclass(frozen=True)
class BulkWriteResult:
    inserted_count: int = 0
    matched_count: int = 0
    modified_count: int = 0
    deleted_count: int = 0
    inserted_ids: Tuple[Any, ...] = ()


class SqlAlchemyDriver:
    """
    Storage driver executing document-style operations on SQLAlchemy ORM models.

    Inputs are used exactly as given; the driver knows nothing about tenants.
    Writes commit on success and roll back on failure. Reads never commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    # Reads
    async def find(
        self,
        model: Any,
        filter: Optional[Mapping[str, Any]],
        *,
        sort: SortSpec = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> List[Any]:
        stmt = self._select(model, filter, sort)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.scalars(stmt)
        return list(result)

    async def find_one(self, model: Any, filter: Optional[Mapping[str, Any]], *, sort: SortSpec = None) -> Optional[Any]:
        stmt = self._select(model, filter, sort).limit(1)
        result = await self.scalars(stmt)
        return result.first()

    async def count(self, model: Any, filter: Optional[Mapping[str, Any]]) -> int:
        table = model.__table__
        stmt = select(func.count()).select_from(table)
        clauses = compile_filter(table.c, filter)
        if clauses:
            stmt = stmt.where(*clauses)
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def aggregate(self, model: Any, pipeline: Sequence[Any]) -> List[Dict[str, Any]]:
        stmt = compile_pipeline(model.__table__, pipeline)
        result = await self.execute(stmt)
        return [nest_row(row) for row in result.mappings()]

    # Writes
    async def insert_one(self, model: Any, document: Mapping[str, Any]) -> Any:
        entity = await self._write(lambda: self._insert(model, document))
        await self.session.refresh(entity)
        return entity

    async def update_one(self, model: Any, filter: Optional[Mapping[str, Any]], update: Mapping[str, Any]) -> UpdateResult:
        return await self._write(lambda: self._update(model, filter, update, multi=False))

    async def update_many(self, model: Any, filter: Optional[Mapping[str, Any]], update: Mapping[str, Any]) -> UpdateResult:
        return await self._write(lambda: self._update(model, filter, update, multi=True))

    async def replace_one(
        self, model: Any, filter: Optional[Mapping[str, Any]], replacement: Mapping[str, Any]
    ) -> UpdateResult:
        return await self._write(lambda: self._replace(model, filter, replacement))

    async def delete_one(self, model: Any, filter: Optional[Mapping[str, Any]]) -> DeleteResult:
        return await self._write(lambda: self._delete(model, filter, multi=False))

    async def delete_many(self, model: Any, filter: Optional[Mapping[str, Any]]) -> DeleteResult:
        return await self._write(lambda: self._delete(model, filter, multi=True))

    async def bulk_write(self, model: Any, operations: Sequence[Any]) -> BulkWriteResult:
        """
        Execute sub-operations in order within one transaction.

        Raises:
            BulkOperationError: naming the failing index; nothing from the batch is kept.
        """
        parsed: List[BulkOperation] = []
        for index, raw in enumerate(operations):
            try:
                parsed.append(parse_bulk_operation(raw))
            except (TypeError, ValueError) as exc:
                raise BulkOperationError(f"sub-operation {index} is malformed: {exc}", index) from exc
        return await self._write(lambda: self._bulk(model, parsed))

    # Internals
    async def _write(self, work: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await work()
            await self.commit()
        except Exception:
            await self.session.rollback()
            raise
        return result

    def _select(self, model: Any, filter: Optional[Mapping[str, Any]], sort: SortSpec):
        table = model.__table__
        stmt = select(model).execution_options(populate_existing=True)
        clauses = compile_filter(table.c, filter)
        if clauses:
            stmt = stmt.where(*clauses)
        if sort:
            pairs = sort.items() if isinstance(sort, Mapping) else sort
            order = []
            for name, direction in pairs:
                column = resolve_column(table.c, name)
                order.append(column.desc() if direction < 0 else column.asc())
            stmt = stmt.order_by(*order)
        return stmt

    def _build(self, model: Any, document: Mapping[str, Any]) -> Any:
        if not isinstance(document, Mapping):
            raise FilterError("Document must be a mapping")
        table = model.__table__
        unknown = [key for key in document if key not in table.c]
        if unknown:
            raise FilterError(f"Unknown field(s) for {model.__name__}: {', '.join(sorted(map(str, unknown)))}")
        return model(**document)

    async def _first_id(self, model: Any, filter: Optional[Mapping[str, Any]]) -> Optional[Any]:
        table = model.__table__
        stmt = select(table.c.id).limit(1)
        clauses = compile_filter(table.c, filter)
        if clauses:
            stmt = stmt.where(*clauses)
        result = await self.execute(stmt)
        return result.scalar_one_or_none()

    async def _insert(self, model: Any, document: Mapping[str, Any]) -> Any:
        entity = self._build(model, document)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def _update(
        self, model: Any, filter: Optional[Mapping[str, Any]], update_doc: Mapping[str, Any], *, multi: bool
    ) -> UpdateResult:
        table = model.__table__
        values = compile_update(table.c, update_doc)
        clauses = compile_filter(table.c, filter)
        if not multi:
            target = await self._first_id(model, filter)
            if target is None:
                return UpdateResult(matched_count=0, modified_count=0)
            clauses = [table.c.id == target]
        stmt = update(table).values(values)
        if clauses:
            stmt = stmt.where(*clauses)
        result = await self.execute(stmt)
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    async def _replace(
        self, model: Any, filter: Optional[Mapping[str, Any]], replacement: Mapping[str, Any]
    ) -> UpdateResult:
        table = model.__table__
        if not isinstance(replacement, Mapping):
            raise FilterError("Replacement must be a mapping")
        if any(str(key).startswith("$") for key in replacement):
            raise FilterError("Replacement document cannot contain update operators")
        unknown = [key for key in replacement if key not in table.c]
        if unknown:
            raise FilterError(f"Unknown field(s) for {model.__name__}: {', '.join(sorted(map(str, unknown)))}")
        target = await self._first_id(model, filter)
        if target is None:
            return UpdateResult(matched_count=0, modified_count=0)
        if "id" in replacement and replacement["id"] != target:
            raise FilterError("Replacement cannot change the primary key")
        values = {}
        for column in table.c:
            if column.primary_key:
                continue
            if column.key in replacement:
                values[column.key] = replacement[column.key]
            elif column.server_default is None:
                # Fields absent from the replacement revert to their scalar default, else NULL
                default = column.default
                values[column.key] = default.arg if default is not None and default.is_scalar else None
        stmt = (
            update(table)
            .where(table.c.id == target)
            .values(values)
        )
        result = await self.execute(stmt)
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    async def _delete(self, model: Any, filter: Optional[Mapping[str, Any]], *, multi: bool) -> DeleteResult:
        table = model.__table__
        clauses = compile_filter(table.c, filter)
        if not multi:
            target = await self._first_id(model, filter)
            if target is None:
                return DeleteResult(deleted_count=0)
            clauses = [table.c.id == target]
        stmt = delete(table)
        if clauses:
            stmt = stmt.where(*clauses)
        result = await self.execute(stmt)
        return DeleteResult(deleted_count=result.rowcount)

    async def _bulk(self, model: Any, operations: Sequence[BulkOperation]) -> BulkWriteResult:
        inserted_ids = []
        matched = modified = deleted = 0
        for index, op in enumerate(operations):
            try:
                if isinstance(op, InsertOne):
                    entity = await self._insert(model, op.document)
                    inserted_ids.append(entity.id)
                elif isinstance(op, (UpdateOne, ReplaceOne)):
                    if isinstance(op, ReplaceOne):
                        res = await self._replace(model, op.filter, op.replacement)
                    else:
                        res = await self._update(model, op.filter, op.update, multi=isinstance(op, UpdateMany))
                    matched += res.matched_count
                    modified += res.modified_count
                elif isinstance(op, DeleteOne):
                    res = await self._delete(model, op.filter, multi=isinstance(op, DeleteMany))
                    deleted += res.deleted_count
                else:
                    raise StorageError(f"Unsupported bulk operation {type(op).__name__}")
            except (StorageError, SQLAlchemyError) as exc:
                logger.warning("Bulk write on %s failed at sub-operation %d (%s): %s", model.__name__, index, op.kind, exc)
                raise BulkOperationError(f"sub-operation {index} ({op.kind}) failed: {exc}", index) from exc

        return BulkWriteResult(
            inserted_count=len(inserted_ids),
            matched_count=matched,
            modified_count=modified,
            deleted_count=deleted,
            inserted_ids=tuple(inserted_ids),
        )
