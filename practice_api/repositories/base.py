from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from practice_api.isolation import (
    BulkBatch,
    IsolationGuard,
    OperationKind,
    Pipeline,
    PointFilter,
    TenantScope,
)
from practice_api.isolation.scope import ScopeLike
from practice_api.storage import BulkWriteResult, DeleteResult, SqlAlchemyDriver, UpdateResult
from practice_api.storage.driver import SortSpec

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

Filter = Optional[Mapping[str, Any]]


class GuardedRepository(Generic[ModelT]):
    """
    Tenant-guarded data access for one entity type.

    Every entry point runs the isolation guard before touching storage and
    passes its input to the driver untouched. Cross-tenant system operations
    use the `*_without_scope` methods or `bypass=True`; both are logged.

    Application code should only ever hold one of these, never the session.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelT], guard: IsolationGuard) -> None:
        self.model = model
        self.guard = guard
        self.driver = SqlAlchemyDriver(session)

    @property
    def entity(self) -> str:
        return self.model.__name__

    def _check(self, operation: Any, method: str, bypass: bool) -> None:
        self.guard.check(self.model, operation, method=method, bypass=bypass)

    # Point reads
    async def find(
        self,
        filter: Filter,
        *,
        sort: SortSpec = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
        bypass: bool = False,
    ) -> List[ModelT]:
        self._check(PointFilter(filter, OperationKind.READ), "find", bypass)
        return await self.driver.find(self.model, filter, sort=sort, limit=limit, skip=skip)

    async def find_one(self, filter: Filter, *, sort: SortSpec = None, bypass: bool = False) -> Optional[ModelT]:
        self._check(PointFilter(filter, OperationKind.READ), "find_one", bypass)
        return await self.driver.find_one(self.model, filter, sort=sort)

    async def count(self, filter: Filter, *, bypass: bool = False) -> int:
        self._check(PointFilter(filter, OperationKind.READ), "count", bypass)
        return await self.driver.count(self.model, filter)

    # Point writes
    async def insert_one(self, document: Mapping[str, Any], *, bypass: bool = False) -> ModelT:
        self._check(PointFilter(document, OperationKind.WRITE), "insert_one", bypass)
        return await self.driver.insert_one(self.model, document)

    async def update_one(self, filter: Filter, update: Mapping[str, Any], *, bypass: bool = False) -> UpdateResult:
        self._check(PointFilter(filter, OperationKind.WRITE), "update_one", bypass)
        return await self.driver.update_one(self.model, filter, update)

    async def update_many(self, filter: Filter, update: Mapping[str, Any], *, bypass: bool = False) -> UpdateResult:
        self._check(PointFilter(filter, OperationKind.WRITE), "update_many", bypass)
        return await self.driver.update_many(self.model, filter, update)

    async def replace_one(self, filter: Filter, replacement: Mapping[str, Any], *, bypass: bool = False) -> UpdateResult:
        self._check(PointFilter(filter, OperationKind.WRITE), "replace_one", bypass)
        return await self.driver.replace_one(self.model, filter, replacement)

    async def delete_one(self, filter: Filter, *, bypass: bool = False) -> DeleteResult:
        self._check(PointFilter(filter, OperationKind.WRITE), "delete_one", bypass)
        return await self.driver.delete_one(self.model, filter)

    async def delete_many(self, filter: Filter, *, bypass: bool = False) -> DeleteResult:
        self._check(PointFilter(filter, OperationKind.WRITE), "delete_many", bypass)
        return await self.driver.delete_many(self.model, filter)

    # Aggregation and bulk
    async def aggregate(self, pipeline: Sequence[Any], *, bypass: bool = False) -> List[Dict[str, Any]]:
        self._check(Pipeline(pipeline), "aggregate", bypass)
        return await self.driver.aggregate(self.model, pipeline)

    async def bulk_write(self, operations: Sequence[Any], *, bypass: bool = False) -> BulkWriteResult:
        """Validate the whole batch first; if any sub-operation is unscoped nothing is executed."""
        self._check(BulkBatch(operations), "bulk_write", bypass)
        return await self.driver.bulk_write(self.model, operations)

    # Scoped lookup
    # PUBLIC_INTERFACE
    async def find_by_id_within_scope(self, id: Any, scope: ScopeLike) -> Optional[ModelT]:
        """
        Fetch a record by id, but only if it belongs to `scope`.

        Returns None both when the id does not exist and when it belongs to
        another tenant, so callers cannot discover other tenants' ids.

        Raises:
            InvalidScopeArgument: if `scope` is None, empty, or not exactly one tenant.
        """
        tenant = TenantScope.coerce(scope)
        return await self.find_one({"id": id, **tenant.as_filter()})

    # Bypass facade: verified system operations only
    async def find_without_scope(
        self, filter: Filter, *, sort: SortSpec = None, limit: Optional[int] = None, skip: Optional[int] = None
    ) -> List[ModelT]:
        return await self.find(filter, sort=sort, limit=limit, skip=skip, bypass=True)

    async def find_one_without_scope(self, filter: Filter, *, sort: SortSpec = None) -> Optional[ModelT]:
        return await self.find_one(filter, sort=sort, bypass=True)

    async def count_without_scope(self, filter: Filter) -> int:
        return await self.count(filter, bypass=True)

    async def insert_one_without_scope(self, document: Mapping[str, Any]) -> ModelT:
        return await self.insert_one(document, bypass=True)

    async def update_one_without_scope(self, filter: Filter, update: Mapping[str, Any]) -> UpdateResult:
        return await self.update_one(filter, update, bypass=True)

    async def update_many_without_scope(self, filter: Filter, update: Mapping[str, Any]) -> UpdateResult:
        return await self.update_many(filter, update, bypass=True)

    async def replace_one_without_scope(self, filter: Filter, replacement: Mapping[str, Any]) -> UpdateResult:
        return await self.replace_one(filter, replacement, bypass=True)

    async def delete_one_without_scope(self, filter: Filter) -> DeleteResult:
        return await self.delete_one(filter, bypass=True)

    async def delete_many_without_scope(self, filter: Filter) -> DeleteResult:
        return await self.delete_many(filter, bypass=True)

    async def aggregate_without_scope(self, pipeline: Sequence[Any]) -> List[Dict[str, Any]]:
        return await self.aggregate(pipeline, bypass=True)
