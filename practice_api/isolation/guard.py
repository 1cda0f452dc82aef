from __future__ import annotations

import logging
from functools import singledispatchmethod
from typing import Any, Optional

from .errors import IsolationViolation
from .operations import BulkBatch, Operation, OperationKind, Pipeline, PointFilter
from .predicates import has_aggregation_scope, has_tenant_filter, validate_bulk_batch
from .registry import SkipRegistry, entity_name

logger = logging.getLogger(__name__)


class IsolationGuard:
    """
    Stateless gate evaluated before every data call on a registered entity type.

    Order of evaluation:
      1. skip-listed entity type: pass
      2. explicit bypass: pass (logged)
      3. predicate for the operation shape: pass, or raise IsolationViolation

    The guard never modifies the filter, pipeline or batch it inspects.
    """

    def __init__(self, skip_registry: Optional[SkipRegistry] = None) -> None:
        self.skip_registry = skip_registry if skip_registry is not None else SkipRegistry()

    def is_exempt(self, entity: Any) -> bool:
        return entity in self.skip_registry

    # PUBLIC_INTERFACE
    def check(self, entity: Any, operation: Operation, *, method: str, bypass: bool = False) -> None:
        """
        Validate `operation` against `entity` and raise if it is not tenant-scoped.

        Parameters:
            entity: model class or entity type name
            operation: PointFilter, Pipeline or BulkBatch
            method: name of the entry point being called, for messages and logs
            bypass: the caller's explicit bypass directive; only True skips checks
        Raises:
            TypeError: if `bypass` is not a bool
            IsolationViolation: if the operation lacks tenant scope
        """
        if not isinstance(bypass, bool):
            raise TypeError(f"bypass must be True or False, got {bypass!r}")
        name = entity_name(entity)
        if self.is_exempt(name):
            logger.debug("Tenant isolation skipped for global entity %s.%s", name, method)
            return
        if bypass:
            logger.info("Tenant isolation bypassed: %s.%s (%s)", name, method, operation.kind.value)
            return
        self._validate(operation, name, method)

    @singledispatchmethod
    def _validate(self, operation: Any, entity: str, method: str) -> None:
        raise TypeError(f"Unsupported operation shape: {type(operation).__name__}")

    @_validate.register
    def _(self, operation: PointFilter, entity: str, method: str) -> None:
        if has_tenant_filter(operation.filter):
            return
        target = "document" if method.startswith("insert") else "filter"
        self._reject(
            f"{entity}.{method}() blocked: {operation.kind.value} {target} must include firm_id or lawyer_id "
            f"at the top level. Add the request's tenant scope, or use {method}_without_scope() for a "
            "verified system operation.",
            entity=entity,
            kind=operation.kind,
            method=method,
        )

    @_validate.register
    def _(self, operation: Pipeline, entity: str, method: str) -> None:
        if has_aggregation_scope(operation.stages):
            return
        self._reject(
            f"{entity}.{method}() blocked: aggregation pipeline must start with a $match stage on "
            "firm_id or lawyer_id; the first stage is not a tenant-scoped filter. Use "
            f"{method}_without_scope() for a verified system operation.",
            entity=entity,
            kind=operation.kind,
            method=method,
        )

    @_validate.register
    def _(self, operation: BulkBatch, entity: str, method: str) -> None:
        result = validate_bulk_batch(operation.operations)
        if result.valid:
            return
        self._reject(
            f"{entity}.{method}() blocked: bulk batch rejected before execution: " + "; ".join(result.issues),
            entity=entity,
            kind=operation.kind,
            method=method,
            offending_indices=result.offending_indices,
            issues=result.issues,
        )

    def _reject(self, message: str, *, entity: str, kind: OperationKind, method: str, **extra: Any) -> None:
        logger.warning("Tenant isolation violation: %s", message)
        raise IsolationViolation(message, entity=entity, operation=kind.value, method=method, **extra)
