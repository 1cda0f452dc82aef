from __future__ import annotations

from typing import Optional, Sequence


class TenantIsolationError(Exception):
    """Base class for tenant isolation failures. These are programming defects, never retried."""


class IsolationViolation(TenantIsolationError):
    """
    Raised before execution when an operation on a guarded entity type is not
    scoped to a single tenant and no bypass was requested.

    Attributes:
        entity: entity type name (e.g. "Invoice")
        operation: operation kind ("read", "write", "aggregation", "bulk")
        method: entry point that was called (e.g. "update_many")
        offending_indices: for bulk batches, indices of the unscoped sub-operations
        issues: for bulk batches, one description per offending sub-operation
    """

    def __init__(
        self,
        message: str,
        *,
        entity: Optional[str] = None,
        operation: Optional[str] = None,
        method: Optional[str] = None,
        offending_indices: Sequence[int] = (),
        issues: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.operation = operation
        self.method = method
        self.offending_indices = tuple(offending_indices)
        self.issues = tuple(issues)


class InvalidScopeArgument(IsolationViolation):
    """Raised when a caller-supplied tenant scope is empty, missing, or names both tenant keys."""


class UnregisteredEntityError(TenantIsolationError, KeyError):
    """Raised when data access is requested for an entity type that was never registered."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unregistered entity"
