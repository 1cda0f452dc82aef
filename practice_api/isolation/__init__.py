"""
Tenant isolation enforcement.

Every data call on a tenant-owned entity type must be scoped to one tenant
(`firm_id` or `lawyer_id`) unless the entity type is skip-listed or the caller
explicitly bypasses enforcement.
"""

from .errors import (
    InvalidScopeArgument,
    IsolationViolation,
    TenantIsolationError,
    UnregisteredEntityError,
)
from .guard import IsolationGuard
from .operations import (
    BulkBatch,
    BulkOperation,
    DeleteMany,
    DeleteOne,
    InsertOne,
    OperationKind,
    Pipeline,
    PointFilter,
    ReplaceOne,
    UpdateMany,
    UpdateOne,
    parse_bulk_operation,
)
from .predicates import (
    TENANT_KEYS,
    BulkValidation,
    has_aggregation_scope,
    has_tenant_filter,
    is_valid_scope,
    validate_bulk_batch,
)
from .registry import DEFAULT_SKIP_ENTITIES, EntityRegistry, SkipRegistry, build_entity_registry
from .scope import TenantScope

__all__ = [
    "TENANT_KEYS",
    "DEFAULT_SKIP_ENTITIES",
    "BulkBatch",
    "BulkOperation",
    "BulkValidation",
    "DeleteMany",
    "DeleteOne",
    "EntityRegistry",
    "InsertOne",
    "InvalidScopeArgument",
    "IsolationGuard",
    "IsolationViolation",
    "OperationKind",
    "Pipeline",
    "PointFilter",
    "ReplaceOne",
    "SkipRegistry",
    "TenantIsolationError",
    "TenantScope",
    "UnregisteredEntityError",
    "UpdateMany",
    "UpdateOne",
    "build_entity_registry",
    "has_aggregation_scope",
    "has_tenant_filter",
    "is_valid_scope",
    "parse_bulk_operation",
    "validate_bulk_batch",
]
