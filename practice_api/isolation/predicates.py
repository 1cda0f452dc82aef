"""
Pure classification of operation inputs as tenant-scoped or not.

Only top-level filter keys count as scope. A tenant key buried inside `$or`
or `$and` does not bound the other branches, so it is not accepted.

None of these functions raise or mutate their input.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from .operations import parse_bulk_operation

TENANT_KEYS: Tuple[str, ...] = ("firm_id", "lawyer_id")
MATCH_STAGE = "$match"


@dataclass(frozen=True)
class BulkValidation:
    """Outcome of validating a bulk batch."""
    valid: bool
    issues: Tuple[str, ...] = field(default_factory=tuple)
    offending_indices: Tuple[int, ...] = field(default_factory=tuple)


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


# PUBLIC_INTERFACE
def has_tenant_filter(filter: Optional[Mapping[str, Any]]) -> bool:
    """Return True if the filter's own keys include firm_id or lawyer_id with a non-empty value."""
    if not isinstance(filter, Mapping):
        return False
    return any(key in filter and _has_value(filter[key]) for key in TENANT_KEYS)


# PUBLIC_INTERFACE
def has_aggregation_scope(pipeline: Optional[Sequence[Any]]) -> bool:
    """
    Return True if the first pipeline stage is a `$match` whose criteria carry tenant scope.

    A scope applied after a grouping or projection stage comes too late: that
    stage has already read every tenant's rows.
    """
    if pipeline is None or isinstance(pipeline, (str, bytes, Mapping)):
        return False
    if not isinstance(pipeline, Sequence) or len(pipeline) == 0:
        return False
    first = pipeline[0]
    if not isinstance(first, Mapping) or len(first) != 1 or MATCH_STAGE not in first:
        return False
    return has_tenant_filter(first[MATCH_STAGE])


# PUBLIC_INTERFACE
def validate_bulk_batch(operations: Optional[Sequence[Any]]) -> BulkValidation:
    """
    Check every sub-operation of a bulk batch for tenant scope.

    Inserts are checked on their document, everything else on its filter.
    One issue is reported per non-compliant entry; a single bad entry makes
    the whole batch invalid.
    """
    if operations is None or isinstance(operations, (str, bytes, Mapping)):
        return BulkValidation(valid=False, issues=("bulk batch must be a list of operations",))

    issues = []
    offending = []
    for index, raw in enumerate(operations):
        try:
            op = parse_bulk_operation(raw)
        except (TypeError, ValueError):
            issues.append(f"sub-operation {index} (unknown) is not a recognised bulk operation")
            offending.append(index)
            continue
        if not has_tenant_filter(op.scoping_target):
            issues.append(f"sub-operation {index} ({op.kind}) missing tenant scope")
            offending.append(index)

    return BulkValidation(valid=not issues, issues=tuple(issues), offending_indices=tuple(offending))


# PUBLIC_INTERFACE
def is_valid_scope(scope: Any) -> bool:
    """
    Return True if `scope` is usable as tenant authorization: exactly one of
    firm_id / lawyer_id carries a non-empty value.
    """
    if scope is None:
        return False
    if isinstance(scope, Mapping):
        values = [scope.get(key) for key in TENANT_KEYS]
    else:
        values = [getattr(scope, key, None) for key in TENANT_KEYS]
    return sum(1 for v in values if _has_value(v)) == 1
