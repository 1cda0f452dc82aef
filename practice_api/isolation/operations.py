"""
Operation shapes the guard understands.

Every data call is described by one of three shapes: a point filter (read or
single/multi-document write), an aggregation pipeline, or a bulk batch. Bulk
batches hold typed sub-operations, each of which knows where its tenant scope
has to live.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Sequence, Tuple, Type, Union


class OperationKind(str, Enum):
    """Operation kind reported in violations and logs."""
    READ = "read"
    WRITE = "write"
    AGGREGATION = "aggregation"
    BULK = "bulk"


@dataclass(frozen=True)
class PointFilter:
    """A read, update, replace or delete driven by a filter, or an insert driven by its document."""
    filter: Optional[Mapping[str, Any]]
    kind: OperationKind = OperationKind.READ


@dataclass(frozen=True)
class Pipeline:
    """An ordered aggregation pipeline."""
    stages: Sequence[Any]
    kind: ClassVar[OperationKind] = OperationKind.AGGREGATION


@dataclass(frozen=True)
class BulkBatch:
    """An ordered list of write sub-operations submitted together."""
    operations: Sequence[Any]
    kind: ClassVar[OperationKind] = OperationKind.BULK


Operation = Union[PointFilter, Pipeline, BulkBatch]


class BulkOperation:
    """Base for bulk sub-operations."""
    kind: ClassVar[str] = ""

    @property
    def scoping_target(self) -> Optional[Mapping[str, Any]]:
        """The mapping that must carry tenant scope for this sub-operation."""
        raise NotImplementedError


@dataclass(frozen=True)
class InsertOne(BulkOperation):
    document: Mapping[str, Any]
    kind: ClassVar[str] = "insert_one"

    @property
    def scoping_target(self) -> Optional[Mapping[str, Any]]:
        return self.document


@dataclass(frozen=True)
class UpdateOne(BulkOperation):
    filter: Mapping[str, Any]
    update: Mapping[str, Any]
    kind: ClassVar[str] = "update_one"

    @property
    def scoping_target(self) -> Optional[Mapping[str, Any]]:
        return self.filter


@dataclass(frozen=True)
class UpdateMany(UpdateOne):
    kind: ClassVar[str] = "update_many"


@dataclass(frozen=True)
class ReplaceOne(BulkOperation):
    filter: Mapping[str, Any]
    replacement: Mapping[str, Any]
    kind: ClassVar[str] = "replace_one"

    @property
    def scoping_target(self) -> Optional[Mapping[str, Any]]:
        return self.filter


@dataclass(frozen=True)
class DeleteOne(BulkOperation):
    filter: Mapping[str, Any]
    kind: ClassVar[str] = "delete_one"

    @property
    def scoping_target(self) -> Optional[Mapping[str, Any]]:
        return self.filter


@dataclass(frozen=True)
class DeleteMany(DeleteOne):
    kind: ClassVar[str] = "delete_many"


BULK_OPERATION_TYPES: Dict[str, Type[BulkOperation]] = {
    cls.kind: cls
    for cls in (InsertOne, UpdateOne, UpdateMany, ReplaceOne, DeleteOne, DeleteMany)
}

# mapping form: {"update_one": {"filter": {...}, "update": {...}}}
_BODY_FIELDS: Dict[str, Tuple[str, ...]] = {
    "insert_one": ("document",),
    "update_one": ("filter", "update"),
    "update_many": ("filter", "update"),
    "replace_one": ("filter", "replacement"),
    "delete_one": ("filter",),
    "delete_many": ("filter",),
}


# PUBLIC_INTERFACE
def parse_bulk_operation(raw: Any) -> BulkOperation:
    """
    Turn a bulk sub-operation in mapping form into its typed counterpart.

    Typed sub-operations are returned as-is.

    Raises:
        TypeError: if `raw` is neither a BulkOperation nor a mapping.
        ValueError: if the mapping does not describe exactly one known operation
            with all of its required fields.
    """
    if isinstance(raw, BulkOperation):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"Bulk operation must be a mapping, got {type(raw).__name__}")
    if len(raw) != 1:
        raise ValueError("Bulk operation mapping must have exactly one key")

    (name, body), = raw.items()
    fields = _BODY_FIELDS.get(name)
    if fields is None:
        raise ValueError(f"Unknown bulk operation: {name!r}")
    if not isinstance(body, Mapping):
        raise ValueError(f"Body of {name!r} must be a mapping")

    values = []
    for field_name in fields:
        value = body.get(field_name)
        if not isinstance(value, Mapping):
            raise ValueError(f"{name!r} requires a mapping {field_name!r}")
        values.append(value)
    return BULK_OPERATION_TYPES[name](*values)
