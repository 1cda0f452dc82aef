"""
Storage driver beneath the tenant guard.

Executes document-style filters, aggregation pipelines and bulk batches
against SQLAlchemy models. It performs no tenant checks of its own; callers
reach it only through guarded repositories.
"""

from .driver import BulkWriteResult, DeleteResult, SqlAlchemyDriver, UpdateResult
from .errors import BulkOperationError, FilterError, PipelineError, StorageError
from .filters import compile_filter, compile_update
from .pipeline import compile_pipeline

__all__ = [
    "BulkOperationError",
    "BulkWriteResult",
    "DeleteResult",
    "FilterError",
    "PipelineError",
    "SqlAlchemyDriver",
    "StorageError",
    "UpdateResult",
    "compile_filter",
    "compile_pipeline",
    "compile_update",
]
