from __future__ import annotations


class StorageError(ValueError):
    """Malformed input reached the storage driver."""


class FilterError(StorageError):
    """A filter or update document could not be translated to SQL."""


class PipelineError(StorageError):
    """An aggregation pipeline stage is unsupported or malformed."""


class BulkOperationError(StorageError):
    """A bulk sub-operation could not be executed; the whole batch was rolled back."""

    def __init__(self, message: str, index: int) -> None:
        super().__init__(message)
        self.index = index
