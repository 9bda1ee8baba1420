class IngestError(Exception):
    """Base class for ingestion failures."""


class ConfigError(IngestError, ValueError):
    """Invalid configuration or column mapping."""


class SourceReadError(IngestError):
    """Source extract could not be read."""


class RowValidationError(IngestError):
    """A source row could not be mapped onto the canonical schema."""

    def __init__(self, row_index: int, reason: str) -> None:
        super().__init__(f"row {row_index}: {reason}")
        self.row_index = row_index
        self.reason = reason


class StorageError(IngestError):
    """A storage backend operation failed."""


class BatchWriteError(StorageError):
    """The storage backend rejected a batch."""


class BackendUnavailable(BatchWriteError):
    """Transient backend failure; the batch may be retried."""


class LedgerFinalizationError(IngestError):
    """A ledger entry could not be created or finalized."""


class SnapshotNotFound(IngestError, LookupError):
    """No ledger entry exists for the requested snapshot id."""
