"""Services package."""

from expense_tracker.services.backup import (
    BackupError,
    BackupService,
    BackupValidationError,
    NothingToExportError,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    CorruptStateError,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    StatePersistence,
    StorageError,
)

__all__ = [
    # Backup services
    "BackupError",
    "BackupService",
    "BackupValidationError",
    "NothingToExportError",
    # Storage services
    "AuditStorageInterface",
    "CorruptStateError",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "StatePersistence",
    "StorageError",
]
