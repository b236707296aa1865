"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The state lives as one JSON blob under a namespaced key, so any key-value
backend can hold it.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    CorruptStateError,
    KeyValueStore,
    StorageError,
)
from expense_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
)
from expense_tracker.services.storage.json_file import JsonFileKeyValueStore
from expense_tracker.services.storage.persistence import StatePersistence

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStore",
    # Exceptions
    "CorruptStateError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "StatePersistence",
]
