"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run on whatever key-value store the device offers
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally tiny - the whole state is a single
serialized blob, so get/set by key is all we need.
"""

from abc import ABC, abstractmethod
from typing import Optional

from expense_tracker.models.audit import AuditEvent


class KeyValueStore(ABC):
    """
    Abstract interface for the persisted key-value store.
    
    Values are serialized strings. Interpreting them is the caller's job.
    """
    
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.
        
        Args:
            key: Namespaced storage key
            
        Returns:
            The stored string, or None if nothing is stored
            
        Raises:
            StorageError: If the backend cannot be read
        """
        pass
    
    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.
        
        Args:
            key: Namespaced storage key
            value: Serialized value
            
        Raises:
            StorageError: If the write fails
        """
        pass
    
    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.
        
        Returns:
            True if something was removed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.
    
    Audit logs are append-only - we never delete or modify them.
    """
    
    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.
        
        Args:
            event: The audit event to log
            
        Returns:
            True if logged successfully
        """
        pass
    
    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.
        
        Args:
            entity_type: Type of entity (e.g., 'expense', 'recurring')
            entity_id: The entity's ID
            
        Returns:
            List of events in chronological order
        """
        pass
    
    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.
        
        Args:
            limit: Maximum number of events to return
            
        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptStateError(StorageError):
    """The persisted blob exists but cannot be parsed."""
    
    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(message)
