"""
Audit Models for Expense Tracker

Every mutation of the store is logged for audit purposes.
This provides:
1. Traceability of generated versus manually entered expenses
2. Debugging information when persisted data looks wrong
3. A record of destructive actions (deletes, restores)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    
    Every kind of store mutation has its own event type.
    """
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    
    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_CHANGE_REFUSED = "category_change_refused"
    
    # Recurring rules
    RECURRING_ADDED = "recurring_added"
    RECURRING_UPDATED = "recurring_updated"
    RECURRING_DELETED = "recurring_deleted"
    RECURRING_TOGGLED = "recurring_toggled"
    RECURRING_GENERATED = "recurring_generated"
    
    # Backups
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"
    
    # System events
    STATE_LOADED = "state_loaded"
    PERSIST_FAILED = "persist_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """
    
    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (device-local)"
    )
    
    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    
    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'category', 'recurring')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    
    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    
    # Error information (if applicable)
    error_message: Optional[str] = None
    
    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.expense_added(expense_id, title, amount)
        event = AuditEventBuilder.recurring_generated(rule_id, dates)
    """
    
    @staticmethod
    def expense_added(
        expense_id: str,
        title: str,
        amount: str,
        original_currency: Optional[str] = None,
    ) -> AuditEvent:
        details = {"title": title, "amount": amount}
        if original_currency:
            details["original_currency"] = original_currency
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense added: {title}",
            details=details,
            is_user_action=True,
        )
    
    @staticmethod
    def expense_updated(expense_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )
    
    @staticmethod
    def expense_deleted(expense_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            description="Expense deleted",
            is_user_action=True,
        )
    
    @staticmethod
    def category_added(category_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category added: {name}",
            details={"name": name},
            is_user_action=True,
        )
    
    @staticmethod
    def category_updated(category_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )
    
    @staticmethod
    def category_deleted(
        category_id: str,
        expenses_deleted: int,
        expenses_reassigned: int,
        reassigned_to: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description="Category deleted",
            details={
                "expenses_deleted": expenses_deleted,
                "expenses_reassigned": expenses_reassigned,
                "reassigned_to": reassigned_to,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def category_change_refused(category_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CHANGE_REFUSED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            description=f"Category change refused: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )
    
    @staticmethod
    def recurring_changed(
        event_type: AuditEventType,
        rule_id: str,
        title: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = event_type.value.removeprefix("recurring_")
        return AuditEvent(
            event_type=event_type,
            entity_type="recurring",
            entity_id=rule_id,
            description=f"Recurring expense {verb}: {title}",
            details=details or {},
            is_user_action=True,
        )
    
    @staticmethod
    def recurring_generated(
        rule_id: str,
        occurrence_dates: list[date],
        watermark: Optional[date],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATED,
            entity_type="recurring",
            entity_id=rule_id,
            description=f"Generated {len(occurrence_dates)} recurring occurrence(s)",
            details={
                "occurrence_dates": [d.isoformat() for d in occurrence_dates],
                "last_generated": watermark.isoformat() if watermark else None,
            },
        )
    
    @staticmethod
    def backup_exported(kind: str, expense_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Backup exported as {kind}",
            details={"kind": kind, "expense_count": expense_count},
            is_user_action=True,
        )
    
    @staticmethod
    def backup_restored(
        expense_count: int,
        category_count: int,
        recurring_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Backup restored, previous data replaced",
            details={
                "expense_count": expense_count,
                "category_count": category_count,
                "recurring_count": recurring_count,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def backup_rejected(issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description=f"Backup rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )
    
    @staticmethod
    def state_loaded(
        expense_count: int,
        category_count: int,
        recurring_count: int,
        seeded_categories: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            entity_type="state",
            description="State loaded from storage",
            details={
                "expense_count": expense_count,
                "category_count": category_count,
                "recurring_count": recurring_count,
                "seeded_categories": seeded_categories,
            },
        )
    
    @staticmethod
    def persist_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="state",
            description=f"Failed to persist state under '{key}'",
            error_message=error_message,
            details={"key": key},
        )
    
    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
