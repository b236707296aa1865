"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data held by the store or written to a backup conforms to these schemas.
"""

from expense_tracker.models.expense import (
    DEFAULT_CATEGORY_SEEDS,
    OTHER_CATEGORY_ID,
    OTHER_CATEGORY_NAME,
    BackupData,
    BackupInfo,
    BackupPayload,
    Category,
    Currency,
    Expense,
    ExpenseState,
    RecurrenceType,
    RecurringExpense,
    ValidationIssue,
    ValidationResult,
    default_categories,
    new_id,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "DEFAULT_CATEGORY_SEEDS",
    "OTHER_CATEGORY_ID",
    "OTHER_CATEGORY_NAME",
    "BackupData",
    "BackupInfo",
    "BackupPayload",
    "Category",
    "Currency",
    "Expense",
    "ExpenseState",
    "RecurrenceType",
    "RecurringExpense",
    "ValidationIssue",
    "ValidationResult",
    "default_categories",
    "new_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
