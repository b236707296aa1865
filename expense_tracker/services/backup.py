"""
Backup, Restore and CSV Export

DESIGN DECISION: Restoring a backup is validated in two stages before
anything is applied:

STAGE 1 - STRUCTURAL VALIDATION:
- The payload is a JSON object
- version, exportDate and data are present
- data holds the expenses, categories and recurringExpenses arrays

STAGE 2 - RECORD VALIDATION:
- Every record parses as its model (amounts, dates, ids)

A backup that fails either stage is rejected as a whole. We never
partially apply an invalid backup, because the data is user-local and
cannot be recovered if corrupted.
"""

import csv
import io
import json
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import ValidationError

from expense_tracker.config import get_settings
from expense_tracker.currency.converter import BASE_CURRENCY_CODE
from expense_tracker.models.expense import (
    BackupData,
    BackupInfo,
    BackupPayload,
    Category,
    Expense,
    ExpenseState,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.services.storage.interface import KeyValueStore


CSV_HEADER = [
    "Date",
    "Title",
    "Amount",
    "Category",
    "Note",
    "Original Amount",
    "Original Currency",
]

_REQUIRED_ARRAYS = ("expenses", "categories", "recurringExpenses")

INVALID_BACKUP_MESSAGE = "The selected file is not a valid backup file."


class BackupError(Exception):
    """Base exception for backup operations."""
    pass


class BackupValidationError(BackupError):
    """The backup failed validation and was not applied."""

    def __init__(self, result: ValidationResult, message: str = INVALID_BACKUP_MESSAGE):
        self.result = result
        self.user_message = message
        super().__init__(message)


class NothingToExportError(BackupError):
    """There is no data to export."""
    pass


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
    )


class BackupService:
    """
    Builds, validates and restores backups.

    Stateless apart from configuration: every method takes the state
    it works on and returns a new value.
    """

    def __init__(self, version: Optional[str] = None):
        self._version = version or get_settings().app.backup_version

    @property
    def version(self) -> str:
        return self._version

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def create_backup(self, state: ExpenseState, now: datetime) -> BackupData:
        """Snapshot the state into a backup object."""
        return BackupData(
            version=self._version,
            export_date=now,
            data=BackupPayload(
                expenses=state.expenses,
                categories=state.categories,
                recurring_expenses=state.recurring_expenses,
                display_currency=state.display_currency,
            ),
        )

    def to_json(self, backup: BackupData) -> str:
        """Serialize a backup the way it is written to a file."""
        return json.dumps(backup.model_dump(mode="json", by_alias=True), indent=2)

    def backup_filename(self, now: datetime, kind: str = "json") -> str:
        stamp = now.date().isoformat()
        if kind == "csv":
            return f"expense-tracker-export-{stamp}.csv"
        return f"expense-tracker-backup-{stamp}.json"

    def export_csv(
        self,
        expenses: list[Expense],
        categories: Optional[list[Category]] = None,
    ) -> str:
        """
        Serialize expenses as CSV.

        The Category column holds the category name, or the raw id when
        the category no longer exists.

        Raises:
            NothingToExportError: If there are no expenses
        """
        if not expenses:
            raise NothingToExportError("There are no expenses to export.")

        names = {c.id: c.name for c in categories or []}
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for expense in expenses:
            writer.writerow([
                expense.date.isoformat(),
                expense.title,
                str(expense.amount),
                names.get(expense.category_id, expense.category_id),
                expense.note or "",
                "" if expense.original_amount is None else str(expense.original_amount),
                expense.original_currency or "",
            ])
        return buffer.getvalue()

    def create_auto_backup(
        self,
        state: ExpenseState,
        store: KeyValueStore,
        now: datetime,
        key: Optional[str] = None,
    ) -> BackupData:
        """Write a backup of the state under the auto-backup key."""
        backup = self.create_backup(state, now)
        store.set(key or get_settings().storage.auto_backup_key, self.to_json(backup))
        return backup

    def load_auto_backup(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
    ) -> Optional[BackupData]:
        """Read the last auto-backup, or None if absent."""
        raw = store.get(key or get_settings().storage.auto_backup_key)
        if raw is None:
            return None
        return self.parse(raw)

    def backup_info(
        self,
        state: Optional[ExpenseState],
        last_backup_date: Optional[datetime] = None,
    ) -> BackupInfo:
        """Counts of what a backup of this state would contain."""
        if state is None:
            return BackupInfo(has_data=False)
        return BackupInfo(
            has_data=True,
            expense_count=len(state.expenses),
            category_count=len(state.categories),
            recurring_count=len(state.recurring_expenses),
            last_backup_date=last_backup_date,
        )

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def validate_backup(self, raw: Union[str, bytes, dict, Any]) -> ValidationResult:
        """
        Validate a backup payload without applying it.

        Accepts the file content as a string/bytes or an already
        decoded object.
        """
        payload, issues = self._decode(raw)
        if not issues:
            issues = self._validate_structure(payload)
        if not issues:
            issues = self._validate_records(payload)

        return ValidationResult(
            is_valid=not any(i.severity == "error" for i in issues),
            issues=issues,
        )

    def parse(self, raw: Union[str, bytes, dict, Any]) -> BackupData:
        """
        Validate and parse a backup.

        Raises:
            BackupValidationError: If the payload is not a valid backup
        """
        result = self.validate_backup(raw)
        if not result.is_valid:
            raise BackupValidationError(result)
        payload, _ = self._decode(raw)
        data = dict(payload["data"])
        data.setdefault("displayCurrency", BASE_CURRENCY_CODE)
        return BackupData.model_validate({**payload, "data": data})

    def restore(self, raw: Union[str, bytes, dict, Any]) -> ExpenseState:
        """
        Build the state a backup describes.

        The caller replaces its current state with the result. Nothing
        is returned for an invalid backup.

        Raises:
            BackupValidationError: If the payload is not a valid backup
        """
        return self.parse(raw).to_state()

    def _decode(self, raw: Any) -> tuple[Any, list[ValidationIssue]]:
        if isinstance(raw, (str, bytes)):
            try:
                return json.loads(raw), []
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                return None, [_error("file", "invalid_json", f"File is not valid JSON: {e}")]
        return raw, []

    def _validate_structure(self, payload: Any) -> list[ValidationIssue]:
        if not isinstance(payload, dict):
            return [_error("backup", "invalid_type", "Backup must be a JSON object")]

        issues = []
        for field in ("version", "exportDate", "data"):
            if not payload.get(field):
                issues.append(_error(field, "missing", f"Backup is missing '{field}'"))

        data = payload.get("data")
        if data and not isinstance(data, dict):
            issues.append(_error("data", "invalid_type", "'data' must be an object"))
        elif isinstance(data, dict):
            for name in _REQUIRED_ARRAYS:
                if not isinstance(data.get(name), list):
                    issues.append(_error(
                        f"data.{name}", "missing", f"Backup data must contain a '{name}' array"
                    ))
        return issues

    def _validate_records(self, payload: dict) -> list[ValidationIssue]:
        data = dict(payload["data"])
        data.setdefault("displayCurrency", BASE_CURRENCY_CODE)
        try:
            BackupData.model_validate({**payload, "data": data})
        except ValidationError as e:
            return [
                _error(
                    ".".join(str(part) for part in err["loc"]),
                    "invalid_record",
                    err["msg"],
                )
                for err in e.errors()
            ]
        return []
