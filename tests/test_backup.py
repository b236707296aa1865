"""Tests for backup export, validation, restore and CSV export."""

import csv
import io
import json
import pytest
from datetime import date, datetime
from decimal import Decimal

from expense_tracker.models.expense import ExpenseState
from expense_tracker.services.backup import (
    CSV_HEADER,
    INVALID_BACKUP_MESSAGE,
    BackupService,
    BackupValidationError,
    NothingToExportError,
)
from expense_tracker.services.storage import InMemoryKeyValueStore


NOW = datetime(2024, 4, 20, 9, 30)


@pytest.fixture
def service() -> BackupService:
    return BackupService(version="1.0.0")


@pytest.fixture
def populated_state(categories, monthly_rule, make_expense) -> ExpenseState:
    return ExpenseState(
        expenses=[
            make_expense("12.50", date(2024, 4, 18), title="Lunch", note="with team"),
            make_expense(
                "454.55",
                date(2024, 4, 19),
                category_id="cat_transport",
                title="Flight, return",
                original_amount=Decimal("100"),
                original_currency="USD",
            ),
        ],
        categories=categories,
        recurring_expenses=[monthly_rule],
        display_currency="USD",
    )


def _backup_dict(**data_overrides) -> dict:
    data = {"expenses": [], "categories": [], "recurringExpenses": []}
    data.update(data_overrides)
    return {"version": "1.0.0", "exportDate": "2024-04-20T09:30:00", "data": data}


class TestExport:
    """Tests for creating backups."""

    def test_backup_shape(self, service, populated_state):
        """Test the serialized backup uses the documented keys."""
        raw = service.to_json(service.create_backup(populated_state, NOW))
        payload = json.loads(raw)

        assert payload["version"] == "1.0.0"
        assert payload["exportDate"].startswith("2024-04-20T09:30")
        assert set(payload["data"]) == {
            "expenses", "categories", "recurringExpenses", "displayCurrency",
        }
        assert payload["data"]["displayCurrency"] == "USD"
        assert payload["data"]["expenses"][1]["originalCurrency"] == "USD"

    def test_export_then_restore_preserves_state(self, service, populated_state):
        """Test restoring an export yields an equal state."""
        raw = service.to_json(service.create_backup(populated_state, NOW))
        assert service.restore(raw) == populated_state

    def test_backup_filenames(self, service):
        assert service.backup_filename(NOW) == "expense-tracker-backup-2024-04-20.json"
        assert service.backup_filename(NOW, "csv") == "expense-tracker-export-2024-04-20.csv"

    def test_version_from_settings(self):
        """Test the default version comes from configuration."""
        assert BackupService().version == "1.0.0"

    def test_backup_info(self, service, populated_state):
        info = service.backup_info(populated_state, NOW)
        assert info.has_data is True
        assert info.expense_count == 2
        assert info.category_count == 8
        assert info.recurring_count == 1
        assert info.last_backup_date == NOW

    def test_backup_info_without_state(self, service):
        assert service.backup_info(None).has_data is False


class TestAutoBackup:
    """Tests for the auto-backup slot."""

    def test_auto_backup_round_trip(self, service, populated_state):
        kv = InMemoryKeyValueStore()
        service.create_auto_backup(populated_state, kv, NOW)

        assert kv.keys() == ["expense-auto-backup"]
        restored = service.load_auto_backup(kv)
        assert restored.to_state() == populated_state
        assert restored.export_date == NOW

    def test_missing_auto_backup(self, service):
        assert service.load_auto_backup(InMemoryKeyValueStore()) is None


class TestValidation:
    """Tests for import validation."""

    def test_valid_backup(self, service):
        result = service.validate_backup(json.dumps(_backup_dict()))
        assert result.is_valid is True
        assert result.issues == []

    def test_not_json(self, service):
        result = service.validate_backup("{not json")
        assert result.is_valid is False
        assert result.issues[0].issue_type == "invalid_json"

    def test_not_an_object(self, service):
        result = service.validate_backup("[1, 2, 3]")
        assert result.is_valid is False
        assert result.issues[0].issue_type == "invalid_type"

    @pytest.mark.parametrize("missing", ["version", "exportDate", "data"])
    def test_missing_top_level_field(self, service, missing):
        payload = _backup_dict()
        del payload[missing]
        result = service.validate_backup(payload)
        assert result.is_valid is False
        assert any(i.field == missing for i in result.issues)

    @pytest.mark.parametrize("array", ["expenses", "categories", "recurringExpenses"])
    def test_missing_array(self, service, array):
        """Test each data array is required."""
        payload = _backup_dict()
        del payload["data"][array]
        result = service.validate_backup(payload)
        assert result.is_valid is False
        assert result.issues[0].field == f"data.{array}"

    def test_array_of_wrong_type(self, service):
        result = service.validate_backup(_backup_dict(expenses="nope"))
        assert result.is_valid is False

    def test_invalid_record(self, service):
        """Test a record that does not parse invalidates the whole backup."""
        payload = _backup_dict(expenses=[{"title": "Lunch", "amount": "lots"}])
        result = service.validate_backup(payload)
        assert result.is_valid is False
        assert all(i.issue_type == "invalid_record" for i in result.issues)
        assert result.issues[0].field.startswith("data.expenses.0")


class TestRestore:
    """Tests for applying backups."""

    def test_display_currency_defaults_to_base(self, service):
        """Test backups without a display currency restore as MYR."""
        state = service.restore(json.dumps(_backup_dict()))
        assert state.display_currency == "MYR"

    def test_restore_accepts_bytes(self, service):
        state = service.restore(json.dumps(_backup_dict()).encode("utf-8"))
        assert state.expenses == []

    def test_legacy_timestamps_are_accepted(self, service):
        """Test dates stored as full timestamps restore as calendar dates."""
        payload = _backup_dict(
            expenses=[{
                "id": "e1",
                "title": "Coffee",
                "amount": 4.5,
                "categoryId": "cat_food",
                "date": "2024-01-15T12:00:00.000Z",
                "createdAt": "2024-01-15T08:00:00.000Z",
            }],
        )
        state = service.restore(payload)
        assert state.expenses[0].date == date(2024, 1, 15)

    def test_invalid_backup_raises_with_user_message(self, service):
        with pytest.raises(BackupValidationError) as exc_info:
            service.restore("not a backup")
        assert exc_info.value.user_message == INVALID_BACKUP_MESSAGE
        assert exc_info.value.result.has_errors


class TestCsvExport:
    """Tests for CSV export."""

    def test_header_and_rows(self, service, populated_state):
        text = service.export_csv(populated_state.expenses, populated_state.categories)
        rows = list(csv.reader(io.StringIO(text)))

        assert rows[0] == CSV_HEADER
        assert rows[1] == ["2024-04-18", "Lunch", "12.50", "Food", "with team", "", ""]
        assert rows[2] == [
            "2024-04-19", "Flight, return", "454.55", "Transport", "", "100", "USD",
        ]

    def test_commas_are_quoted(self, service, populated_state):
        text = service.export_csv(populated_state.expenses, populated_state.categories)
        assert '"Flight, return"' in text

    def test_missing_category_falls_back_to_id(self, service, make_expense):
        text = service.export_csv([make_expense("1", date(2024, 4, 1), category_id="cat_gone")])
        assert "cat_gone" in text.splitlines()[1]

    def test_nothing_to_export(self, service):
        with pytest.raises(NothingToExportError):
            service.export_csv([])
