"""
Expense Store

This module ties together all the components and holds the current
ExpenseState:
1. Mutations (expenses, categories, recurring rules, display currency)
2. Recurring generation on load
3. Persistence of the whole state blob after every mutation
4. Backup export and restore

DESIGN DECISION: The store is an explicit state container. Generation
and aggregation are pure functions of the state; the store only decides
when their result becomes the current state and when it is written out.

In-memory state is the source of truth for reads. A failed write is
audited and the in-memory state is kept: the next successful write
persists everything. If the process dies between a generator run and
its write, the next run regenerates the same occurrences from the old
watermark - this is an accepted limitation, there are no transactions.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from expense_tracker.audit import AuditLogger
from expense_tracker.config import Settings, get_settings
from expense_tracker.currency.converter import (
    Number,
    format_with_display_currency,
    get_currency_by_code,
    is_base_currency,
    to_base_for_storage,
)
from expense_tracker.models.audit import AuditEventBuilder, AuditEventType
from expense_tracker.models.expense import (
    OTHER_CATEGORY_ID,
    OTHER_CATEGORY_NAME,
    BackupInfo,
    Category,
    Expense,
    ExpenseState,
    RecurrenceType,
    RecurringExpense,
    default_categories,
)
from expense_tracker.queries import aggregations
from expense_tracker.recurrence.generator import (
    GenerationResult,
    generate_recurring_expenses,
)
from expense_tracker.services.backup import BackupService, BackupValidationError
from expense_tracker.services.storage import (
    CorruptStateError,
    KeyValueStore,
    StatePersistence,
    StorageError,
)


Clock = Callable[[], datetime]

_EXPENSE_FIELDS = {"title", "amount", "category_id", "date", "note"}
_CATEGORY_FIELDS = {"name", "icon", "color"}
_RECURRING_FIELDS = {
    "title",
    "amount",
    "category_id",
    "note",
    "recurrence_type",
    "start_date",
    "end_date",
    "is_active",
}


class ExpenseStoreError(Exception):
    """Base exception for store operations."""
    pass


class CategoryNotFoundError(ExpenseStoreError):
    """Referenced category does not exist."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")


class ExpenseNotFoundError(ExpenseStoreError):
    """Referenced expense does not exist."""

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class RecurringExpenseNotFoundError(ExpenseStoreError):
    """Referenced recurring expense does not exist."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Recurring expense not found: {rule_id}")


def _reject_unknown_fields(changes: dict, allowed: set[str]) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")


class ExpenseStore:
    """
    Single-user expense store.

    Usage:
        store = ExpenseStore(JsonFileKeyValueStore())
        store.load()
        store.add_expense("Lunch", Decimal("12.50"), "cat_food", date.today())
    """

    def __init__(
        self,
        storage: KeyValueStore,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings()
        self._storage = storage
        self._persistence = StatePersistence(storage, self._settings.storage.storage_key)
        self._clock: Clock = clock or datetime.now
        self._audit = audit_logger or AuditLogger()
        self._backup = BackupService(self._settings.app.backup_version)
        self._last_backup_at: Optional[datetime] = None
        self._state = ExpenseState(
            display_currency=self._settings.app.default_display_currency,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ExpenseState:
        return self._state

    @property
    def expenses(self) -> list[Expense]:
        return self._state.expenses

    @property
    def categories(self) -> list[Category]:
        return self._state.categories

    @property
    def recurring_expenses(self) -> list[RecurringExpense]:
        return self._state.recurring_expenses

    @property
    def display_currency(self) -> str:
        return self._state.display_currency

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def load(self) -> ExpenseState:
        """
        Load persisted state, seed default categories, generate recurring.

        Raises:
            CorruptStateError: If the stored blob is unreadable. The blob
                is left untouched so it can be recovered.
        """
        try:
            loaded = self._persistence.load()
        except CorruptStateError as e:
            self._audit.log_error("corrupt_state", str(e), {"key": e.key})
            raise
        if loaded is None:
            loaded = ExpenseState(
                display_currency=self._settings.app.default_display_currency,
            )
        self._state = loaded
        seeded = self._ensure_categories()

        self._audit.log(AuditEventBuilder.state_loaded(
            expense_count=len(self._state.expenses),
            category_count=len(self._state.categories),
            recurring_count=len(self._state.recurring_expenses),
            seeded_categories=seeded,
        ))

        result = self._run_generator()
        if seeded and not result.changed:
            self._persist()
        return self._state

    def _ensure_categories(self) -> bool:
        if self._state.categories:
            return False
        self._state = self._state.model_copy(
            update={"categories": default_categories(self.now())}
        )
        return True

    def _commit(self, state: ExpenseState) -> None:
        self._state = state
        self._persist()

    def _persist(self) -> None:
        try:
            self._persistence.save(self._state)
        except StorageError as e:
            self._audit.log_persist_failed(self._persistence.key, str(e))

    def _require_category(self, category_id: str) -> Category:
        category = self._state.get_category(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def add_expense(
        self,
        title: str,
        amount: Number,
        category_id: str,
        expense_date: date,
        note: Optional[str] = None,
        currency_code: Optional[str] = None,
    ) -> Expense:
        """
        Add an expense, converting foreign-currency amounts to base.

        The original amount and currency are kept only when the amount
        was entered in a currency other than the base.
        """
        self._require_category(category_id)
        expense = Expense(
            title=title,
            category_id=category_id,
            date=expense_date,
            note=note or None,
            created_at=self.now(),
            **self._amount_fields(amount, currency_code),
        )
        self._commit(self._state.model_copy(
            update={"expenses": [expense, *self._state.expenses]}
        ))
        self._audit.log(AuditEventBuilder.expense_added(
            expense_id=expense.id,
            title=expense.title,
            amount=str(expense.amount),
            original_currency=expense.original_currency,
        ))
        return expense

    def _amount_fields(self, amount: Number, currency_code: Optional[str]) -> dict:
        if currency_code is None or is_base_currency(currency_code):
            return {
                "amount": to_base_for_storage(amount, None),
                "original_amount": None,
                "original_currency": None,
            }
        currency = get_currency_by_code(currency_code)
        return {
            "amount": to_base_for_storage(amount, currency.code),
            "original_amount": Decimal(str(amount)),
            "original_currency": currency.code,
        }

    def update_expense(
        self,
        expense_id: str,
        currency_code: Optional[str] = None,
        **changes: Any,
    ) -> Expense:
        """
        Update fields of an expense.

        When `amount` is given together with `currency_code`, it is
        converted as in add_expense and the original fields are reset.
        A `currency_code` without an `amount` is rejected.
        """
        _reject_unknown_fields(changes, _EXPENSE_FIELDS)
        if currency_code is not None and "amount" not in changes:
            raise ValueError("currency_code can only be given together with amount")
        expense = self._state.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        if "category_id" in changes:
            self._require_category(changes["category_id"])

        if "amount" in changes:
            changes.update(self._amount_fields(changes.pop("amount"), currency_code))

        updated = Expense.model_validate({**expense.model_dump(), **changes})
        self._commit(self._state.model_copy(update={
            "expenses": [updated if e.id == expense_id else e for e in self._state.expenses]
        }))
        self._audit.log(AuditEventBuilder.expense_updated(expense_id, sorted(changes)))
        return updated

    def delete_expense(self, expense_id: str) -> bool:
        if self._state.get_expense(expense_id) is None:
            return False
        self._commit(self._state.model_copy(update={
            "expenses": [e for e in self._state.expenses if e.id != expense_id]
        }))
        self._audit.log(AuditEventBuilder.expense_deleted(expense_id))
        return True

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return self._state.get_expense(expense_id)

    def get_expenses_by_category(self, category_id: str) -> list[Expense]:
        return aggregations.expenses_by_category(self._state.expenses, category_id)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def add_category(
        self,
        name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Category:
        """Add a user category. User categories are never default."""
        fields = {"name": name, "is_default": False, "created_at": self.now()}
        if icon:
            fields["icon"] = icon
        if color:
            fields["color"] = color
        category = Category(**fields)
        self._commit(self._state.model_copy(
            update={"categories": [*self._state.categories, category]}
        ))
        self._audit.log(AuditEventBuilder.category_added(category.id, category.name))
        return category

    def update_category(self, category_id: str, **changes: Any) -> Optional[Category]:
        """
        Update a user category.

        Returns None, changing nothing, for default categories.
        """
        _reject_unknown_fields(changes, _CATEGORY_FIELDS)
        category = self._require_category(category_id)
        if category.is_default:
            self._audit.log(AuditEventBuilder.category_change_refused(
                category_id, "default categories cannot be edited"
            ))
            return None

        updated = Category.model_validate({**category.model_dump(), **changes})
        self._commit(self._state.model_copy(update={
            "categories": [updated if c.id == category_id else c for c in self._state.categories]
        }))
        self._audit.log(AuditEventBuilder.category_updated(category_id, sorted(changes)))
        return updated

    def _other_category(self) -> Optional[Category]:
        return self._state.get_category(OTHER_CATEGORY_ID) or next(
            (c for c in self._state.categories if c.name == OTHER_CATEGORY_NAME),
            None,
        )

    def delete_category(self, category_id: str, delete_expenses: bool = False) -> bool:
        """
        Delete a user category.

        Its expenses are deleted when delete_expenses is True, otherwise
        moved to the "Other" category. Default categories, unknown ids,
        and reassignment without an "Other" category leave the state
        untouched and return False.
        """
        category = self._state.get_category(category_id)
        if category is None:
            return False
        if category.is_default:
            self._audit.log(AuditEventBuilder.category_change_refused(
                category_id, "default categories cannot be deleted"
            ))
            return False

        remaining = [c for c in self._state.categories if c.id != category_id]
        affected = [e for e in self._state.expenses if e.category_id == category_id]

        if delete_expenses:
            expenses = [e for e in self._state.expenses if e.category_id != category_id]
            reassigned_to = None
        else:
            other = self._other_category()
            if other is None or other.id == category_id:
                self._audit.log(AuditEventBuilder.category_change_refused(
                    category_id, "no 'Other' category to move expenses to"
                ))
                return False
            reassigned_to = other.id
            expenses = [
                e.model_copy(update={"category_id": other.id}) if e.category_id == category_id else e
                for e in self._state.expenses
            ]

        self._commit(self._state.model_copy(
            update={"categories": remaining, "expenses": expenses}
        ))
        self._audit.log(AuditEventBuilder.category_deleted(
            category_id,
            expenses_deleted=len(affected) if delete_expenses else 0,
            expenses_reassigned=0 if delete_expenses else len(affected),
            reassigned_to=reassigned_to,
        ))
        return True

    def get_category(self, category_id: str) -> Optional[Category]:
        return self._state.get_category(category_id)

    # -------------------------------------------------------------------------
    # Recurring expenses
    # -------------------------------------------------------------------------

    def add_recurring_expense(
        self,
        title: str,
        amount: Number,
        category_id: str,
        recurrence_type: Union[RecurrenceType, str],
        start_date: date,
        end_date: Optional[date] = None,
        note: Optional[str] = None,
        is_active: bool = True,
    ) -> RecurringExpense:
        """Add a recurrence rule. Its occurrences appear on the next generation."""
        self._require_category(category_id)
        rule = RecurringExpense(
            title=title,
            amount=to_base_for_storage(amount, None),
            category_id=category_id,
            note=note or None,
            recurrence_type=recurrence_type,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            created_at=self.now(),
        )
        self._commit(self._state.model_copy(
            update={"recurring_expenses": [*self._state.recurring_expenses, rule]}
        ))
        self._audit.log(AuditEventBuilder.recurring_changed(
            AuditEventType.RECURRING_ADDED, rule.id, rule.title,
            {"recurrence_type": rule.recurrence_type.value},
        ))
        return rule

    def _require_rule(self, rule_id: str) -> RecurringExpense:
        rule = self._state.get_recurring_expense(rule_id)
        if rule is None:
            raise RecurringExpenseNotFoundError(rule_id)
        return rule

    def _replace_rule(self, updated: RecurringExpense) -> None:
        self._commit(self._state.model_copy(update={
            "recurring_expenses": [
                updated if r.id == updated.id else r for r in self._state.recurring_expenses
            ]
        }))

    def update_recurring_expense(self, rule_id: str, **changes: Any) -> RecurringExpense:
        """
        Update a recurrence rule.

        The watermark is not editable: already generated occurrences are
        never generated again, even if the start date moves back.
        """
        _reject_unknown_fields(changes, _RECURRING_FIELDS)
        rule = self._require_rule(rule_id)
        if "category_id" in changes:
            self._require_category(changes["category_id"])
        if "amount" in changes:
            changes["amount"] = to_base_for_storage(changes["amount"], None)

        updated = RecurringExpense.model_validate({**rule.model_dump(), **changes})
        self._replace_rule(updated)
        self._audit.log(AuditEventBuilder.recurring_changed(
            AuditEventType.RECURRING_UPDATED, rule_id, updated.title,
            {"fields": sorted(changes)},
        ))
        return updated

    def toggle_recurring_expense(self, rule_id: str) -> RecurringExpense:
        rule = self._require_rule(rule_id)
        updated = rule.model_copy(update={"is_active": not rule.is_active})
        self._replace_rule(updated)
        self._audit.log(AuditEventBuilder.recurring_changed(
            AuditEventType.RECURRING_TOGGLED, rule_id, rule.title,
            {"is_active": updated.is_active},
        ))
        return updated

    def delete_recurring_expense(self, rule_id: str) -> bool:
        """Delete a rule. Expenses it already generated are kept."""
        rule = self._state.get_recurring_expense(rule_id)
        if rule is None:
            return False
        self._commit(self._state.model_copy(update={
            "recurring_expenses": [
                r for r in self._state.recurring_expenses if r.id != rule_id
            ]
        }))
        self._audit.log(AuditEventBuilder.recurring_changed(
            AuditEventType.RECURRING_DELETED, rule_id, rule.title,
        ))
        return True

    def generate_recurring(self) -> list[Expense]:
        """Materialize every due recurring occurrence up to now."""
        return self._run_generator().created

    def _run_generator(self) -> GenerationResult:
        result = generate_recurring_expenses(self._state, self.now())
        if not result.changed:
            return result

        self._commit(result.state)
        for generation in result.rules:
            self._audit.log(AuditEventBuilder.recurring_generated(
                generation.rule_id,
                generation.occurrence_dates,
                generation.last_generated,
            ))
        return result

    # -------------------------------------------------------------------------
    # Currency & summaries
    # -------------------------------------------------------------------------

    def set_display_currency(self, code: str) -> str:
        """Set the display currency; unknown codes fall back to the base."""
        resolved = get_currency_by_code(code).code
        self._commit(self._state.model_copy(update={"display_currency": resolved}))
        return resolved

    def format_amount(self, base_amount: Number) -> str:
        """Format a base-currency amount in the display currency."""
        return format_with_display_currency(base_amount, self._state.display_currency)

    def monthly_total(self) -> Decimal:
        return aggregations.monthly_total(self._state.expenses, self.today())

    def total_by_category(self, category_id: str) -> Decimal:
        return aggregations.total_by_category(self._state.expenses, category_id)

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    def export_backup(self) -> str:
        """Serialize the full state as backup JSON."""
        now = self.now()
        content = self._backup.to_json(self._backup.create_backup(self._state, now))
        self._last_backup_at = now
        self._audit.log(AuditEventBuilder.backup_exported("json", len(self._state.expenses)))
        return content

    def export_csv(self) -> str:
        """
        Serialize expenses as CSV.

        Raises:
            NothingToExportError: If there are no expenses
        """
        content = self._backup.export_csv(self._state.expenses, self._state.categories)
        self._audit.log(AuditEventBuilder.backup_exported("csv", len(self._state.expenses)))
        return content

    def import_backup(self, raw: Union[str, bytes, dict]) -> ExpenseState:
        """
        Replace the current state with a backup.

        Raises:
            BackupValidationError: If the backup is invalid. The current
                state is left exactly as it was.
        """
        try:
            restored = self._backup.restore(raw)
        except BackupValidationError as e:
            self._audit.log(AuditEventBuilder.backup_rejected(
                [issue.model_dump() for issue in e.result.issues]
            ))
            raise

        self._commit(restored.model_copy(update={
            "display_currency": get_currency_by_code(restored.display_currency).code
        }))
        if self._ensure_categories():
            self._persist()
        self._audit.log(AuditEventBuilder.backup_restored(
            expense_count=len(restored.expenses),
            category_count=len(restored.categories),
            recurring_count=len(restored.recurring_expenses),
        ))
        self._run_generator()
        return self._state

    def create_auto_backup(self) -> None:
        """Write a backup under the auto-backup key; failures are audited."""
        now = self.now()
        try:
            self._backup.create_auto_backup(
                self._state,
                self._storage,
                now,
                key=self._settings.storage.auto_backup_key,
            )
        except StorageError as e:
            self._audit.log_persist_failed(self._settings.storage.auto_backup_key, str(e))
            return
        self._last_backup_at = now

    def backup_info(self) -> BackupInfo:
        return self._backup.backup_info(self._state, self._last_backup_at)
