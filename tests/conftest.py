"""Shared fixtures for the Expense Tracker test suite."""

import time
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.models.expense import (
    Category,
    Expense,
    ExpenseState,
    RecurrenceType,
    RecurringExpense,
    default_categories,
)
from expense_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
)
from expense_tracker.store import ExpenseStore


FIXED_NOW = datetime(2024, 4, 20, 9, 30)


class FixedClock:
    """Injectable clock that only moves when told to."""
    
    def __init__(self, now: datetime):
        self.current = now
    
    def __call__(self) -> datetime:
        return self.current
    
    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def store(kv, clock, audit_storage) -> ExpenseStore:
    """A loaded store with the default categories and no expenses."""
    expense_store = ExpenseStore(
        kv,
        clock=clock,
        audit_logger=AuditLogger(audit_storage),
    )
    expense_store.load()
    return expense_store


@pytest.fixture
def categories() -> list[Category]:
    return default_categories(FIXED_NOW)


@pytest.fixture
def monthly_rule() -> RecurringExpense:
    return RecurringExpense(
        id="rule_rent",
        title="Rent",
        amount=Decimal("1200.00"),
        category_id="cat_bills",
        note="Apartment",
        recurrence_type=RecurrenceType.MONTHLY,
        start_date=date(2024, 1, 15),
    )


@pytest.fixture
def state_with_rule(categories, monthly_rule) -> ExpenseState:
    return ExpenseState(categories=categories, recurring_expenses=[monthly_rule])


@pytest.fixture
def make_expense():
    """Factory for expenses with sensible defaults."""
    
    def _make(
        amount: str,
        on: date,
        category_id: str = "cat_food",
        title: str = "Expense",
        **kwargs,
    ) -> Expense:
        return Expense(
            title=title,
            amount=Decimal(amount),
            category_id=category_id,
            date=on,
            **kwargs,
        )
    
    return _make


@pytest.fixture
def local_timezone(monkeypatch):
    """Switch the process-local timezone for one test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    
    def _set(name: str) -> None:
        monkeypatch.setenv("TZ", name)
        time.tzset()
    
    yield _set
    monkeypatch.undo()
    time.tzset()
