"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data held by the store.
They are designed to:
1. Enforce type safety at runtime
2. Round-trip through the persisted JSON blob and backup files
3. Keep the wire format (camelCase keys) separate from Python names

DESIGN DECISION: Every amount is a Decimal expressed in the base currency.
Foreign-currency entries keep their original amount alongside, never
instead of, the base amount.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Decimals travel as JSON numbers, the way the mobile app always stored them
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


# Alias for annotating fields that are themselves named "date"
CalendarDate = date


def new_id(prefix: str = "") -> str:
    """Generate a unique string identifier."""
    return f"{prefix}{uuid4().hex}"


def _coerce_calendar_date(value: Any) -> Any:
    """
    Accept legacy ISO timestamps where a calendar date is expected.

    Older data stored every date as a UTC timestamp
    (e.g. '2024-01-15T16:00:00.000Z') and read it back on the device's
    local calendar, so aware timestamps are converted to local time
    before the date is taken.
    """
    if isinstance(value, str) and len(value) > 10 and value[10] in ("T", " "):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


_ORIGINAL_AMOUNT_KEYS = ("original_amount", "originalAmount")
_ORIGINAL_CURRENCY_KEYS = ("original_currency", "originalCurrency")


class WireModel(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecurrenceType(str, Enum):
    """
    How often a recurring expense repeats.

    NONE is storable but never evaluable: a rule of this type
    generates nothing, even when active.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NONE = "none"


# =============================================================================
# CURRENCY
# =============================================================================

class Currency(BaseModel):
    """
    An entry in the static rate table.

    rate is how many units of this currency equal one unit of the
    base currency. The base currency itself has rate 1.
    """
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=3, max_length=3)
    symbol: str = Field(..., min_length=1)
    name: str
    rate: Decimal = Field(..., gt=0)
    decimal_places: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Digits shown after the decimal point when formatting"
    )


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Category(WireModel):
    """
    A spending category.

    Default categories are seeded on first run and cannot be
    edited or deleted.
    """

    id: str = Field(default_factory=lambda: new_id("cat_"))
    name: str = Field(..., min_length=1)
    icon: str = Field(
        default="pricetag",
        description="Icon name used by the display layer"
    )
    color: str = Field(
        default="#6B7280",
        description="Hex color used by the display layer"
    )
    is_default: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class Expense(WireModel):
    """
    A single concrete expense.

    amount is ALWAYS in the base currency. original_amount and
    original_currency record what the user typed when they entered
    the expense in another currency.
    """

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1)
    amount: Money = Field(..., ge=0, description="Amount in the base currency")
    original_amount: Optional[Money] = Field(default=None, ge=0)
    original_currency: Optional[str] = Field(
        default=None,
        description="Code the amount was entered in; unknown codes resolve to the base currency on use"
    )
    category_id: str = Field(..., min_length=1)
    date: CalendarDate = Field(..., description="Effective calendar date")
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    recurring_expense_id: Optional[str] = Field(
        default=None,
        description="Rule that generated this expense, if any"
    )

    @field_validator('date', mode='before')
    @classmethod
    def accept_timestamps(cls, v: Any) -> Any:
        return _coerce_calendar_date(v)

    @model_validator(mode='before')
    @classmethod
    def drop_half_original_pair(cls, data: Any) -> Any:
        """
        Original amount and currency travel together.

        Stored data holding only one of the two keeps neither, so a
        damaged record still loads as a plain base-currency expense.
        """
        if not isinstance(data, dict):
            return data
        has_amount = any(data.get(k) is not None for k in _ORIGINAL_AMOUNT_KEYS)
        has_currency = any(data.get(k) for k in _ORIGINAL_CURRENCY_KEYS)
        if has_amount == has_currency:
            return data
        dropped = _ORIGINAL_AMOUNT_KEYS + _ORIGINAL_CURRENCY_KEYS
        return {k: v for k, v in data.items() if k not in dropped}

    @field_validator('original_currency')
    @classmethod
    def blank_currency_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class RecurringExpense(WireModel):
    """
    A recurrence rule that materializes expenses over time.

    last_generated is the watermark: the date of the most recent
    occurrence already turned into an Expense. It only moves forward.
    """

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1)
    amount: Money = Field(..., ge=0, description="Amount in the base currency")
    category_id: str = Field(..., min_length=1)
    note: Optional[str] = None
    recurrence_type: RecurrenceType = RecurrenceType.MONTHLY
    start_date: date
    end_date: Optional[date] = Field(
        default=None,
        description="Last day an occurrence may fall on (inclusive)"
    )
    last_generated: Optional[date] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator('start_date', 'end_date', 'last_generated', mode='before')
    @classmethod
    def accept_timestamps(cls, v: Any) -> Any:
        return _coerce_calendar_date(v)

    @field_validator('recurrence_type', mode='before')
    @classmethod
    def unknown_type_is_none(cls, v: Any) -> Any:
        """Unknown stored types load as NONE, which never generates."""
        if isinstance(v, RecurrenceType):
            return v
        try:
            return RecurrenceType(v)
        except ValueError:
            return RecurrenceType.NONE

    @model_validator(mode='after')
    def validate_dates(self) -> 'RecurringExpense':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class ExpenseState(WireModel):
    """
    The full single-user state.

    DESIGN DECISION: State is treated as immutable. Operations build a
    new state with model_copy(update=...) and hand it back, so callers
    decide when the new state becomes current.
    """

    expenses: list[Expense] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    recurring_expenses: list[RecurringExpense] = Field(default_factory=list)
    display_currency: str = "MYR"

    def get_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self.expenses if e.id == expense_id), None)

    def get_recurring_expense(self, rule_id: str) -> Optional[RecurringExpense]:
        return next((r for r in self.recurring_expenses if r.id == rule_id), None)


def _seed(id_: str, name: str, icon: str, color: str) -> dict:
    return {"id": id_, "name": name, "icon": icon, "color": color}


DEFAULT_CATEGORY_SEEDS = [
    _seed("cat_food", "Food", "restaurant", "#F59E0B"),
    _seed("cat_transport", "Transport", "car", "#3B82F6"),
    _seed("cat_shopping", "Shopping", "cart", "#EC4899"),
    _seed("cat_bills", "Bills", "receipt", "#EF4444"),
    _seed("cat_sports", "Sports", "fitness", "#D9FF00"),
    _seed("cat_entertainment", "Entertainment", "game-controller", "#8B5CF6"),
    _seed("cat_health", "Health", "medkit", "#10B981"),
    _seed("cat_other", "Other", "ellipsis-horizontal", "#6B7280"),
]

OTHER_CATEGORY_ID = "cat_other"
OTHER_CATEGORY_NAME = "Other"


def default_categories(created_at: Optional[datetime] = None) -> list[Category]:
    """Build the category set seeded on first run."""
    created_at = created_at or datetime.now()
    return [
        Category(**seed, is_default=True, created_at=created_at)
        for seed in DEFAULT_CATEGORY_SEEDS
    ]


# =============================================================================
# BACKUP MODELS
# =============================================================================

class BackupPayload(WireModel):
    """The data section of a backup file."""

    expenses: list[Expense]
    categories: list[Category]
    recurring_expenses: list[RecurringExpense]
    display_currency: str = "MYR"


class BackupData(WireModel):
    """
    A full backup as written to / read from a file.

    Shape: { version, exportDate, data: { expenses[], categories[],
    recurringExpenses[], displayCurrency } }
    """

    version: str = Field(..., min_length=1)
    export_date: datetime
    data: BackupPayload

    def to_state(self) -> ExpenseState:
        return ExpenseState(
            expenses=self.data.expenses,
            categories=self.data.categories,
            recurring_expenses=self.data.recurring_expenses,
            display_currency=self.data.display_currency,
        )


class BackupInfo(BaseModel):
    """Summary of what a backup would contain."""

    has_data: bool
    expense_count: int = Field(default=0, ge=0)
    category_count: int = Field(default=0, ge=0)
    recurring_count: int = Field(default=0, ge=0)
    last_backup_date: Optional[datetime] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_type', 'invalid_record')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating an imported backup."""

    validated_at: datetime = Field(default_factory=datetime.now)
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
