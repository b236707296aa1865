"""
Aggregation Queries

DESIGN DECISION: Every query is a plain O(n) fold over the expense list.
Personal data volumes are hundreds to low thousands of records, so
there are no indexes and no caching. Amounts are summed in the base
currency; converting for display is the caller's concern.

All "current period" queries take `today` explicitly so they can be
evaluated against any date.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from expense_tracker.models.expense import Category, Expense
from expense_tracker.recurrence.evaluator import add_months


ZERO = Decimal("0")
HUNDRED = Decimal("100")

_DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class Period(str, Enum):
    """Summary periods offered by the summary views."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class PeriodComparison(BaseModel):
    """Spend in one period measured against the period before it."""

    model_config = ConfigDict(frozen=True)

    current: Decimal
    previous: Decimal
    difference: Decimal = Field(..., description="current - previous")
    percent_change: Decimal = Field(
        ...,
        description="Change relative to previous, 100 when previous is zero"
    )


class PeriodStats(BaseModel):
    """Period-to-date totals ending today."""

    model_config = ConfigDict(frozen=True)

    period: Period
    start: date
    end: date
    total: Decimal
    count: int = Field(..., ge=0, description="Number of expenses in the period")
    average: Decimal = Field(..., description="Mean expense amount, 0 when empty")


class DailyAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    label: str = Field(..., description="Weekday abbreviation, or 'Today'")
    amount: Decimal


class MonthlyAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: date = Field(..., description="First day of the month")
    label: str = Field(..., description="Month abbreviation, or 'This'")
    amount: Decimal


class CategoryShare(BaseModel):
    """One slice of the category breakdown."""

    model_config = ConfigDict(frozen=True)

    category: Category
    amount: Decimal
    percentage: Decimal = Field(..., description="Share of the month's total, 0-100")


class DateGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    expenses: list[Expense] = Field(
        default_factory=list,
        description="Expenses on this day, newest entry first"
    )


def _sum(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


def month_range(d: date) -> tuple[date, date]:
    """(first_day, last_day) of the calendar month containing d."""
    last_day = calendar.monthrange(d.year, d.month)[1]
    return d.replace(day=1), d.replace(day=last_day)


def total_between(expenses: Iterable[Expense], start: date, end: date) -> Decimal:
    """Sum of amounts dated within [start, end], both inclusive."""
    return _sum(e for e in expenses if start <= e.date <= end)


def monthly_total(expenses: Iterable[Expense], today: date) -> Decimal:
    """
    Total for the calendar month containing today.
    
    Includes expenses dated later this month.
    """
    first, last = month_range(today)
    return total_between(expenses, first, last)


def expenses_by_category(expenses: Iterable[Expense], category_id: str) -> list[Expense]:
    return [e for e in expenses if e.category_id == category_id]


def total_by_category(expenses: Iterable[Expense], category_id: str) -> Decimal:
    return _sum(expenses_by_category(expenses, category_id))


def percent_change(current: Decimal, previous: Decimal) -> Decimal:
    """
    Percentage change from previous to current.
    
    100 when previous is zero and current is not; 0 when both are zero.
    """
    if previous == 0:
        return HUNDRED if current != 0 else ZERO
    return (current - previous) / previous * HUNDRED


def compare_periods(current: Decimal, previous: Decimal) -> PeriodComparison:
    return PeriodComparison(
        current=current,
        previous=previous,
        difference=current - previous,
        percent_change=percent_change(current, previous),
    )


def compare_months(expenses: Iterable[Expense], today: date) -> PeriodComparison:
    """This calendar month against the previous one."""
    expenses = list(expenses)
    current = monthly_total(expenses, today)
    previous = monthly_total(expenses, add_months(today.replace(day=1), -1))
    return compare_periods(current, previous)


def _period_start(period: Period, today: date) -> date:
    if period == Period.DAY:
        return today
    if period == Period.WEEK:
        # Weeks start on Sunday
        return today - timedelta(days=(today.weekday() + 1) % 7)
    return today.replace(day=1)


def period_stats(
    expenses: Iterable[Expense],
    period: Period,
    today: date,
) -> PeriodStats:
    """Total, count and average for the period-to-date ending today."""
    period = Period(period)
    start = _period_start(period, today)
    in_period = [e for e in expenses if start <= e.date <= today]
    total = _sum(in_period)
    count = len(in_period)
    return PeriodStats(
        period=period,
        start=start,
        end=today,
        total=total,
        count=count,
        average=total / count if count else ZERO,
    )


def weekly_trend(expenses: Iterable[Expense], today: date) -> list[DailyAmount]:
    """Daily totals for the last 7 days, oldest first, today labelled 'Today'."""
    totals: dict[date, Decimal] = defaultdict(lambda: ZERO)
    window_start = today - timedelta(days=6)
    for e in expenses:
        if window_start <= e.date <= today:
            totals[e.date] += e.amount
    
    trend = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        label = "Today" if offset == 0 else _DAY_NAMES[day.weekday()]
        trend.append(DailyAmount(day=day, label=label, amount=totals[day]))
    return trend


def monthly_spending(
    expenses: Iterable[Expense],
    today: date,
    months: int = 6,
) -> list[MonthlyAmount]:
    """Totals for the last `months` calendar months, oldest first."""
    expenses = list(expenses)
    this_month = today.replace(day=1)
    result = []
    for offset in range(months - 1, -1, -1):
        month = add_months(this_month, -offset)
        label = "This" if offset == 0 else month.strftime("%b")
        result.append(MonthlyAmount(
            month=month,
            label=label,
            amount=monthly_total(expenses, month),
        ))
    return result


def category_breakdown(
    expenses: Iterable[Expense],
    categories: Iterable[Category],
    today: date,
) -> list[CategoryShare]:
    """
    Current-month spend per category, largest first.
    
    Expenses pointing at a category that no longer exists are left out,
    and percentages are shares of what remains.
    """
    by_id = {c.id: c for c in categories}
    first, last = month_range(today)
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for e in expenses:
        if first <= e.date <= last and e.category_id in by_id:
            totals[e.category_id] += e.amount
    
    grand_total = sum(totals.values(), ZERO)
    shares = [
        CategoryShare(
            category=by_id[category_id],
            amount=amount,
            percentage=amount / grand_total * HUNDRED if grand_total else ZERO,
        )
        for category_id, amount in totals.items()
    ]
    shares.sort(key=lambda s: s.amount, reverse=True)
    return shares


def group_expenses_by_date(
    expenses: Iterable[Expense],
    newest_first: bool = True,
) -> list[DateGroup]:
    """Group expenses by calendar date; within a day, newest entry first."""
    groups: dict[date, list[Expense]] = defaultdict(list)
    for e in expenses:
        groups[e.date].append(e)
    
    result = [
        DateGroup(day=day, expenses=sorted(items, key=lambda e: e.created_at, reverse=True))
        for day, items in groups.items()
    ]
    result.sort(key=lambda g: g.day, reverse=newest_first)
    return result
