"""
Recurrence Rule Evaluator

Computes the next occurrence date of a recurrence rule given its
watermark (the last occurrence already materialized).

MONTH ROLLOVER POLICY: Monthly occurrences keep the start date's day of
month and are clamped to the last valid day of shorter months. The
series is anchored to the start date rather than to the previous
occurrence, so a rule starting on Jan 31 yields Feb 29, Mar 31, Apr 30,
and never drifts to the 29th for the rest of the year.

The evaluator returns ONE candidate. Catching up on several missed
periods is the generator's job.
"""

import calendar
from datetime import date, timedelta
from typing import Optional, Union

from expense_tracker.models.expense import RecurrenceType, RecurringExpense


_DAY_STEPS = {
    RecurrenceType.DAILY: 1,
    RecurrenceType.WEEKLY: 7,
}


def _coerce_type(recurrence_type: Union[RecurrenceType, str, None]) -> Optional[RecurrenceType]:
    if isinstance(recurrence_type, RecurrenceType):
        return recurrence_type
    try:
        return RecurrenceType(recurrence_type)
    except ValueError:
        return None


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to the valid range for the given year/month."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(d: date, n: int, anchor_day: Optional[int] = None) -> date:
    """
    Add n calendar months to d, clamping the day to the month's end.
    
    anchor_day, when given, is the preferred day of month instead of d.day.
    """
    month_index = d.month - 1 + n
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = clamp_day_to_month(year, month, anchor_day or d.day)
    return date(year, month, day)


def _months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def _next_monthly(start_date: date, last: date) -> date:
    """First start-anchored monthly occurrence strictly after last."""
    offset = max(_months_between(start_date, last), 0)
    candidate = add_months(start_date, offset)
    while candidate <= last:
        offset += 1
        candidate = add_months(start_date, offset)
    return candidate


def next_occurrence(
    recurrence_type: Union[RecurrenceType, str, None],
    start_date: date,
    last_generated: Optional[date] = None,
) -> Optional[date]:
    """
    Return the next occurrence of a rule, or None if it never occurs.
    
    Args:
        recurrence_type: daily, weekly or monthly; 'none' and unknown
            values are not evaluable and yield None
        start_date: First eligible occurrence date
        last_generated: Watermark, the last occurrence already generated
    
    Returns:
        The first occurrence when there is no watermark (start_date
        itself), otherwise the watermark advanced by one unit, never
        earlier than start_date.
    """
    kind = _coerce_type(recurrence_type)
    if kind is None or kind == RecurrenceType.NONE:
        return None
    
    if last_generated is None:
        return start_date
    
    if kind == RecurrenceType.MONTHLY:
        candidate = _next_monthly(start_date, last_generated)
    else:
        candidate = last_generated + timedelta(days=_DAY_STEPS[kind])
    
    # A rule cannot produce occurrences before its declared start
    if candidate < start_date:
        return start_date
    return candidate


def next_due_date(rule: RecurringExpense) -> Optional[date]:
    """Next occurrence of a rule, or None if inactive or past its end date."""
    if not rule.is_active:
        return None
    candidate = next_occurrence(rule.recurrence_type, rule.start_date, rule.last_generated)
    if candidate is None:
        return None
    if rule.end_date and candidate > rule.end_date:
        return None
    return candidate


def upcoming_occurrences(
    rules: list[RecurringExpense],
    limit: Optional[int] = None,
) -> list[tuple[RecurringExpense, date]]:
    """Active rules paired with their next due date, soonest first."""
    upcoming = []
    for rule in rules:
        due = next_due_date(rule)
        if due is not None:
            upcoming.append((rule, due))
    upcoming.sort(key=lambda pair: pair[1])
    return upcoming[:limit] if limit is not None else upcoming


def describe_time_until(next_date: date, today: date) -> str:
    """Short label for how far away an occurrence is, e.g. 'In 2 weeks'."""
    days = (next_date - today).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < 7:
        return f"In {days} days"
    if days < 30:
        weeks = days // 7
        return f"In {weeks} week{'s' if weeks > 1 else ''}"
    return f"{next_date.strftime('%b')} {next_date.day}"
