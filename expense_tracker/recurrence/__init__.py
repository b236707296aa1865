"""Recurring expense evaluation and generation package."""

from expense_tracker.recurrence.evaluator import (
    add_months,
    clamp_day_to_month,
    describe_time_until,
    next_due_date,
    next_occurrence,
    upcoming_occurrences,
)
from expense_tracker.recurrence.generator import (
    GenerationResult,
    RuleGeneration,
    generate_recurring_expenses,
)

__all__ = [
    "GenerationResult",
    "RuleGeneration",
    "add_months",
    "clamp_day_to_month",
    "describe_time_until",
    "generate_recurring_expenses",
    "next_due_date",
    "next_occurrence",
    "upcoming_occurrences",
]
