"""
Recurring-Expense Generator

Materializes due occurrences of every active recurrence rule as concrete
expenses, exactly once each.

GUARANTEES:
- At most one expense per occurrence date per rule
- Missed periods are caught up in a single run
- Nothing is generated after `now` or after the rule's end date
- Running twice with the same `now` creates nothing the second time,
  because each rule's watermark already sits on its last due occurrence

END DATE POLICY: end_date is inclusive. An occurrence that falls on the
end date is generated. A rule whose end date has already passed is still
caught up to that end date.

The generator is a pure function of (state, now): it returns a new state
and never touches storage. The caller persists the result.
"""

from datetime import date, datetime
from typing import Union

import structlog
from pydantic import BaseModel, Field

from expense_tracker.models.expense import Expense, ExpenseState, RecurringExpense
from expense_tracker.recurrence.evaluator import next_occurrence


logger = structlog.get_logger(__name__)


class RuleGeneration(BaseModel):
    """What one rule produced during a run."""
    rule_id: str
    occurrence_dates: list[date] = Field(
        ...,
        description="Occurrences materialized in this run, oldest first"
    )
    last_generated: date = Field(..., description="The rule's new watermark")


class GenerationResult(BaseModel):
    """Outcome of a generator run."""
    state: ExpenseState
    created: list[Expense] = Field(default_factory=list)
    rules: list[RuleGeneration] = Field(
        default_factory=list,
        description="One entry per rule whose watermark advanced"
    )
    
    @property
    def created_count(self) -> int:
        return len(self.created)
    
    @property
    def changed(self) -> bool:
        return bool(self.created)


def _as_day(now: Union[datetime, date]) -> date:
    return now.date() if isinstance(now, datetime) else now


def _due_occurrences(rule: RecurringExpense, today: date) -> list[date]:
    """All occurrences of a rule that are due on or before today."""
    due: list[date] = []
    last = rule.last_generated
    while True:
        candidate = next_occurrence(rule.recurrence_type, rule.start_date, last)
        if candidate is None or candidate > today:
            break
        if rule.end_date and candidate > rule.end_date:
            break
        if last is not None and candidate <= last:
            # Watermark never moves backwards
            break
        due.append(candidate)
        last = candidate
    return due


def _materialize(rule: RecurringExpense, occurrence: date, created_at: datetime) -> Expense:
    return Expense(
        title=rule.title,
        amount=rule.amount,
        category_id=rule.category_id,
        date=occurrence,
        note=rule.note,
        created_at=created_at,
        recurring_expense_id=rule.id,
    )


def generate_recurring_expenses(
    state: ExpenseState,
    now: Union[datetime, date],
) -> GenerationResult:
    """
    Generate every due recurring expense up to now.
    
    Args:
        state: Current state (not modified)
        now: Current wall-clock time, injected by the caller
    
    Returns:
        GenerationResult with the new state and the created expenses.
        When nothing is due, result.state is the input state itself.
    """
    today = _as_day(now)
    created_at = now if isinstance(now, datetime) else datetime.combine(now, datetime.min.time())
    
    created: list[Expense] = []
    generations: list[RuleGeneration] = []
    rules: list[RecurringExpense] = []
    
    for rule in state.recurring_expenses:
        if not rule.is_active:
            rules.append(rule)
            continue
        
        due = _due_occurrences(rule, today)
        if not due:
            rules.append(rule)
            continue
        
        created.extend(_materialize(rule, d, created_at) for d in due)
        rules.append(rule.model_copy(update={"last_generated": due[-1]}))
        generations.append(RuleGeneration(
            rule_id=rule.id,
            occurrence_dates=due,
            last_generated=due[-1],
        ))
    
    logger.info(
        "recurring_generation_completed",
        today=today.isoformat(),
        rules_evaluated=len(state.recurring_expenses),
        rules_advanced=len(generations),
        expenses_created=len(created),
    )
    
    if not created:
        return GenerationResult(state=state)
    
    new_state = state.model_copy(update={
        "expenses": [*state.expenses, *created],
        "recurring_expenses": rules,
    })
    return GenerationResult(state=new_state, created=created, rules=generations)
