"""Aggregation queries over the expense collection."""

from expense_tracker.queries.aggregations import (
    CategoryShare,
    DailyAmount,
    DateGroup,
    MonthlyAmount,
    Period,
    PeriodComparison,
    PeriodStats,
    category_breakdown,
    compare_months,
    compare_periods,
    expenses_by_category,
    group_expenses_by_date,
    month_range,
    monthly_spending,
    monthly_total,
    percent_change,
    period_stats,
    total_between,
    total_by_category,
    weekly_trend,
)

__all__ = [
    "CategoryShare",
    "DailyAmount",
    "DateGroup",
    "MonthlyAmount",
    "Period",
    "PeriodComparison",
    "PeriodStats",
    "category_breakdown",
    "compare_months",
    "compare_periods",
    "expenses_by_category",
    "group_expenses_by_date",
    "month_range",
    "monthly_spending",
    "monthly_total",
    "percent_change",
    "period_stats",
    "total_between",
    "total_by_category",
    "weekly_trend",
]
