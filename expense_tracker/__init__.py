"""
Expense Tracker - Source Package

The data layer of a personal expense-tracking application: expenses
logged against categories, optionally in foreign currencies, optionally
on a recurring schedule, with aggregated summaries.

DESIGN PRINCIPLES:
1. All amounts are stored in the base currency
2. Recurring occurrences are materialized exactly once
3. Core functions are pure - they return new state
4. Malformed user data degrades gracefully, it never crashes the app
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
