"""Currency table and conversion package."""

from expense_tracker.currency.converter import (
    BASE_CURRENCY_CODE,
    CURRENCIES,
    format_currency_with_code,
    format_multi_currency,
    format_with_display_currency,
    from_base,
    get_currency_by_code,
    get_default_currency,
    is_base_currency,
    round_to_currency,
    to_base,
    to_base_for_storage,
)

__all__ = [
    "BASE_CURRENCY_CODE",
    "CURRENCIES",
    "format_currency_with_code",
    "format_multi_currency",
    "format_with_display_currency",
    "from_base",
    "get_currency_by_code",
    "get_default_currency",
    "is_base_currency",
    "round_to_currency",
    "to_base",
    "to_base_for_storage",
]
