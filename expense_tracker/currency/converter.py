"""
Currency Conversion

Static rate table plus conversion to and from the base currency (MYR).

DESIGN DECISION: Unknown currency codes resolve to the base currency
instead of raising. Codes come from persisted user data, and a
corrupted or retired code must never make an expense unreadable.

The number of decimals shown for a currency is a property of its table
entry, so adding a whole-unit currency is a one-line table change.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from expense_tracker.models.expense import Currency


Number = Union[Decimal, int, float, str]

BASE_CURRENCY_CODE = "MYR"

# Rates: units of the currency per 1 MYR
CURRENCIES: list[Currency] = [
    Currency(code="MYR", symbol="RM", name="Malaysian Ringgit", rate=Decimal("1")),
    Currency(code="USD", symbol="$", name="US Dollar", rate=Decimal("0.22")),
    Currency(code="EUR", symbol="€", name="Euro", rate=Decimal("0.20")),
    Currency(code="GBP", symbol="£", name="British Pound", rate=Decimal("0.17")),
    Currency(code="SGD", symbol="S$", name="Singapore Dollar", rate=Decimal("0.29")),
    Currency(code="AUD", symbol="A$", name="Australian Dollar", rate=Decimal("0.33")),
    Currency(code="CNY", symbol="¥", name="Chinese Yuan", rate=Decimal("1.55")),
    Currency(code="THB", symbol="฿", name="Thai Baht", rate=Decimal("7.60")),
    Currency(code="INR", symbol="₹", name="Indian Rupee", rate=Decimal("18.20")),
    Currency(code="JPY", symbol="¥", name="Japanese Yen", rate=Decimal("32.50"), decimal_places=0),
    Currency(code="IDR", symbol="Rp", name="Indonesian Rupiah", rate=Decimal("3450"), decimal_places=0),
]

_BY_CODE = {c.code: c for c in CURRENCIES}


def _as_decimal(amount: Number) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    # str() keeps floats like 0.1 from dragging binary noise along
    return Decimal(str(amount))


def get_default_currency() -> Currency:
    """The base currency entry."""
    return _BY_CODE[BASE_CURRENCY_CODE]


def get_currency_by_code(code: Optional[str]) -> Currency:
    """Look up a currency; unknown or empty codes fall back to the base."""
    if not code:
        return get_default_currency()
    return _BY_CODE.get(code.strip().upper(), get_default_currency())


def is_base_currency(code: Optional[str]) -> bool:
    return get_currency_by_code(code).code == BASE_CURRENCY_CODE


def to_base(amount: Number, from_code: Optional[str]) -> Decimal:
    """
    Convert an amount entered in from_code into the base currency.
    
    Not rounded; see to_base_for_storage for the value that gets stored.
    """
    value = _as_decimal(amount)
    currency = get_currency_by_code(from_code)
    if currency.code == BASE_CURRENCY_CODE:
        return value
    return value / currency.rate


def from_base(amount: Number, to_code: Optional[str]) -> Decimal:
    """Convert a base-currency amount into to_code. Not rounded."""
    value = _as_decimal(amount)
    currency = get_currency_by_code(to_code)
    if currency.code == BASE_CURRENCY_CODE:
        return value
    return value * currency.rate


def round_to_currency(amount: Number, code: Optional[str]) -> Decimal:
    """Round to the number of decimals the currency is displayed with."""
    places = get_currency_by_code(code).decimal_places
    quantum = Decimal(1).scaleb(-places)
    return _as_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)


def to_base_for_storage(amount: Number, from_code: Optional[str]) -> Decimal:
    """Convert to base and round to base precision, as stored on an Expense."""
    return round_to_currency(to_base(amount, from_code), BASE_CURRENCY_CODE)


def format_currency_with_code(amount: Number, code: Optional[str] = BASE_CURRENCY_CODE) -> str:
    """
    Format an amount with the currency's symbol.
    
    Whole-unit currencies get thousands separators ('¥3,250');
    all others show exactly two decimals ('RM454.55').
    """
    currency = get_currency_by_code(code)
    rounded = round_to_currency(amount, currency.code)
    if currency.decimal_places == 0:
        formatted = f"{rounded:,.0f}"
    else:
        formatted = f"{rounded:.{currency.decimal_places}f}"
    return f"{currency.symbol}{formatted}"


def format_multi_currency(
    base_amount: Number,
    original_amount: Optional[Number] = None,
    original_currency: Optional[str] = None,
) -> str:
    """
    Format a stored amount, appending the originally entered amount.
    
    e.g. 'RM454.55 ($100.00)' for an expense typed in as USD 100.
    """
    formatted_base = format_currency_with_code(base_amount, BASE_CURRENCY_CODE)
    if (
        original_amount is not None
        and original_currency
        and not is_base_currency(original_currency)
    ):
        formatted_original = format_currency_with_code(original_amount, original_currency)
        return f"{formatted_base} ({formatted_original})"
    return formatted_base


def format_with_display_currency(base_amount: Number, display_code: Optional[str]) -> str:
    """Convert a base amount into the display currency and format it."""
    currency = get_currency_by_code(display_code)
    return format_currency_with_code(from_base(base_amount, currency.code), currency.code)
