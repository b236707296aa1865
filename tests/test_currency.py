"""Tests for the currency table, conversion and formatting."""

import pytest
from decimal import Decimal

from expense_tracker.currency import converter
from expense_tracker.currency.converter import (
    BASE_CURRENCY_CODE,
    CURRENCIES,
    format_currency_with_code,
    format_multi_currency,
    format_with_display_currency,
    from_base,
    get_currency_by_code,
    get_default_currency,
    round_to_currency,
    to_base,
    to_base_for_storage,
)
from expense_tracker.models.expense import Currency


class TestCurrencyTable:
    """Tests for currency lookup."""

    def test_base_currency_has_identity_rate(self):
        """Test the base currency entry."""
        base = get_default_currency()
        assert base.code == BASE_CURRENCY_CODE == "MYR"
        assert base.symbol == "RM"
        assert base.rate == Decimal("1")

    def test_codes_are_unique(self):
        """Test that every code appears once."""
        codes = [c.code for c in CURRENCIES]
        assert len(codes) == len(set(codes))

    def test_lookup_is_case_insensitive(self):
        """Test lookup normalizes the code."""
        assert get_currency_by_code("usd").code == "USD"
        assert get_currency_by_code(" eur ").code == "EUR"

    @pytest.mark.parametrize("code", ["XYZ", "", None, "dollars"])
    def test_unknown_codes_fall_back_to_base(self, code):
        """Test unknown codes resolve to the base currency."""
        assert get_currency_by_code(code).code == "MYR"


class TestConversion:
    """Tests for to_base / from_base."""

    def test_usd_entry_converts_to_base(self):
        """Test 100 USD at rate 0.22 is stored as 454.55 MYR."""
        assert to_base_for_storage(Decimal("100"), "USD") == Decimal("454.55")
        assert round_to_currency(to_base(100, "USD"), "MYR") == Decimal("454.55")

    def test_converting_back_is_close_to_original(self):
        """Test the stored base amount converts back to about 100 USD."""
        back = from_base(Decimal("454.55"), "USD")
        assert abs(back - Decimal("100")) < Decimal("0.01")
        assert round_to_currency(back, "USD") == Decimal("100.00")

    def test_base_currency_is_unchanged(self):
        """Test base amounts pass through untouched."""
        assert to_base(Decimal("12.34"), "MYR") == Decimal("12.34")
        assert from_base(Decimal("12.34"), "MYR") == Decimal("12.34")

    def test_unknown_code_is_identity(self):
        """Test malformed persisted codes never raise."""
        assert to_base(Decimal("50"), "ZZZ") == Decimal("50")
        assert from_base(Decimal("50"), None) == Decimal("50")

    @pytest.mark.parametrize("currency", CURRENCIES, ids=lambda c: c.code)
    def test_round_trip_identity(self, currency):
        """Test to_base(from_base(x)) == x for every currency."""
        amount = Decimal("123.45")
        assert to_base(from_base(amount, currency.code), currency.code) == amount

    def test_floats_are_converted_through_str(self):
        """Test float input does not carry binary noise."""
        assert to_base(0.1, "MYR") == Decimal("0.1")


class TestFormatting:
    """Tests for currency formatting."""

    def test_two_decimal_currency(self):
        """Test standard currencies show exactly two decimals."""
        assert format_currency_with_code(Decimal("100"), "USD") == "$100.00"
        assert format_currency_with_code(Decimal("454.545"), "MYR") == "RM454.55"
        assert format_currency_with_code(Decimal("1234.5"), "MYR") == "RM1234.50"

    def test_whole_unit_currencies(self):
        """Test currencies without a minor unit round to whole units."""
        assert format_currency_with_code(Decimal("3250.4"), "JPY") == "¥3,250"
        assert format_currency_with_code(Decimal("1234567.5"), "IDR") == "Rp1,234,568"

    def test_whole_unit_rule_is_table_driven(self):
        """Test the no-decimals rule comes from the table entries."""
        whole = {c.code for c in CURRENCIES if c.decimal_places == 0}
        assert whole == {"JPY", "IDR"}

    def test_new_whole_unit_currency_needs_only_a_table_entry(self, monkeypatch):
        """Test adding a currency to the table changes formatting."""
        won = Currency(code="KRW", symbol="₩", name="Korean Won", rate=Decimal("300"), decimal_places=0)
        monkeypatch.setitem(converter._BY_CODE, "KRW", won)
        assert format_currency_with_code(Decimal("1500.6"), "KRW") == "₩1,501"

    def test_unknown_code_formats_as_base(self):
        """Test formatting with an unknown code uses the base currency."""
        assert format_currency_with_code(Decimal("5"), "???") == "RM5.00"

    def test_multi_currency_shows_original(self):
        """Test foreign entries show their original amount."""
        text = format_multi_currency(Decimal("454.55"), Decimal("100"), "USD")
        assert text == "RM454.55 ($100.00)"

    def test_multi_currency_without_original(self):
        """Test base entries show only the base amount."""
        assert format_multi_currency(Decimal("20")) == "RM20.00"
        assert format_multi_currency(Decimal("20"), Decimal("20"), "MYR") == "RM20.00"

    def test_display_currency_conversion(self):
        """Test amounts are converted into the display currency."""
        assert format_with_display_currency(Decimal("454.55"), "USD") == "$100.00"
        assert format_with_display_currency(Decimal("100"), "JPY") == "¥3,250"
        assert format_with_display_currency(Decimal("454.55"), "MYR") == "RM454.55"

    def test_display_currency_unknown_code(self):
        """Test an unknown display currency falls back to base."""
        assert format_with_display_currency(Decimal("454.55"), "ABC") == "RM454.55"
