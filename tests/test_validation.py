"""Tests for input parsing."""

import pytest
from decimal import Decimal

from ledgerbot.formatting import current_timestamp, format_currency, signed_amount_cell
from ledgerbot.validation import (
    InputRejected,
    is_valid_date_string,
    parse_amount,
    parse_choice,
    parse_date_string,
    parse_month_button,
    parse_non_negative_amount,
    parse_positive_amount,
    parse_selection,
    parse_signed_amount,
    parse_term_count,
    parse_year_button,
)

from tests.conftest import FIXED_NOW, FIXED_TIMESTAMP


class TestAmountParsing:
    """Tests for amount parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("250", Decimal("250")),
            ("1,234.50", Decimal("1234.50")),
            ("₱500", Decimal("500")),
            ("-45", Decimal("-45")),
            ("12abc", Decimal("12")),
            ("abc", Decimal("0")),
            ("", Decimal("0")),
        ],
    )
    def test_parse_amount(self, text, expected):
        assert parse_amount(text) == expected

    def test_positive_rejects_zero_and_garbage(self):
        for text in ("0", "abc", "-5"):
            with pytest.raises(InputRejected):
                parse_positive_amount(text)

    def test_non_negative_accepts_zero(self):
        """Test interest and fee fields accept 0."""
        assert parse_non_negative_amount("0") == Decimal("0")
        assert parse_non_negative_amount("abc") == Decimal("0")
        with pytest.raises(InputRejected):
            parse_non_negative_amount("-1")

    def test_signed_keeps_sign_and_zero(self):
        assert parse_signed_amount("-75") == Decimal("-75")
        assert parse_signed_amount("0") == Decimal("0")
        for text in ("abc", "", "-"):
            with pytest.raises(InputRejected):
                parse_signed_amount(text)

    def test_rejection_carries_message(self):
        with pytest.raises(InputRejected) as exc_info:
            parse_positive_amount("x", "❌ Invalid amount. Enter a valid number:")
        assert exc_info.value.message == "❌ Invalid amount. Enter a valid number:"


class TestDateParsing:
    """Tests for the MM/DD/YYYY pattern check."""

    def test_valid_dates(self):
        assert is_valid_date_string("12/15/2024")
        assert parse_date_string(" 01/01/2025 ") == "01/01/2025"

    @pytest.mark.parametrize("text", ["13/01/2024", "2/3/2024", "2024-01-01", "12/32/2024", ""])
    def test_invalid_dates(self, text):
        with pytest.raises(InputRejected):
            parse_date_string(text)

    def test_pattern_only_check(self):
        """Test that a non-calendar date passes the pattern check."""
        assert is_valid_date_string("02/30/2024")


class TestChoiceParsing:
    """Tests for buttons, selections and terms."""

    def test_term_count_bounds(self):
        assert parse_term_count("12") == 12
        assert parse_term_count("360") == 360
        for text in ("0", "361", "abc", "-3"):
            with pytest.raises(InputRejected):
                parse_term_count(text)

    def test_choice_must_be_offered(self):
        assert parse_choice("Cash", ["Cash", "BDO"], "bad") == "Cash"
        with pytest.raises(InputRejected, match="bad"):
            parse_choice("cash", ["Cash", "BDO"], "bad")

    def test_selection_range(self):
        assert parse_selection("3", 5) == 3
        for text in ("0", "6", "x"):
            with pytest.raises(InputRejected):
                parse_selection(text, 5)

    def test_year_button(self):
        assert parse_year_button("📅 2026") == 2026
        assert parse_year_button("2026") is None
        assert parse_year_button("📅 soon") is None
        assert parse_year_button("📅 10000") is None
        assert parse_year_button("📅 0") is None

    def test_month_button(self):
        assert parse_month_button("📅 March") == 3
        assert parse_month_button("📅 December") == 12
        assert parse_month_button("📅 Smarch") is None
        assert parse_month_button("March") is None


class TestFormatting:
    """Tests for presentation helpers."""

    def test_format_currency_is_absolute(self):
        assert format_currency(Decimal("-1234.5")) == "₱1,234.50"
        assert format_currency("250", symbol="$") == "$250.00"

    @pytest.mark.parametrize("text", ["250", "-1,234.56", "₱99.5", "0.01"])
    def test_format_then_parse_keeps_magnitude(self, text):
        amount = parse_amount(text)
        assert parse_amount(format_currency(amount)) == abs(amount)

    def test_signed_amount_cell(self):
        assert signed_amount_cell(Decimal("-250.00")) == "-250"
        assert signed_amount_cell(Decimal("12.75")) == "12.75"
        assert signed_amount_cell(Decimal("0")) == "0"

    def test_current_timestamp_format(self):
        assert current_timestamp(now=FIXED_NOW) == FIXED_TIMESTAMP


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
