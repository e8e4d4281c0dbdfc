"""Input validation package."""

from ledgerbot.validation.inputs import (
    CALENDAR_PREFIX,
    DATE_PATTERN,
    MONTH_NAMES,
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

__all__ = [
    "CALENDAR_PREFIX",
    "DATE_PATTERN",
    "MONTH_NAMES",
    "InputRejected",
    "is_valid_date_string",
    "parse_amount",
    "parse_choice",
    "parse_date_string",
    "parse_month_button",
    "parse_non_negative_amount",
    "parse_positive_amount",
    "parse_selection",
    "parse_signed_amount",
    "parse_term_count",
    "parse_year_button",
]
