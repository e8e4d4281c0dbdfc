"""
Input Parsing and Validation

Every free-text or button reply from the user passes through one of these
pure functions before it can touch a session draft.

DESIGN DECISION: Validation NEVER silently fixes input.
A parser either returns a clean value or raises InputRejected with a
message that is shown to the user above the re-rendered prompt.

Known gap: the MM/DD/YYYY check is a pattern check only. 02/30/2024
passes here; code that needs a real date must convert it and report
the failure itself.
"""

import re
from datetime import MAXYEAR, MINYEAR
from decimal import Decimal, InvalidOperation
from typing import Optional

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_NUMERIC_PREFIX = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")

DATE_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/(0[1-9]|[12][0-9]|3[01])/\d{4}$")

MAX_TERM_COUNT = 360

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

CALENDAR_PREFIX = "📅 "


class InputRejected(ValueError):
    """User input failed validation for the current step."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def parse_amount(value) -> Decimal:
    """
    Parse a user- or sheet-supplied amount.

    Thousands separators and every character outside digits, '.' and '-'
    are dropped, then the longest leading number is read.
    Anything unparsable becomes Decimal('0').
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    cleaned = _NON_NUMERIC.sub("", str(value or "").replace(",", ""))
    match = _NUMERIC_PREFIX.match(cleaned)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")


def parse_positive_amount(text: str, message: str = "❌ Invalid amount.") -> Decimal:
    amount = parse_amount(text)
    if amount <= 0:
        raise InputRejected(message)
    return amount


def parse_non_negative_amount(text: str, message: str = "❌ Invalid amount.") -> Decimal:
    """Interest and fee fields accept 0."""
    amount = parse_amount(text)
    if amount < 0:
        raise InputRejected(message)
    return amount


def parse_signed_amount(text: str, message: str = "❌ Invalid amount.") -> Decimal:
    """Edit-amount keeps the typed sign and accepts 0; text with no number is rejected."""
    cleaned = _NON_NUMERIC.sub("", str(text or "").replace(",", ""))
    if not _NUMERIC_PREFIX.match(cleaned):
        raise InputRejected(message)
    return parse_amount(text)


def is_valid_date_string(text: str) -> bool:
    """Strict MM/DD/YYYY pattern check (no calendar check)."""
    return bool(DATE_PATTERN.match(text or ""))


def parse_date_string(text: str, message: str = "❌ Invalid format. Use MM/DD/YYYY") -> str:
    text = (text or "").strip()
    if not is_valid_date_string(text):
        raise InputRejected(message)
    return text


def parse_term_count(text: str) -> int:
    """Loan term in months, 1 to 360."""
    try:
        terms = int((text or "").strip())
    except ValueError:
        raise InputRejected(f"❌ Invalid number. Enter months (1-{MAX_TERM_COUNT}):")
    if terms <= 0 or terms > MAX_TERM_COUNT:
        raise InputRejected(f"❌ Invalid number. Enter months (1-{MAX_TERM_COUNT}):")
    return terms


def parse_choice(text: str, options, message: str) -> str:
    """Accept only one of the offered button labels."""
    if text not in options:
        raise InputRejected(message)
    return text


def parse_selection(text: str, count: int) -> int:
    """A 1-based index into a numbered listing of `count` rows."""
    try:
        selection = int((text or "").strip())
    except ValueError:
        raise InputRejected("❌ Invalid selection.")
    if selection < 1 or selection > count:
        raise InputRejected("❌ Invalid selection.")
    return selection


def parse_year_button(text: str) -> Optional[int]:
    """'📅 2026' -> 2026; None when the text is not a year button."""
    if not (text or "").startswith(CALENDAR_PREFIX):
        return None
    try:
        year = int(text[len(CALENDAR_PREFIX):].strip())
    except ValueError:
        return None
    return year if MINYEAR <= year <= MAXYEAR else None


def parse_month_button(text: str) -> Optional[int]:
    """'📅 March' -> 3; None when the text is not a month button."""
    if not (text or "").startswith(CALENDAR_PREFIX):
        return None
    name = text[len(CALENDAR_PREFIX):].strip()
    if name not in MONTH_NAMES:
        return None
    return MONTH_NAMES.index(name) + 1
