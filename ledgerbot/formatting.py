"""
Presentation helpers shared by prompts and reports.

Currency symbol, timezone and date formats come from LedgerSettings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from ledgerbot.validation import parse_amount


def format_currency(amount, symbol: str = "₱") -> str:
    """Absolute value with thousands separators and two decimals."""
    value = abs(parse_amount(amount))
    return f"{symbol}{value:,.2f}"


def current_timestamp(
    timezone: str = "Asia/Manila",
    fmt: str = "%m/%d/%Y, %I:%M:%S %p",
    now: Optional[datetime] = None,
) -> str:
    """Timestamp written to the Date cell of new entries."""
    moment = now or datetime.now(ZoneInfo(timezone))
    return moment.strftime(fmt)


def signed_amount_cell(amount: Decimal) -> str:
    """Amount as written to the sheet: plain, signed, no symbol."""
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f") if amount == amount.to_integral() else str(amount)
