"""
Financial Summary Reports

DESIGN DECISION: Reports are computed from the actual ledger rows only.
Nothing is cached or estimated; a report reads the sheet, filters the
rows by date and aggregates them.

Aggregation rules:
- Amounts are summed as absolute values (Expense rows are stored negative)
- Only Income and Expense rows count; transfers and loans move money
  between accounts and are not income or spend
- Expense rows in the Reimbursibles category are pending reimbursement
  and are left out of the expense total and breakdown
"""

import calendar
import re
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from dateutil import parser as date_parser

from ledgerbot.formatting import format_currency
from ledgerbot.models.catalog import REIMBURSIBLES_CATEGORY, TransactionType
from ledgerbot.models.transaction import LedgerRow, SummaryData


logger = structlog.get_logger()

_DATE_SEPARATORS = re.compile(r"[,\s]+")


def parse_ledger_date(value: str) -> Optional[datetime]:
    """
    Parse the Date cell of a ledger row.

    Rows written by the bot carry a full timestamp
    ("03/15/2026, 02:30:00 PM"), schedule rows a plain MM/DD/YYYY and
    hand-entered rows whatever the sheet owner typed. A general parser is
    tried first, then a strict month/day/year split of the first token.

    Returns None when neither succeeds.
    """
    text = (value or "").strip()
    if not text:
        return None

    try:
        parsed = date_parser.parse(text)
        return parsed.replace(tzinfo=None)
    except (ValueError, OverflowError):
        pass

    first_token = _DATE_SEPARATORS.split(text)[0]
    parts = first_token.split("/")
    if len(parts) != 3:
        return None
    try:
        month, day, year = (int(part) for part in parts)
        return datetime(year, month, day)
    except ValueError:
        return None


def filter_by_range(
    rows: Iterable[LedgerRow],
    start: datetime,
    end: datetime,
) -> list[LedgerRow]:
    """
    Keep rows dated within [start, end], both bounds inclusive.

    Rows with an unparsable date are skipped and logged, never fatal.
    """
    kept = []
    for row in rows:
        moment = parse_ledger_date(row.date)
        if moment is None:
            if row.date.strip():
                logger.warning(
                    "unparsable_ledger_date",
                    position=row.position,
                    value=row.date,
                )
            continue
        if start <= moment <= end:
            kept.append(row)

    logger.debug(
        "rows_filtered_by_date",
        start=start.isoformat(),
        end=end.isoformat(),
        kept=len(kept),
    )
    return kept


def calculate_summary(rows: list[LedgerRow]) -> SummaryData:
    """Aggregate rows into income/expense totals and per-category maps."""
    total_income = Decimal("0")
    total_expense = Decimal("0")
    income_by_category: dict[str, Decimal] = {}
    expense_by_category: dict[str, Decimal] = {}

    for row in rows:
        amount = abs(row.amount)

        if row.type == TransactionType.INCOME.value:
            total_income += amount
            income_by_category[row.category] = (
                income_by_category.get(row.category, Decimal("0")) + amount
            )
        elif row.type == TransactionType.EXPENSE.value:
            if row.category == REIMBURSIBLES_CATEGORY:
                continue
            total_expense += amount
            expense_by_category[row.category] = (
                expense_by_category.get(row.category, Decimal("0")) + amount
            )

    return SummaryData(
        total_income=total_income,
        total_expense=total_expense,
        net_income=total_income - total_expense,
        income_by_category=income_by_category,
        expense_by_category=expense_by_category,
        transaction_count=len(rows),
    )


def month_range(year: int, month: int) -> tuple[datetime, datetime]:
    """First instant to last instant of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return (
        datetime(year, month, 1),
        datetime(year, month, last_day, 23, 59, 59, 999999),
    )


def year_range(year: int) -> tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1),
        datetime(year, 12, 31, 23, 59, 59, 999999),
    )


def render_summary_report(
    summary: SummaryData,
    period_name: str,
    start: datetime,
    end: datetime,
    currency_symbol: str = "₱",
    date_format: str = "%m/%d/%Y",
) -> str:
    """HTML report sent back to the chat."""
    span = f"📅 {start.strftime(date_format)} - {end.strftime(date_format)}"

    if summary.transaction_count == 0:
        return f"📊 <b>{period_name} Summary</b>\n\nNo transactions.\n\n{span}"

    def money(amount: Decimal) -> str:
        return format_currency(amount, currency_symbol)

    lines = [
        f"📊 <b>{period_name} Summary</b>",
        "",
        span,
        f"📝 Transactions: {summary.transaction_count}",
        "",
        "💰 <b>INCOME</b>",
        f"Total: {money(summary.total_income)}",
    ]
    if summary.income_by_category:
        lines += ["", "Breakdown:"]
        lines += [
            f"  • {category}: {money(amount)}"
            for category, amount in summary.income_by_category.items()
        ]

    lines += [
        "",
        "💸 <b>EXPENSES</b>",
        f"Total: {money(summary.total_expense)}",
    ]
    if summary.expense_by_category:
        lines += ["", "Breakdown:"]
        lines += [
            f"  • {category}: {money(amount)}"
            for category, amount in summary.expense_by_category.items()
        ]

    lines += [
        "",
        "━━━━━━━━━━━━━━━━━",
        "📈 <b>NET INCOME</b>",
        money(summary.net_income),
        "",
    ]

    if summary.net_income > 0:
        lines.append("✅ You saved money!")
    elif summary.net_income < 0:
        lines.append("⚠️ You spent more than earned.")
    else:
        lines.append("➖ Break even.")

    return "\n".join(lines)
