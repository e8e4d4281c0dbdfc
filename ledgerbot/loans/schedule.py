"""
Loan Schedule Generation

A payable (loan) is not stored as an entity. It is a deterministic set of
ledger rows:

    1. Draw-down:  Loan row crediting the clearing account with the proceeds
    2. Transfer:   clearing account -> proceeds account
    3. Per period: principal Expense row + interest Expense row
    4. Optional:   processing fee Expense row

All rows are returned together so the caller can append them in one call.

Loan numbers are per account. KNOWN RACE: numbering is read-then-append
and is not transactional across processes. Two bots writing the same
sheet can compute the same number; callers inside one process serialize
loan creation per account.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from ledgerbot.models.catalog import (
    INTEREST_EXPENSE_CATEGORY,
    LOAN_CLEARING_ACCOUNT,
    TransactionType,
)
from ledgerbot.models.transaction import LedgerRow, Transaction


PROCEEDS_TRANSFER_DESCRIPTION = "Loan proceeds transfer only"
SCHEDULE_DATE_FORMAT = "%m/%d/%Y"

_LOAN_NUMBER = re.compile(r"Loan #(\d+)")


class InvalidBillingDateError(ValueError):
    """The billing date matches MM/DD/YYYY but is not a calendar date."""
    pass


def parse_billing_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, SCHEDULE_DATE_FORMAT)
    except ValueError:
        raise InvalidBillingDateError(f"{value} is not a valid calendar date")


def next_loan_number(
    rows: Iterable[LedgerRow],
    account: str,
    offsets: Optional[dict[str, int]] = None,
) -> int:
    """
    Next loan number for an account.

    Scans rows charged to the account whose description carries
    "<account> Loan #<n>", then returns max(highest n, offset - 1) + 1.
    Accounts without a configured offset start at 1.
    """
    offset = (offsets or {}).get(account, 1)
    highest = offset - 1
    tag = f"{account} Loan #"

    for row in rows:
        if row.account1 != account or tag not in row.description:
            continue
        match = _LOAN_NUMBER.search(row.description)
        if match:
            highest = max(highest, int(match.group(1)))

    return highest + 1


def generate_loan_schedule(
    account: str,
    loan_number: int,
    proceeds: Decimal,
    first_billing_date: str,
    term_count: int,
    monthly_principal: Decimal,
    monthly_interest: Decimal,
    processing_fee: Decimal,
    entry_date: str,
    description: str = "",
    proceeds_account: str = "Maribank",
) -> list[Transaction]:
    """
    Build every row of a loan.

    Args:
        account: Account the installments are charged to
        loan_number: Number from next_loan_number()
        proceeds: Amount drawn
        first_billing_date: MM/DD/YYYY of the first installment
        term_count: Number of monthly installments
        monthly_principal: Principal part of each installment
        monthly_interest: Interest part of each installment (may be 0)
        processing_fee: One-off fee; no fee row when 0
        entry_date: Date cell of the draw-down and transfer rows
        description: Description of the draw-down row
        proceeds_account: Destination of the proceeds transfer

    Returns:
        2 + 2 * term_count rows, plus one when a fee is charged

    Raises:
        InvalidBillingDateError: If first_billing_date is not a real date
    """
    first = parse_billing_date(first_billing_date)
    label = f"{account} Loan #{loan_number}"

    rows = [
        Transaction(
            date=entry_date,
            type=TransactionType.LOAN,
            account2=LOAN_CLEARING_ACCOUNT,
            description=description,
            amount=proceeds,
        ),
        Transaction(
            date=entry_date,
            type=TransactionType.TRANSFER,
            account1=LOAN_CLEARING_ACCOUNT,
            account2=proceeds_account,
            description=PROCEEDS_TRANSFER_DESCRIPTION,
            amount=proceeds,
        ),
    ]

    for period in range(term_count):
        due = (first + relativedelta(months=period)).strftime(SCHEDULE_DATE_FORMAT)
        rows.append(
            Transaction(
                date=due,
                type=TransactionType.EXPENSE,
                account1=account,
                description=f"{label} - Principal #{period + 1}",
                amount=monthly_principal,
            )
        )
        rows.append(
            Transaction(
                date=due,
                type=TransactionType.EXPENSE,
                category=INTEREST_EXPENSE_CATEGORY,
                account1=account,
                description=f"{label} - Interest #{period + 1}",
                amount=monthly_interest,
            )
        )

    if processing_fee > 0:
        rows.append(
            Transaction(
                date=first_billing_date,
                type=TransactionType.EXPENSE,
                category=INTEREST_EXPENSE_CATEGORY,
                account1=account,
                description=f"{label} - Processing fee",
                amount=processing_fee,
            )
        )

    return rows
