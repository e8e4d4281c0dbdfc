"""Loan (payable) schedule generation."""

from ledgerbot.loans.schedule import (
    InvalidBillingDateError,
    PROCEEDS_TRANSFER_DESCRIPTION,
    generate_loan_schedule,
    next_loan_number,
    parse_billing_date,
)

__all__ = [
    "InvalidBillingDateError",
    "PROCEEDS_TRANSFER_DESCRIPTION",
    "generate_loan_schedule",
    "next_loan_number",
    "parse_billing_date",
]
