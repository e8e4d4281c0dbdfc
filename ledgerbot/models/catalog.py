"""
Ledger Catalog

The fixed vocabulary of the ledger: transaction types, default category
lists, default accounts and the sentinel accounts used to model the
liability/asset leg of receivables and loans.

The lists here are defaults only; LedgerSettings can override them.
"""

from enum import Enum


class TransactionType(str, Enum):
    """Value written to the Type column."""
    EXPENSE = "Expense"
    INCOME = "Income"
    TRANSFER = "Transfer"
    REIMBURSEMENT = "Reimbursement"
    LOAN = "Loan"


# Sentinel accounts - never a real bank account
RECEIVABLE_ACCOUNT = "Receivable"
LOAN_CLEARING_ACCOUNT = "Loan - clearing"

# Categories with special meaning
REIMBURSIBLES_CATEGORY = "Reimbursibles"
INTEREST_EXPENSE_CATEGORY = "Interest expense"

INCOME_CATEGORIES = (
    "Salary",
    "Interest income",
    "Investment income",
    "Affiliate income",
)

EXPENSE_CATEGORIES = (
    "Food",
    "Fastfood",
    "Hygiene",
    "Bills",
    "Gym",
    "Motorcycle",
    "MExp",
    "Cats",
    "Investment",
    INTEREST_EXPENSE_CATEGORY,
    REIMBURSIBLES_CATEGORY,
    "Other expenses",
)

REIMBURSEMENT_CATEGORIES = (
    REIMBURSIBLES_CATEGORY,
)

DEFAULT_ACCOUNTS = (
    "Cash",
    "Maribank",
    "BDO",
    "BPI",
    "Gcash",
    "Maya",
    "Savings - eC-Savings",
    "EF – UnoDigital",
    "BPI - Platinum MC",
    "Eastwest - Gold MC",
    "Unionbank - Platinum Visa",
    "Settle Up",
    RECEIVABLE_ACCOUNT,
    LOAN_CLEARING_ACCOUNT,
)

# Accounts whose loan numbering started before this ledger existed
DEFAULT_LOAN_NUMBER_OFFSETS = {
    "BPI - Platinum MC": 2,
    "Eastwest - Gold MC": 5,
}
