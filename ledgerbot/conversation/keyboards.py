"""
Reply Keyboards

Transport-neutral keyboard layouts. The Telegram transport turns a
KeyboardSpec into a ReplyKeyboardMarkup; the console renders it as
buttons. Button labels are also the exact texts the engine matches on.
"""

from typing import Optional, Sequence

from pydantic import BaseModel, Field

from ledgerbot.models.catalog import TransactionType
from ledgerbot.validation import CALENDAR_PREFIX, MONTH_NAMES


# Global commands
START = "/start"
CANCEL = "❌ Cancel"
BACK_TO_MENU = "🔙 Back to Menu"
BACK = "🔙 Back"

# Main menu
ADD_EXPENSE = "💸 Add Expense"
ADD_INCOME = "💰 Add Income"
ADD_TRANSFER = "🔄 Add Transfer"
ADD_REIMBURSEMENT = "💳 Add Reimbursement"
ADD_RECEIVABLE = "🤝 Add Receivable"
ADD_PAYABLE = "💵 Add Payable"
VIEW_RECENT = "📊 View Recent"
FINANCIAL_SUMMARY = "📈 Financial Summary"
DELETE_TRANSACTION = "🗑️ Delete Transaction"
EDIT_TRANSACTION = "📝 Edit Transaction"

# Receivable
NEW_RECEIVABLE = "➕ New Receivable"
PAYMENT_RECEIVED = "💰 Payment Received"

# Summary
MONTHLY_SUMMARY = "📅 Monthly Summary"
YEARLY_SUMMARY = "📆 Yearly Summary"

# Edit field buttons -> EditableField values
EDIT_FIELD_BUTTONS = {
    "📅 Edit Date": "date",
    "📊 Edit Type": "type",
    "📁 Edit Category": "category",
    "💳 Edit Account 1": "account1",
    "💳 Edit Account 2": "account2",
    "📝 Edit Description": "description",
    "💰 Edit Amount": "amount",
}


class KeyboardSpec(BaseModel):
    """Rows of button labels."""
    rows: list[list[str]] = Field(default_factory=list)
    one_time: bool = True
    resize: bool = True

    @property
    def buttons(self) -> list[str]:
        return [label for row in self.rows for label in row]


class Reply(BaseModel):
    """One outbound message. Text is HTML."""
    text: str
    keyboard: Optional[KeyboardSpec] = None


def _pairs(labels: Sequence[str]) -> list[list[str]]:
    return [list(labels[i:i + 2]) for i in range(0, len(labels), 2)]


def main_menu_keyboard() -> KeyboardSpec:
    return KeyboardSpec(
        rows=[
            [ADD_EXPENSE, ADD_INCOME],
            [ADD_TRANSFER, ADD_REIMBURSEMENT],
            [ADD_RECEIVABLE, ADD_PAYABLE],
            [VIEW_RECENT, FINANCIAL_SUMMARY],
            [DELETE_TRANSACTION, EDIT_TRANSACTION],
            [CANCEL],
        ],
        one_time=False,
    )


def back_keyboard() -> KeyboardSpec:
    """Free-text steps only offer Back."""
    return KeyboardSpec(rows=[[BACK]], one_time=False)


def back_to_menu_keyboard() -> KeyboardSpec:
    return KeyboardSpec(rows=[[BACK_TO_MENU]], one_time=False)


def category_keyboard(categories: Sequence[str]) -> KeyboardSpec:
    return KeyboardSpec(rows=_pairs(categories) + [[BACK]])


def account_keyboard(accounts: Sequence[str]) -> KeyboardSpec:
    return KeyboardSpec(rows=_pairs(accounts) + [[BACK]])


def receivable_type_keyboard() -> KeyboardSpec:
    return KeyboardSpec(rows=[[NEW_RECEIVABLE], [PAYMENT_RECEIVED], [BACK]])


def summary_type_keyboard() -> KeyboardSpec:
    return KeyboardSpec(rows=[[MONTHLY_SUMMARY], [YEARLY_SUMMARY], [BACK_TO_MENU]])


def year_keyboard(current_year: int) -> KeyboardSpec:
    """Current year and the two before it."""
    return KeyboardSpec(
        rows=[[f"{CALENDAR_PREFIX}{current_year - offset}"] for offset in range(3)]
        + [[BACK]]
    )


def month_keyboard() -> KeyboardSpec:
    labels = [f"{CALENDAR_PREFIX}{name}" for name in MONTH_NAMES]
    rows = [labels[i:i + 3] for i in range(0, len(labels), 3)]
    return KeyboardSpec(rows=rows + [[BACK]])


def selection_keyboard(count: int) -> KeyboardSpec:
    """Numbered buttons for a listing of `count` rows."""
    return KeyboardSpec(
        rows=[[str(number)] for number in range(1, count + 1)] + [[BACK_TO_MENU]]
    )


def edit_field_keyboard() -> KeyboardSpec:
    labels = list(EDIT_FIELD_BUTTONS)
    return KeyboardSpec(
        rows=[
            labels[0:2],
            labels[2:4],
            labels[4:6],
            labels[6:7],
            [BACK_TO_MENU],
        ]
    )


def type_keyboard() -> KeyboardSpec:
    return KeyboardSpec(
        rows=[
            [TransactionType.EXPENSE.value, TransactionType.INCOME.value],
            [TransactionType.TRANSFER.value, TransactionType.REIMBURSEMENT.value],
            [TransactionType.LOAN.value],
            [BACK],
        ]
    )
