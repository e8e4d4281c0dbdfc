"""
Conversation Prompts

Every step has exactly one canonical prompt. The same rendering is used
when a step is entered going forward, when invalid input is re-prompted
(with the error above it) and when Back restores the step.

Completion messages (saved, deleted, updated, loan created) live here too,
so all user-facing text is in one module.
"""

from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ledgerbot.config import LedgerSettings
from ledgerbot.conversation import keyboards as kb
from ledgerbot.conversation.keyboards import KeyboardSpec, Reply
from ledgerbot.formatting import format_currency
from ledgerbot.models.catalog import TransactionType
from ledgerbot.models.session import (
    DeleteDraft,
    EditableField,
    EditDraft,
    PayableDraft,
    ReceivableDraft,
    ReceivableKind,
    Session,
    SimpleEntryDraft,
    Step,
    SummaryDraft,
    SummaryPeriod,
)
from ledgerbot.models.transaction import LedgerRow, Transaction


WELCOME = "👋 Welcome to your Personal Finance Tracker!\n\nChoose an option:"
CANCELLED = "✅ Cancelled."
MAIN_MENU = "🏠 Main menu:"
USE_MENU_BUTTONS = "Use menu buttons:"
PERSISTENCE_FAILED = (
    "❌ Something went wrong while talking to the ledger. "
    "Nothing was saved; please start again."
)
STALE_SELECTION = (
    "⚠️ That transaction changed in the sheet after it was listed. "
    "Nothing was changed; please start again."
)

EDIT_FIELD_LABELS = {
    EditableField.DATE: "Date",
    EditableField.TYPE: "Type",
    EditableField.CATEGORY: "Category",
    EditableField.ACCOUNT1: "Account 1",
    EditableField.ACCOUNT2: "Account 2",
    EditableField.DESCRIPTION: "Description",
    EditableField.AMOUNT: "Amount",
}

_EDIT_FIELD_ICONS = {
    EditableField.DATE: "📅",
    EditableField.TYPE: "📊",
    EditableField.CATEGORY: "📁",
    EditableField.ACCOUNT1: "💳",
    EditableField.ACCOUNT2: "💳",
    EditableField.DESCRIPTION: "📝",
    EditableField.AMOUNT: "💰",
}


class ConversationPrompts:
    """Renders prompts and result messages using the configured locale."""

    def __init__(
        self,
        settings: LedgerSettings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(ZoneInfo(settings.timezone)))

    def money(self, amount) -> str:
        return format_currency(amount, self._settings.currency_symbol)

    # Keyboards that depend on configuration

    def categories_for(self, transaction_type) -> list[str]:
        if transaction_type in (TransactionType.INCOME, TransactionType.INCOME.value):
            return list(self._settings.income_categories)
        return list(self._settings.expense_categories)

    def all_categories(self) -> list[str]:
        seen = []
        for category in (
            self._settings.income_categories
            + self._settings.expense_categories
            + self._settings.reimbursement_categories
        ):
            if category not in seen:
                seen.append(category)
        return seen

    def account_keyboard(self) -> KeyboardSpec:
        return kb.account_keyboard(self._settings.accounts)

    def current_year(self) -> int:
        return self._clock().year

    # Canonical step prompts

    def render(self, session: Session, error: Optional[str] = None) -> Reply:
        """The prompt for the session's current step."""
        text, keyboard = self._step_prompt(session)
        if error:
            text = f"{error}\n\n{text}"
        return Reply(text=text, keyboard=keyboard)

    def _step_prompt(self, session: Session) -> tuple[str, KeyboardSpec]:
        step = session.step
        draft = session.draft

        if step == Step.IDLE or draft is None:
            return MAIN_MENU, kb.main_menu_keyboard()

        if isinstance(draft, SimpleEntryDraft):
            return self._simple_prompt(step, draft)
        if isinstance(draft, ReceivableDraft):
            return self._receivable_prompt(step, draft)
        if isinstance(draft, PayableDraft):
            return self._payable_prompt(step, draft)
        if isinstance(draft, DeleteDraft):
            return self._listing(
                "🗑️ <b>Delete Transaction</b>\n\nSelect number to delete:",
                draft.listing,
            )
        if isinstance(draft, EditDraft):
            return self._edit_prompt(step, draft)
        if isinstance(draft, SummaryDraft):
            return self._summary_prompt(step, draft)

        return MAIN_MENU, kb.main_menu_keyboard()

    def _simple_prompt(
        self,
        step: Step,
        draft: SimpleEntryDraft,
    ) -> tuple[str, KeyboardSpec]:
        if step == Step.CATEGORY:
            heading = (
                "💰 <b>Adding Income</b>"
                if draft.type == TransactionType.INCOME
                else "💸 <b>Adding Expense</b>"
            )
            return (
                f"{heading}\n\nSelect category:",
                kb.category_keyboard(self.categories_for(draft.type)),
            )

        if step == Step.ACCOUNT1:
            if draft.type == TransactionType.TRANSFER:
                text = "🔄 <b>Adding Transfer</b>\n\nSelect source (Account #1):"
            elif draft.type == TransactionType.REIMBURSEMENT:
                text = "💳 <b>Adding Reimbursement</b>\n\nSelect account:"
            else:
                text = f"✅ Category: <b>{escape(draft.category)}</b>\n\nSelect account:"
            return text, self.account_keyboard()

        if step == Step.ACCOUNT2:
            return (
                f"✅ Source: <b>{escape(draft.account1)}</b>\n\nSelect destination:",
                self.account_keyboard(),
            )

        if step == Step.DESCRIPTION:
            if draft.type == TransactionType.TRANSFER:
                text = f"✅ Destination: <b>{escape(draft.account2)}</b>"
            else:
                text = f"✅ Account: <b>{escape(draft.account1)}</b>"
            return f"{text}\n\n📝 Enter description:", kb.back_keyboard()

        return (
            f"✅ Description: <b>{escape(draft.description)}</b>\n\n💵 Enter amount:",
            kb.back_keyboard(),
        )

    def _receivable_prompt(
        self,
        step: Step,
        draft: ReceivableDraft,
    ) -> tuple[str, KeyboardSpec]:
        if step == Step.RECEIVABLE_TYPE:
            return (
                "🤝 <b>Add Receivable</b>\n\nIs this new or payment?",
                kb.receivable_type_keyboard(),
            )

        if step == Step.RECEIVABLE_ACCOUNT:
            if draft.kind == ReceivableKind.PAYMENT:
                text = "💰 <b>Payment Received</b>\n\nSelect account (Account #2):"
            else:
                text = "🤝 <b>New Receivable</b>\n\nSelect account (Account #1):"
            return text, self.account_keyboard()

        if step == Step.RECEIVABLE_DESCRIPTION:
            chosen = draft.account2 if draft.kind == ReceivableKind.PAYMENT else draft.account1
            return (
                f"✅ Account: <b>{escape(chosen)}</b>\n\n📝 Enter description:",
                kb.back_keyboard(),
            )

        return (
            f"✅ Description: <b>{escape(draft.description)}</b>\n\n💵 Enter amount:",
            kb.back_keyboard(),
        )

    def _payable_prompt(
        self,
        step: Step,
        draft: PayableDraft,
    ) -> tuple[str, KeyboardSpec]:
        if step == Step.PAYABLE_DESCRIPTION:
            return (
                "💵 <b>Add Payable - Loan Proceeds</b>\n\n📝 Enter loan description:",
                kb.back_to_menu_keyboard(),
            )
        if step == Step.PAYABLE_PROCEEDS:
            return (
                f"✅ Description: <b>{escape(draft.description)}</b>\n\n"
                "💵 Enter loan proceeds amount:",
                kb.back_keyboard(),
            )
        if step == Step.PAYABLE_ACCOUNT:
            return (
                f"✅ Amount: {self.money(draft.proceeds)}\n\n"
                "💳 Select the account for monthly payments (Account #1):",
                self.account_keyboard(),
            )
        if step == Step.PAYABLE_BILLING_DATE:
            return (
                f"✅ Account: <b>{escape(draft.payment_account)}</b>\n\n"
                "📅 Enter first billing date (MM/DD/YYYY):\n\nExample: 12/15/2024",
                kb.back_keyboard(),
            )
        if step == Step.PAYABLE_TERMS:
            return (
                f"✅ First billing: <b>{escape(draft.first_billing_date)}</b>\n\n"
                "📊 Enter loan terms (number of months):\n\nExample: 12",
                kb.back_keyboard(),
            )
        if step == Step.PAYABLE_PRINCIPAL:
            return (
                f"✅ Terms: <b>{draft.term_count} months</b>\n\n"
                "💰 Enter monthly principal payment:",
                kb.back_keyboard(),
            )
        if step == Step.PAYABLE_INTEREST:
            return (
                f"✅ Monthly principal: {self.money(draft.monthly_principal)}\n\n"
                "💸 Enter monthly interest payment:",
                kb.back_keyboard(),
            )
        return (
            f"✅ Monthly interest: {self.money(draft.monthly_interest)}\n\n"
            "💳 Enter processing fee (or 0 if none):",
            kb.back_keyboard(),
        )

    def _listing(
        self,
        heading: str,
        rows: list[LedgerRow],
    ) -> tuple[str, KeyboardSpec]:
        entries = [
            f"<b>{number}.</b> {escape(row.type)} - {self.money(row.amount)}\n"
            f"   📅 {escape(row.date)}\n"
            f"   📝 {escape(row.description)}"
            for number, row in enumerate(rows, start=1)
        ]
        text = heading + "\n\n" + "\n\n".join(entries)
        return text, kb.selection_keyboard(len(rows))

    def _edit_prompt(self, step: Step, draft: EditDraft) -> tuple[str, KeyboardSpec]:
        if step == Step.EDIT_SELECT or draft.selected is None:
            return self._listing(
                "📝 <b>Edit Transaction</b>\n\nSelect transaction:",
                draft.listing,
            )

        row = draft.selected
        if step == Step.EDIT_FIELD_SELECT or draft.field is None:
            text = (
                "📝 <b>Edit Transaction</b>\n\n"
                f"📅 Date: {escape(row.date)}\n"
                f"📊 Type: {escape(row.type)}\n"
                f"📁 Category: {escape(row.category or 'None')}\n"
                f"💳 Account 1: {escape(row.account1 or 'None')}\n"
                f"💳 Account 2: {escape(row.account2 or 'None')}\n"
                f"📝 Description: {escape(row.description)}\n"
                f"💰 Amount: {self.money(row.amount)}\n\n"
                "Select field to edit:"
            )
            return text, kb.edit_field_keyboard()

        field = draft.field
        heading = f"{_EDIT_FIELD_ICONS[field]} <b>Edit {EDIT_FIELD_LABELS[field]}</b>"
        if field == EditableField.AMOUNT:
            current = self.money(row.amount)
        else:
            current = escape(row.value_of(field.value) or "None")

        if field == EditableField.DATE:
            return (
                f"{heading}\n\nCurrent: {current}\n\nEnter new date (MM/DD/YYYY):",
                kb.back_keyboard(),
            )
        if field == EditableField.TYPE:
            return (
                f"{heading}\n\nCurrent: {current}\n\nSelect new type:",
                kb.type_keyboard(),
            )
        if field == EditableField.CATEGORY:
            return (
                f"{heading}\n\nCurrent: {current}\n\nSelect new category:",
                kb.category_keyboard(self.categories_for(row.type)),
            )
        if field in (EditableField.ACCOUNT1, EditableField.ACCOUNT2):
            return (
                f"{heading}\n\nCurrent: {current}\n\nSelect new account:",
                self.account_keyboard(),
            )
        if field == EditableField.DESCRIPTION:
            return (
                f"{heading}\n\nCurrent: {current}\n\nEnter new description:",
                kb.back_keyboard(),
            )
        return (
            f"{heading}\n\nCurrent: {current}\n\nEnter new amount:",
            kb.back_keyboard(),
        )

    def _summary_prompt(
        self,
        step: Step,
        draft: SummaryDraft,
    ) -> tuple[str, KeyboardSpec]:
        if step == Step.SUMMARY_TYPE:
            return (
                "📊 <b>Financial Summary</b>\n\nChoose type:",
                kb.summary_type_keyboard(),
            )
        if step == Step.SUMMARY_YEAR:
            if draft.period == SummaryPeriod.MONTHLY:
                text = "📅 <b>Monthly Summary</b>\n\nSelect year:"
            else:
                text = "📆 <b>Yearly Summary</b>\n\nSelect year:"
            return text, kb.year_keyboard(self.current_year())
        return (
            f"📅 <b>Monthly Summary - {draft.year}</b>\n\nSelect month:",
            kb.month_keyboard(),
        )

    # Result messages

    def entry_saved(self, transaction: Transaction) -> str:
        account = escape(transaction.account1)
        if transaction.account2:
            account += f" → {escape(transaction.account2)}"
        return (
            "✅ <b>Saved!</b>\n\n"
            f"📊 Type: {transaction.type.value}\n"
            f"📁 Category: {escape(transaction.category or 'N/A')}\n"
            f"💳 Account: {account}\n"
            f"📝 Description: {escape(transaction.description)}\n"
            f"💰 Amount: {self.money(transaction.amount)}"
        )

    def receivable_saved(self, kind: ReceivableKind, transaction: Transaction) -> str:
        title = "Payment Received" if kind == ReceivableKind.PAYMENT else "New Receivable"
        return (
            f"✅ <b>{title} Saved!</b>\n\n"
            f"📊 Type: {transaction.type.value}\n"
            f"💳 {escape(transaction.account1)} → {escape(transaction.account2)}\n"
            f"📝 Description: {escape(transaction.description)}\n"
            f"💰 Amount: {self.money(transaction.amount)}"
        )

    def loan_created(
        self,
        draft: PayableDraft,
        loan_number: int,
        processing_fee: Decimal,
        row_count: int,
    ) -> str:
        lines = [
            "✅ <b>Loan Created Successfully!</b>",
            "",
            f"📋 Loan #{loan_number} for {escape(draft.payment_account)}",
            f"💰 Proceeds: {self.money(draft.proceeds)}",
            f"📅 First billing: {escape(draft.first_billing_date)}",
            f"📊 Terms: {draft.term_count} months",
            f"💵 Monthly principal: {self.money(draft.monthly_principal)}",
            f"💸 Monthly interest: {self.money(draft.monthly_interest)}",
        ]
        if processing_fee > 0:
            lines.append(f"💳 Processing fee: {self.money(processing_fee)}")
        lines += ["", f"📝 Total transactions created: {row_count}"]
        return "\n".join(lines)

    def invalid_billing_date(self, value: str) -> str:
        return (
            f"❌ {escape(value)} is not a real calendar date. "
            "Nothing was saved; please start again."
        )

    def deleted(self, row: LedgerRow) -> str:
        return (
            "✅ <b>Transaction Deleted!</b>\n\n"
            f"📊 Type: {escape(row.type)}\n"
            f"📅 Date: {escape(row.date)}\n"
            f"📝 Description: {escape(row.description)}\n"
            f"💰 Amount: {self.money(row.amount)}"
        )

    def updated(self, field: EditableField, old_value: str, new_value: str) -> str:
        if field == EditableField.AMOUNT:
            old_value, new_value = self.money(old_value), self.money(new_value)
        else:
            old_value, new_value = escape(old_value), escape(new_value)
        return (
            f"✅ <b>{EDIT_FIELD_LABELS[field]} Updated!</b>\n\n"
            f"Old: {old_value}\nNew: {new_value}"
        )

    def nothing_to_list(self, action: str) -> str:
        return f"📊 No transactions to {action}."

    def recent(self, rows: list[LedgerRow]) -> str:
        if not rows:
            return "📊 No transactions yet."
        entries = []
        for row in rows:
            accounts = escape(row.account1)
            if row.account2:
                accounts += f" → {escape(row.account2)}"
            entries.append(
                f"<b>{escape(row.type)}</b> - {self.money(row.amount)}\n"
                f"📅 {escape(row.date)}\n"
                f"📁 {escape(row.category)}\n"
                f"💳 {accounts}\n"
                f"📝 {escape(row.description)}"
            )
        return "📊 <b>Recent Transactions:</b>\n\n" + "\n\n".join(entries)
