"""
Conversation tests

Drive the engine message by message over in-memory storage and check
replies, the rows written and the session left behind.
"""

import pytest

from ledgerbot.audit import AuditLogger
from ledgerbot.conversation import ConversationEngine, SessionStore, listed_position
from ledgerbot.conversation import keyboards as kb
from ledgerbot.conversation.prompts import (
    CANCELLED,
    MAIN_MENU,
    PERSISTENCE_FAILED,
    STALE_SELECTION,
    USE_MENU_BUTTONS,
    WELCOME,
)
from ledgerbot.models import AuditEventType, Step
from ledgerbot.services.auth import UNAUTHORIZED_MESSAGE, AuthorizationGate
from ledgerbot.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    StorageTimeoutError,
)

from tests.conftest import CHAT_ID, FIXED_NOW, FIXED_TIMESTAMP, USER_ID


def seed(storage: InMemoryLedgerStorage, count: int, type_: str = "Expense") -> None:
    """Append `count` rows described "entry 1" .. "entry <count>"."""
    for number in range(1, count + 1):
        storage.values.append(
            ["03/01/2026", type_, "Food", "Cash", "", f"entry {number}", f"-{number}00"]
        )


def event_types(audit_storage: InMemoryAuditStorage) -> list[AuditEventType]:
    return [event.event_type for event in audit_storage.events]


class TestGlobalCommands:
    """Tests for /start, Cancel, Back to Menu and authorization."""

    async def test_start_shows_main_menu(self, chat):
        replies = await chat("/start")
        assert len(replies) == 1
        assert replies[0].text == WELCOME
        assert replies[0].keyboard == kb.main_menu_keyboard()

    async def test_unauthorized_user_gets_no_session(self, engine, audit_storage):
        replies = await engine.handle_message("999", "999", "/start")

        assert [reply.text for reply in replies] == [UNAUTHORIZED_MESSAGE]
        assert replies[0].keyboard is None
        assert "999" not in engine.sessions
        assert event_types(audit_storage) == [AuditEventType.UNAUTHORIZED_ACCESS]

    async def test_free_text_when_idle(self, chat):
        replies = await chat("hello")
        assert replies[0].text == USE_MENU_BUTTONS

    async def test_cancel_mid_flow(self, chat, sessions, audit_storage):
        replies = await chat(kb.ADD_EXPENSE, "Food", kb.CANCEL)

        assert replies[0].text == CANCELLED
        assert sessions.get(USER_ID).is_idle
        assert AuditEventType.FLOW_CANCELLED in event_types(audit_storage)

    async def test_back_to_menu(self, chat, sessions):
        replies = await chat(kb.ADD_PAYABLE, kb.BACK_TO_MENU)
        assert replies[0].text == MAIN_MENU
        assert sessions.get(USER_ID).history == []

    async def test_menu_button_restarts_flow(self, chat, sessions):
        """Test a menu button mid-flow starts the new flow from scratch."""
        await chat(kb.ADD_EXPENSE, "Food", "Cash", kb.ADD_INCOME)
        session = sessions.get(USER_ID)

        assert session.step == Step.CATEGORY
        assert session.draft.type.value == "Income"
        assert session.draft.category == ""
        assert len(session.history) == 1

    async def test_every_step_has_a_rule(self, engine):
        assert set(engine.rules) == set(Step) - {Step.IDLE}


class TestSimpleEntry:
    """Tests for expense, income, transfer and reimbursement."""

    async def test_expense_end_to_end(self, chat, storage, sessions, audit_storage):
        replies = await chat(kb.ADD_EXPENSE, "Food", "Cash", "Lunch", "250")

        assert storage.values[1] == [
            FIXED_TIMESTAMP, "Expense", "Food", "Cash", "", "Lunch", "-250"
        ]
        assert replies[0].text.startswith("✅ <b>Saved!</b>")
        assert "💰 Amount: ₱250.00" in replies[0].text
        assert replies[0].keyboard == kb.main_menu_keyboard()
        assert sessions.get(USER_ID).is_idle
        assert event_types(audit_storage) == [
            AuditEventType.FLOW_STARTED,
            AuditEventType.TRANSACTION_SAVED,
        ]

    async def test_income(self, chat, storage):
        await chat(kb.ADD_INCOME, "Salary", "BDO", "March pay", "50,000")
        assert storage.values[1][1:] == ["Income", "Salary", "BDO", "", "March pay", "50000"]

    async def test_transfer_asks_destination(self, chat, storage):
        replies = await chat(kb.ADD_TRANSFER, "BDO")
        assert replies[0].text.startswith("✅ Source: <b>BDO</b>")

        await chat("Gcash", "Top up", "1000")
        assert storage.values[1][1:] == ["Transfer", "", "BDO", "Gcash", "Top up", "1000"]

    async def test_reimbursement(self, chat, storage):
        await chat(kb.ADD_REIMBURSEMENT, "Cash", "Office supplies", "300")
        assert storage.values[1][1:] == [
            "Reimbursement", "Reimbursibles", "Cash", "", "Office supplies", "300"
        ]

    async def test_category_keyboard(self, chat):
        replies = await chat(kb.ADD_EXPENSE)
        buttons = replies[0].keyboard.buttons
        assert "Food" in buttons
        assert "Salary" not in buttons
        assert buttons[-1] == kb.BACK

    async def test_invalid_category_reprompts(self, chat, sessions):
        replies = await chat(kb.ADD_EXPENSE, "Salary")

        assert replies[0].text.startswith(
            "❌ Invalid. Select from buttons:\n\n💸 <b>Adding Expense</b>"
        )
        session = sessions.get(USER_ID)
        assert session.step == Step.CATEGORY
        assert len(session.history) == 1

    async def test_invalid_amount_reprompts(self, chat, storage, sessions):
        replies = await chat(kb.ADD_EXPENSE, "Food", "Cash", "Lunch", "abc")

        assert replies[0].text.startswith("❌ Invalid amount. Enter a valid number:")
        assert "✅ Description: <b>Lunch</b>" in replies[0].text
        assert sessions.get(USER_ID).step == Step.AMOUNT
        assert len(storage.values) == 1

    async def test_empty_description_rejected(self, chat, sessions):
        await chat(kb.ADD_EXPENSE, "Food", "Cash", "   ")
        assert sessions.get(USER_ID).step == Step.DESCRIPTION

    async def test_description_is_escaped(self, chat):
        replies = await chat(kb.ADD_EXPENSE, "Food", "Cash", "<b>x</b> & y")
        assert "&lt;b&gt;x&lt;/b&gt; &amp; y" in replies[0].text


class TestBackNavigation:
    """Tests for the history stack."""

    async def test_back_walks_to_main_menu(self, chat, sessions):
        await chat(kb.ADD_EXPENSE, "Food", "Cash")
        session = sessions.get(USER_ID)
        assert session.step == Step.DESCRIPTION

        replies = await chat(kb.BACK)
        assert session.step == Step.ACCOUNT1
        assert session.draft.category == "Food"
        assert session.draft.account1 == ""
        assert replies[0].text == "✅ Category: <b>Food</b>\n\nSelect account:"

        await chat(kb.BACK)
        assert session.step == Step.CATEGORY
        assert session.draft.category == ""

        replies = await chat(kb.BACK)
        assert session.is_idle
        assert replies[0].text == MAIN_MENU

        replies = await chat(kb.BACK)
        assert session.is_idle
        assert replies[0].text == MAIN_MENU

    async def test_back_then_forward_again(self, chat, storage):
        await chat(kb.ADD_EXPENSE, "Food", "Cash", kb.BACK, "BDO", "Snacks", "80")
        assert storage.values[1][3] == "BDO"

    async def test_history_depth_is_bounded(self, chat, sessions):
        await chat(kb.ADD_EXPENSE, "Food", "Cash", "Lunch")
        assert len(sessions.get(USER_ID).history) == 4

    @pytest.mark.parametrize(
        "messages",
        [
            (kb.ADD_EXPENSE, "Food", "Cash", "Lunch"),
            (kb.ADD_INCOME, "Salary", "BDO", "March pay"),
            (kb.ADD_TRANSFER, "Cash", "BDO", "Top up"),
            (kb.ADD_REIMBURSEMENT, "Cash", "Office supplies"),
            (kb.ADD_RECEIVABLE, kb.NEW_RECEIVABLE, "Cash", "Lent to Ana"),
            (kb.ADD_RECEIVABLE, kb.PAYMENT_RECEIVED, "BDO", "Ana paid back"),
            (
                kb.ADD_PAYABLE,
                "Gadget loan",
                "12000",
                "BPI - Platinum MC",
                "01/31/2026",
                "3",
                "1000",
                "50",
            ),
            (kb.DELETE_TRANSACTION,),
            (kb.EDIT_TRANSACTION, "2", "📝 Edit Description"),
            (kb.FINANCIAL_SUMMARY, kb.MONTHLY_SUMMARY, "📅 2026"),
            (kb.FINANCIAL_SUMMARY, kb.YEARLY_SUMMARY),
        ],
        ids=[
            "expense",
            "income",
            "transfer",
            "reimbursement",
            "new-receivable",
            "payment-received",
            "payable",
            "delete",
            "edit",
            "monthly-summary",
            "yearly-summary",
        ],
    )
    async def test_back_repeats_each_forward_prompt(self, chat, storage, sessions, messages):
        """Test every Back re-renders the step's prompt exactly as first shown."""
        seed(storage, 3)
        forward = []
        for text in messages:
            replies = await chat(text)
            session = sessions.get(USER_ID)
            forward.append((session.step, replies))
        assert not session.is_idle

        for step, replies in reversed(forward[:-1]):
            assert await chat(kb.BACK) == replies
            assert session.step == step

        replies = await chat(kb.BACK)
        assert session.is_idle
        assert replies[0].text == MAIN_MENU
        assert replies[0].keyboard == kb.main_menu_keyboard()


class TestReceivables:
    """Tests for the receivable flow."""

    async def test_new_receivable(self, chat, storage):
        replies = await chat(kb.ADD_RECEIVABLE, kb.NEW_RECEIVABLE, "Cash", "Lent to Ana", "500")

        assert storage.values[1][1:] == [
            "Transfer", "", "Cash", "Receivable", "Lent to Ana", "500"
        ]
        assert replies[0].text.startswith("✅ <b>New Receivable Saved!</b>")

    async def test_payment_received(self, chat, storage):
        replies = await chat(kb.ADD_RECEIVABLE, kb.PAYMENT_RECEIVED, "BDO", "Ana paid", "500")

        assert storage.values[1][1:] == [
            "Transfer", "", "Receivable", "BDO", "Ana paid", "500"
        ]
        assert replies[0].text.startswith("✅ <b>Payment Received Saved!</b>")

    async def test_invalid_kind(self, chat, sessions):
        await chat(kb.ADD_RECEIVABLE, "maybe")
        assert sessions.get(USER_ID).step == Step.RECEIVABLE_TYPE


class TestPayables:
    """Tests for loan creation."""

    LOAN = (
        kb.ADD_PAYABLE,
        "Gadget loan",
        "12000",
        "BPI - Platinum MC",
        "01/31/2026",
        "3",
        "1000",
        "50",
    )

    async def test_loan_rows_and_number(self, chat, storage, sessions):
        await chat(*self.LOAN)
        assert len(sessions.get(USER_ID).history) == 8

        replies = await chat("500")

        rows = storage.values[1:]
        assert len(rows) == 9
        assert rows[0][1:] == ["Loan", "", "", "Loan - clearing", "Gadget loan", "12000"]
        assert rows[2][5] == "BPI - Platinum MC Loan #2 - Principal #1"
        assert rows[-1][5] == "BPI - Platinum MC Loan #2 - Processing fee"
        assert "📋 Loan #2 for BPI - Platinum MC" in replies[0].text
        assert "📝 Total transactions created: 9" in replies[0].text
        assert sessions.get(USER_ID).is_idle

    async def test_second_loan_increments(self, chat, storage):
        await chat(*self.LOAN, "0")
        await chat(*self.LOAN, "0")

        descriptions = [row[5] for row in storage.values[1:]]
        assert "BPI - Platinum MC Loan #3 - Principal #1" in descriptions

    async def test_interest_accepts_zero(self, chat, sessions):
        await chat(*self.LOAN[:-1], "0")
        assert sessions.get(USER_ID).step == Step.PAYABLE_FEE

    async def test_invalid_terms_reprompt(self, chat, sessions):
        replies = await chat(*self.LOAN[:5], "0")
        assert replies[0].text.startswith("❌ Invalid number. Enter months (1-360):")
        assert sessions.get(USER_ID).step == Step.PAYABLE_TERMS

    async def test_non_calendar_billing_date(self, chat, storage, sessions):
        """Test 02/30 passes the pattern but aborts loan creation."""
        loan = list(self.LOAN)
        loan[4] = "02/30/2026"
        replies = await chat(*loan, "0")

        assert replies[0].text.startswith("❌ 02/30/2026 is not a real calendar date.")
        assert len(storage.values) == 1
        assert sessions.get(USER_ID).is_idle


class TestDeleteAndEdit:
    """Tests for position-based delete/edit."""

    def test_listed_position(self):
        assert listed_position(13, 10, 1) == 4
        assert listed_position(13, 10, 10) == 13
        assert listed_position(4, 3, 2) == 3

    async def test_nothing_to_delete(self, chat, sessions):
        replies = await chat(kb.DELETE_TRANSACTION)
        assert replies[0].text == "📊 No transactions to delete."
        assert sessions.get(USER_ID).is_idle

    async def test_delete_lists_last_ten(self, chat, storage):
        seed(storage, 12)
        replies = await chat(kb.DELETE_TRANSACTION)

        assert "entry 3" in replies[0].text
        assert "entry 2\n" not in replies[0].text
        assert replies[0].keyboard.buttons == [str(n) for n in range(1, 11)] + [kb.BACK_TO_MENU]

    async def test_delete_first_and_last_listed(self, chat, storage, audit_storage):
        seed(storage, 12)
        replies = await chat(kb.DELETE_TRANSACTION, "1")

        descriptions = [row[5] for row in storage.values[1:]]
        assert "entry 3" not in descriptions
        assert len(descriptions) == 11
        assert replies[0].text.startswith("✅ <b>Transaction Deleted!</b>")
        assert AuditEventType.TRANSACTION_DELETED in event_types(audit_storage)

        await chat(kb.DELETE_TRANSACTION, "10")
        assert storage.values[-1][5] == "entry 11"

    async def test_invalid_selection(self, chat, storage, sessions):
        seed(storage, 3)
        replies = await chat(kb.DELETE_TRANSACTION, "4")
        assert replies[0].text.startswith("❌ Invalid selection.")
        assert sessions.get(USER_ID).step == Step.DELETE_SELECT

    async def test_stale_selection_blocks_delete(self, chat, storage, audit_storage):
        seed(storage, 5)
        await chat(kb.DELETE_TRANSACTION)
        storage.values[2][5] = "edited in the sheet"

        replies = await chat("2")

        assert replies[0].text == STALE_SELECTION
        assert len(storage.values) == 6
        assert AuditEventType.STALE_SELECTION in event_types(audit_storage)

    async def test_row_removed_above_listing(self, chat, storage):
        """Test a shifted row is detected instead of deleting its neighbour."""
        seed(storage, 5)
        await chat(kb.DELETE_TRANSACTION)
        del storage.values[1]

        replies = await chat("3")

        assert replies[0].text == STALE_SELECTION
        assert [row[5] for row in storage.values[1:]] == [
            "entry 2", "entry 3", "entry 4", "entry 5"
        ]

    async def test_edit_expense_amount_keeps_sign(self, chat, storage, sessions):
        seed(storage, 3)
        await chat(kb.EDIT_TRANSACTION, "2", "💰 Edit Amount")
        assert len(sessions.get(USER_ID).history) == 3

        replies = await chat("300")

        assert storage.values[2][6] == "-300"
        assert replies[0].text == "✅ <b>Amount Updated!</b>\n\nOld: ₱200.00\nNew: ₱300.00"

    async def test_edit_type_to_expense_negates_amount(self, chat, storage, audit_storage):
        storage.values.append(["03/01/2026", "Income", "Salary", "Cash", "", "pay", "1000"])

        await chat(kb.EDIT_TRANSACTION, "1", "📊 Edit Type", "Expense")

        assert storage.values[1][1] == "Expense"
        assert storage.values[1][6] == "-1000"
        updates = [
            event for event in audit_storage.events
            if event.event_type == AuditEventType.TRANSACTION_UPDATED
        ]
        assert len(updates) == 2

    async def test_edit_type_keeps_amount_otherwise(self, chat, storage):
        """Test a non-Expense type, or an already negative amount, is left alone."""
        storage.values.append(["03/01/2026", "Expense", "Food", "Cash", "", "lunch", "-250"])
        storage.values.append(["03/01/2026", "Expense", "Food", "Cash", "", "snack", "-80"])

        await chat(kb.EDIT_TRANSACTION, "1", "📊 Edit Type", "Transfer")
        await chat(kb.EDIT_TRANSACTION, "2", "📊 Edit Type", "Expense")

        assert storage.values[1][1:] == ["Transfer", "Food", "Cash", "", "lunch", "-250"]
        assert storage.values[2][6] == "-80"

    async def test_edit_amount_accepts_zero(self, chat, storage, sessions):
        seed(storage, 1)
        replies = await chat(kb.EDIT_TRANSACTION, "1", "💰 Edit Amount", "abc")
        assert replies[0].text.startswith("❌ Invalid amount.")
        assert sessions.get(USER_ID).step == Step.EDIT_VALUE

        await chat("0")
        assert storage.values[1][6] == "0"
        assert sessions.get(USER_ID).is_idle

    async def test_edit_date(self, chat, storage):
        seed(storage, 1)
        replies = await chat(kb.EDIT_TRANSACTION, "1", "📅 Edit Date", "2026-01-20")
        assert replies[0].text.startswith("❌ Invalid format. Use MM/DD/YYYY")

        await chat("01/20/2026")
        assert storage.values[1][0] == "01/20/2026"

    async def test_edit_category_validated(self, chat, storage, sessions):
        seed(storage, 1)
        replies = await chat(kb.EDIT_TRANSACTION, "1", "📁 Edit Category", "Nope")
        assert replies[0].text.startswith("❌ Invalid category.")

        await chat("Salary")
        assert storage.values[1][2] == "Salary"
        assert sessions.get(USER_ID).is_idle

    async def test_edit_back_returns_to_field_choice(self, chat, storage, sessions):
        seed(storage, 1)
        await chat(kb.EDIT_TRANSACTION, "1", "📝 Edit Description", kb.BACK)

        session = sessions.get(USER_ID)
        assert session.step == Step.EDIT_FIELD_SELECT
        assert session.draft.field is None

    async def test_stale_selection_blocks_edit(self, chat, storage):
        seed(storage, 2)
        await chat(kb.EDIT_TRANSACTION, "1", "📝 Edit Description")
        storage.values[1][6] = "-999"

        replies = await chat("New text")

        assert replies[0].text == STALE_SELECTION
        assert storage.values[1][5] == "entry 1"


class TestReadFlows:
    """Tests for View Recent and Financial Summary."""

    async def test_view_recent(self, chat, storage, sessions):
        seed(storage, 7)
        replies = await chat(kb.VIEW_RECENT)

        text = replies[0].text
        assert text.startswith("📊 <b>Recent Transactions:</b>")
        assert "entry 3" in text and "entry 7" in text
        assert "entry 2\n" not in text and not text.endswith("entry 2")
        assert replies[0].keyboard == kb.main_menu_keyboard()
        assert sessions.get(USER_ID).is_idle

    async def test_view_recent_empty(self, chat):
        replies = await chat(kb.VIEW_RECENT)
        assert replies[0].text == "📊 No transactions yet."

    def _seed_dates(self, storage):
        storage.values.extend([
            ["03/05/2026, 10:00:00 AM", "Income", "Salary", "BDO", "", "pay", "1000"],
            ["03/10/2026", "Expense", "Food", "Cash", "", "lunch", "-250"],
            ["02/10/2026", "Expense", "Food", "Cash", "", "dinner", "-999"],
        ])

    async def test_monthly_summary(self, chat, storage, sessions):
        self._seed_dates(storage)
        replies = await chat(kb.FINANCIAL_SUMMARY, kb.MONTHLY_SUMMARY)
        assert "📅 2026" in replies[0].keyboard.buttons

        replies = await chat("📅 2026", "📅 March")

        text = replies[0].text
        assert text.startswith("📊 <b>March 2026 Summary</b>")
        assert "📝 Transactions: 2" in text
        assert "₱750.00" in text
        assert sessions.get(USER_ID).is_idle

    async def test_yearly_summary(self, chat, storage):
        self._seed_dates(storage)
        replies = await chat(kb.FINANCIAL_SUMMARY, kb.YEARLY_SUMMARY, "📅 2026")

        assert replies[0].text.startswith("📊 <b>Year 2026 Summary</b>")
        assert "📝 Transactions: 3" in replies[0].text

    @pytest.mark.parametrize("text", ["📅 10000", "📅 2023", "📅 2027", "📅 0"])
    async def test_year_outside_offered_buttons(self, chat, sessions, text):
        replies = await chat(kb.FINANCIAL_SUMMARY, kb.YEARLY_SUMMARY, text)

        assert replies[0].text.startswith("❌ Invalid. Select from buttons:")
        assert replies[0].keyboard == kb.year_keyboard(2026)
        assert sessions.get(USER_ID).step == Step.SUMMARY_YEAR

    async def test_invalid_month_button(self, chat, sessions):
        await chat(kb.FINANCIAL_SUMMARY, kb.MONTHLY_SUMMARY, "📅 2026", "March")
        assert sessions.get(USER_ID).step == Step.SUMMARY_MONTH


class FailingAppendStorage(InMemoryLedgerStorage):
    async def append_transaction(self, transaction):
        raise StorageTimeoutError("append rows did not finish within 20s")


class BrokenReadStorage(InMemoryLedgerStorage):
    async def read_snapshot(self):
        raise RuntimeError("boom")


def _engine(storage, audit_storage, ledger_settings, allowed=(USER_ID,)):
    return ConversationEngine(
        storage=storage,
        sessions=SessionStore(),
        gate=AuthorizationGate(allowed_ids=list(allowed)),
        settings=ledger_settings,
        audit_logger=AuditLogger(audit_storage),
        clock=lambda: FIXED_NOW,
    )


class TestFailures:
    """Tests for ledger failures and isolation between users."""

    async def test_storage_failure_resets(self, audit_storage, ledger_settings):
        engine = _engine(FailingAppendStorage(), audit_storage, ledger_settings)
        for text in (kb.ADD_EXPENSE, "Food", "Cash", "Lunch"):
            await engine.handle_message(USER_ID, CHAT_ID, text)

        replies = await engine.handle_message(USER_ID, CHAT_ID, "250")

        assert replies[0].text == PERSISTENCE_FAILED
        assert replies[0].keyboard == kb.main_menu_keyboard()
        assert engine.sessions.get(USER_ID).is_idle
        assert AuditEventType.STORAGE_ERROR in event_types(audit_storage)

    async def test_unexpected_error_is_reported(self, audit_storage, ledger_settings):
        engine = _engine(BrokenReadStorage(), audit_storage, ledger_settings)

        replies = await engine.handle_message(USER_ID, CHAT_ID, kb.DELETE_TRANSACTION)

        assert replies[0].text == PERSISTENCE_FAILED
        assert AuditEventType.SYSTEM_ERROR in event_types(audit_storage)

    async def test_sessions_are_per_user(self, storage, audit_storage, ledger_settings):
        engine = _engine(storage, audit_storage, ledger_settings, allowed=("1", "2"))

        await engine.handle_message("1", "1", kb.ADD_EXPENSE)
        await engine.handle_message("2", "2", kb.ADD_INCOME)
        await engine.handle_message("1", "1", "Food")

        assert engine.sessions.get("1").step == Step.ACCOUNT1
        assert engine.sessions.get("2").step == Step.CATEGORY


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
