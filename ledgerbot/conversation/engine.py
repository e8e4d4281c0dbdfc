"""
Conversation Engine

The per-user state machine behind the chat.

Each inbound message goes through, in order:
1. Authorization - unknown senders get a fixed denial and no session
2. Global commands - /start, Cancel, Back to Menu, Back
3. Menu buttons - start (or restart) a flow from any step
4. The current step's rule from the transition table

A rule parses the text for its step. The outcome is one of three effects:
- REPROMPT: the parser rejected the input; same step, error shown above
  the step's prompt, history untouched
- ADVANCE: snapshot pushed, draft mutated, next step's prompt rendered
- COMPLETE: the flow's terminal action runs (persist or report) and the
  session is reset

DESIGN DECISION: No ledger call is ever retried here. A failure aborts
the flow, tells the user nothing was saved and resets the session.

Editing Type to Expense on a row with a positive amount also rewrites the
amount cell as its negative.

KNOWN RACES:
- Delete/edit act on sheet positions. The listed row is re-read and
  compared before acting; a row changed between that check and the
  write is not detected.
- Loan numbers are read-then-append. Creation is serialized per account
  inside this process only.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, NamedTuple, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog

from ledgerbot.audit import AuditLogger, create_correlation_id
from ledgerbot.config import LedgerSettings
from ledgerbot.conversation import keyboards as kb
from ledgerbot.conversation.keyboards import Reply
from ledgerbot.conversation.prompts import (
    CANCELLED,
    MAIN_MENU,
    PERSISTENCE_FAILED,
    STALE_SELECTION,
    USE_MENU_BUTTONS,
    WELCOME,
    ConversationPrompts,
)
from ledgerbot.conversation.sessions import SessionStore
from ledgerbot.formatting import current_timestamp, signed_amount_cell
from ledgerbot.loans import (
    InvalidBillingDateError,
    generate_loan_schedule,
    next_loan_number,
    parse_billing_date,
)
from ledgerbot.models.catalog import (
    RECEIVABLE_ACCOUNT,
    REIMBURSIBLES_CATEGORY,
    TransactionType,
)
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
from ledgerbot.reports import (
    calculate_summary,
    month_range,
    render_summary_report,
    year_range,
)
from ledgerbot.services.auth import UNAUTHORIZED_MESSAGE, AuthorizationGate
from ledgerbot.services.storage import LedgerStorageInterface, StorageError
from ledgerbot.validation import (
    MONTH_NAMES,
    InputRejected,
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


logger = structlog.get_logger()

SELECT_FROM_BUTTONS = "❌ Invalid. Select from buttons:"
INVALID_ACCOUNT = "❌ Invalid account. Select from buttons:"
INVALID_AMOUNT = "❌ Invalid amount. Enter a valid number:"
EMPTY_DESCRIPTION = "❌ Description cannot be empty."


class Effect(str, Enum):
    REPROMPT = "reprompt"
    ADVANCE = "advance"
    COMPLETE = "complete"


class StepRule(NamedTuple):
    """
    One row of the transition table.

    parse:    (session, text) -> value, raises InputRejected
    advance:  (session, value) -> next step, mutates the draft
    finish:   (session, value, correlation_id) -> replies, ends the flow
    terminal: (session) -> bool, picks finish over advance when both exist
    """
    parse: Callable[[Session, str], Any]
    advance: Optional[Callable[[Session, Any], Step]] = None
    finish: Optional[Callable[[Session, Any, UUID], Awaitable[list[Reply]]]] = None
    terminal: Optional[Callable[[Session], bool]] = None


def listed_position(total_rows: int, listed_count: int, number: int) -> int:
    """
    Sheet position of entry `number` (1-based) in a listing of the last
    `listed_count` rows, given the row count (header included) at listing time.
    """
    return total_rows - (listed_count - number)


class ConversationEngine:
    """
    Turns (user, text) into replies and ledger calls.

    Usage:
        engine = ConversationEngine(storage, sessions, gate, settings)
        replies = await engine.handle_message(user_id, chat_id, text)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        sessions: SessionStore,
        gate: AuthorizationGate,
        settings: LedgerSettings,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._sessions = sessions
        self._gate = gate
        self._settings = settings
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or (lambda: datetime.now(ZoneInfo(settings.timezone)))
        self._prompts = ConversationPrompts(settings, clock=self._clock)
        self._loan_locks: dict[str, asyncio.Lock] = {}

        self._starters: dict[str, Callable[[Session, UUID], Awaitable[list[Reply]]]] = {
            kb.ADD_EXPENSE: self._start_expense,
            kb.ADD_INCOME: self._start_income,
            kb.ADD_TRANSFER: self._start_transfer,
            kb.ADD_REIMBURSEMENT: self._start_reimbursement,
            kb.ADD_RECEIVABLE: self._start_receivable,
            kb.ADD_PAYABLE: self._start_payable,
            kb.VIEW_RECENT: self._view_recent,
            kb.FINANCIAL_SUMMARY: self._start_summary,
            kb.DELETE_TRANSACTION: self._start_delete,
            kb.EDIT_TRANSACTION: self._start_edit,
        }

        self._rules: dict[Step, StepRule] = {
            # Simple entry
            Step.CATEGORY: StepRule(self._parse_category, advance=self._set_category),
            Step.ACCOUNT1: StepRule(self._parse_account, advance=self._set_account1),
            Step.ACCOUNT2: StepRule(self._parse_account, advance=self._set_account2),
            Step.DESCRIPTION: StepRule(self._parse_text, advance=self._set_description),
            Step.AMOUNT: StepRule(self._parse_amount, finish=self._save_entry),
            # Receivable
            Step.RECEIVABLE_TYPE: StepRule(
                self._parse_receivable_kind, advance=self._set_receivable_kind
            ),
            Step.RECEIVABLE_ACCOUNT: StepRule(
                self._parse_account, advance=self._set_receivable_account
            ),
            Step.RECEIVABLE_DESCRIPTION: StepRule(
                self._parse_text, advance=self._set_receivable_description
            ),
            Step.RECEIVABLE_AMOUNT: StepRule(
                self._parse_amount, finish=self._save_receivable
            ),
            # Payable
            Step.PAYABLE_DESCRIPTION: StepRule(
                self._parse_text, advance=self._set_loan_description
            ),
            Step.PAYABLE_PROCEEDS: StepRule(
                self._parse_amount, advance=self._set_loan_proceeds
            ),
            Step.PAYABLE_ACCOUNT: StepRule(
                self._parse_account, advance=self._set_loan_account
            ),
            Step.PAYABLE_BILLING_DATE: StepRule(
                self._parse_billing_date, advance=self._set_loan_billing_date
            ),
            Step.PAYABLE_TERMS: StepRule(
                lambda session, text: parse_term_count(text),
                advance=self._set_loan_terms,
            ),
            Step.PAYABLE_PRINCIPAL: StepRule(
                self._parse_principal, advance=self._set_loan_principal
            ),
            Step.PAYABLE_INTEREST: StepRule(
                self._parse_interest, advance=self._set_loan_interest
            ),
            Step.PAYABLE_FEE: StepRule(self._parse_fee, finish=self._create_loan),
            # Delete / edit
            Step.DELETE_SELECT: StepRule(self._parse_selection, finish=self._delete_row),
            Step.EDIT_SELECT: StepRule(self._parse_selection, advance=self._select_row),
            Step.EDIT_FIELD_SELECT: StepRule(
                self._parse_edit_field, advance=self._set_edit_field
            ),
            Step.EDIT_VALUE: StepRule(self._parse_edit_value, finish=self._update_row),
            # Summary
            Step.SUMMARY_TYPE: StepRule(
                self._parse_summary_period, advance=self._set_summary_period
            ),
            Step.SUMMARY_YEAR: StepRule(
                self._parse_year,
                advance=self._set_summary_year,
                finish=self._yearly_summary,
                terminal=self._is_yearly,
            ),
            Step.SUMMARY_MONTH: StepRule(self._parse_month, finish=self._monthly_summary),
        }

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def rules(self) -> dict[Step, StepRule]:
        return self._rules

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def handle_message(self, user_id, chat_id, text: Optional[str]) -> list[Reply]:
        """
        Handle one inbound message and return the replies to send.

        Never raises: every outcome, including ledger failures, becomes a reply.
        """
        user_id = str(user_id)
        chat_id = str(chat_id)
        text = (text or "").strip()
        correlation_id = create_correlation_id()
        log = logger.bind(user_id=user_id, correlation_id=str(correlation_id))

        if not self._gate.is_authorized(user_id):
            log.warning("unauthorized_message", chat_id=chat_id)
            await self._audit.log_unauthorized(user_id, chat_id)
            return [Reply(text=UNAUTHORIZED_MESSAGE)]

        session = self._sessions.get(user_id)
        async with self._sessions.lock_for(user_id):
            step = session.step
            try:
                return await self._dispatch(session, text, correlation_id)
            except StorageError as e:
                log.error("ledger_call_failed", step=step.value, error=str(e))
                await self._audit.log_storage_error(
                    user_id, step.value, str(e), correlation_id
                )
                self._sessions.reset(session)
                return [Reply(text=PERSISTENCE_FAILED, keyboard=kb.main_menu_keyboard())]
            except Exception as e:
                log.exception("message_handling_failed", step=step.value)
                await self._audit.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"step": step.value},
                    correlation_id=correlation_id,
                )
                self._sessions.reset(session)
                return [Reply(text=PERSISTENCE_FAILED, keyboard=kb.main_menu_keyboard())]

    async def _dispatch(
        self,
        session: Session,
        text: str,
        correlation_id: UUID,
    ) -> list[Reply]:
        if text == kb.START:
            self._sessions.reset(session)
            return [self._menu_reply(WELCOME)]

        if text == kb.CANCEL:
            if not session.is_idle:
                await self._audit.log_flow_cancelled(
                    session.user_id, session.step.value, correlation_id
                )
            self._sessions.reset(session)
            return [self._menu_reply(CANCELLED)]

        if text == kb.BACK_TO_MENU:
            self._sessions.reset(session)
            return [self._menu_reply(MAIN_MENU)]

        if text == kb.BACK:
            if not self._sessions.back(session):
                self._sessions.reset(session)
                return [self._menu_reply(MAIN_MENU)]
            return [self._prompts.render(session)]

        starter = self._starters.get(text)
        if starter is not None:
            return await starter(session, correlation_id)

        rule = self._rules.get(session.step)
        if rule is None:
            return [self._menu_reply(USE_MENU_BUTTONS)]

        return await self._apply(rule, session, text, correlation_id)

    async def _apply(
        self,
        rule: StepRule,
        session: Session,
        text: str,
        correlation_id: UUID,
    ) -> list[Reply]:
        step = session.step
        try:
            value = rule.parse(session, text)
        except InputRejected as e:
            self._log_transition(session, step, Effect.REPROMPT)
            return [self._prompts.render(session, error=e.message)]

        if rule.finish is not None and (rule.terminal is None or rule.terminal(session)):
            self._log_transition(session, step, Effect.COMPLETE)
            return await rule.finish(session, value, correlation_id)

        self._sessions.save(session)
        session.step = rule.advance(session, value)
        self._log_transition(session, step, Effect.ADVANCE)
        return [self._prompts.render(session)]

    @staticmethod
    def _log_transition(session: Session, step: Step, effect: Effect) -> None:
        logger.debug(
            "step_transition",
            user_id=session.user_id,
            step=step.value,
            effect=effect.value,
            next_step=session.step.value,
            depth=len(session.history),
        )

    def _menu_reply(self, text: str) -> Reply:
        return Reply(text=text, keyboard=kb.main_menu_keyboard())

    def _now(self) -> str:
        return current_timestamp(
            self._settings.timezone,
            self._settings.timestamp_format,
            now=self._clock(),
        )

    def _finish_flow(self, session: Session, text: str) -> list[Reply]:
        self._sessions.reset(session)
        return [self._menu_reply(text)]

    # =========================================================================
    # MENU STARTERS
    # =========================================================================

    async def _begin(
        self,
        session: Session,
        step: Step,
        draft,
        correlation_id: UUID,
    ) -> list[Reply]:
        self._sessions.begin(session, step, draft)
        await self._audit.log_flow_started(session.user_id, draft.flow, correlation_id)
        return [self._prompts.render(session)]

    async def _start_expense(self, session: Session, correlation_id: UUID) -> list[Reply]:
        draft = SimpleEntryDraft(type=TransactionType.EXPENSE)
        return await self._begin(session, Step.CATEGORY, draft, correlation_id)

    async def _start_income(self, session: Session, correlation_id: UUID) -> list[Reply]:
        draft = SimpleEntryDraft(type=TransactionType.INCOME)
        return await self._begin(session, Step.CATEGORY, draft, correlation_id)

    async def _start_transfer(self, session: Session, correlation_id: UUID) -> list[Reply]:
        draft = SimpleEntryDraft(type=TransactionType.TRANSFER, category="")
        return await self._begin(session, Step.ACCOUNT1, draft, correlation_id)

    async def _start_reimbursement(
        self,
        session: Session,
        correlation_id: UUID,
    ) -> list[Reply]:
        draft = SimpleEntryDraft(
            type=TransactionType.REIMBURSEMENT,
            category=REIMBURSIBLES_CATEGORY,
        )
        return await self._begin(session, Step.ACCOUNT1, draft, correlation_id)

    async def _start_receivable(self, session: Session, correlation_id: UUID) -> list[Reply]:
        return await self._begin(
            session, Step.RECEIVABLE_TYPE, ReceivableDraft(), correlation_id
        )

    async def _start_payable(self, session: Session, correlation_id: UUID) -> list[Reply]:
        return await self._begin(
            session, Step.PAYABLE_DESCRIPTION, PayableDraft(), correlation_id
        )

    async def _start_summary(self, session: Session, correlation_id: UUID) -> list[Reply]:
        return await self._begin(session, Step.SUMMARY_TYPE, SummaryDraft(), correlation_id)

    async def _start_delete(self, session: Session, correlation_id: UUID) -> list[Reply]:
        snapshot = await self._storage.read_snapshot()
        if not snapshot.rows:
            return self._finish_flow(session, self._prompts.nothing_to_list("delete"))

        draft = DeleteDraft(
            listing=snapshot.tail(self._settings.selection_window),
            total_rows=snapshot.total_rows,
        )
        return await self._begin(session, Step.DELETE_SELECT, draft, correlation_id)

    async def _start_edit(self, session: Session, correlation_id: UUID) -> list[Reply]:
        snapshot = await self._storage.read_snapshot()
        if not snapshot.rows:
            return self._finish_flow(session, self._prompts.nothing_to_list("edit"))

        draft = EditDraft(
            listing=snapshot.tail(self._settings.selection_window),
            total_rows=snapshot.total_rows,
        )
        return await self._begin(session, Step.EDIT_SELECT, draft, correlation_id)

    async def _view_recent(self, session: Session, correlation_id: UUID) -> list[Reply]:
        rows = await self._storage.get_recent_rows(self._settings.recent_limit)
        return self._finish_flow(session, self._prompts.recent(rows))

    # =========================================================================
    # PARSERS
    # =========================================================================

    def _parse_category(self, session: Session, text: str) -> str:
        options = self._prompts.categories_for(session.draft.type)
        return parse_choice(text, options, SELECT_FROM_BUTTONS)

    def _parse_account(self, session: Session, text: str) -> str:
        return parse_choice(text, self._settings.accounts, INVALID_ACCOUNT)

    @staticmethod
    def _parse_text(session: Session, text: str) -> str:
        if not text:
            raise InputRejected(EMPTY_DESCRIPTION)
        return text

    @staticmethod
    def _parse_amount(session: Session, text: str) -> Decimal:
        return parse_positive_amount(text, INVALID_AMOUNT)

    @staticmethod
    def _parse_receivable_kind(session: Session, text: str) -> ReceivableKind:
        choice = parse_choice(
            text,
            (kb.NEW_RECEIVABLE, kb.PAYMENT_RECEIVED),
            SELECT_FROM_BUTTONS,
        )
        return ReceivableKind.NEW if choice == kb.NEW_RECEIVABLE else ReceivableKind.PAYMENT

    @staticmethod
    def _parse_billing_date(session: Session, text: str) -> str:
        return parse_date_string(text, "❌ Invalid date format. Use MM/DD/YYYY")

    @staticmethod
    def _parse_principal(session: Session, text: str) -> Decimal:
        return parse_positive_amount(text, "❌ Invalid amount. Enter monthly principal:")

    @staticmethod
    def _parse_interest(session: Session, text: str) -> Decimal:
        return parse_non_negative_amount(
            text, "❌ Invalid amount. Enter monthly interest (or 0):"
        )

    @staticmethod
    def _parse_fee(session: Session, text: str) -> Decimal:
        return parse_non_negative_amount(
            text, "❌ Invalid amount. Enter processing fee (or 0):"
        )

    @staticmethod
    def _parse_selection(session: Session, text: str) -> int:
        return parse_selection(text, len(session.draft.listing))

    @staticmethod
    def _parse_edit_field(session: Session, text: str) -> EditableField:
        if text not in kb.EDIT_FIELD_BUTTONS:
            raise InputRejected(SELECT_FROM_BUTTONS)
        return EditableField(kb.EDIT_FIELD_BUTTONS[text])

    def _parse_edit_value(self, session: Session, text: str) -> str:
        draft: EditDraft = session.draft
        field = draft.field

        if field == EditableField.DATE:
            return parse_date_string(text, "❌ Invalid format. Use MM/DD/YYYY")
        if field == EditableField.TYPE:
            return parse_choice(
                text, [t.value for t in TransactionType], "❌ Invalid type."
            )
        if field == EditableField.CATEGORY:
            return parse_choice(text, self._prompts.all_categories(), "❌ Invalid category.")
        if field in (EditableField.ACCOUNT1, EditableField.ACCOUNT2):
            return parse_choice(text, self._settings.accounts, "❌ Invalid account.")
        if field == EditableField.DESCRIPTION:
            return self._parse_text(session, text)

        amount = parse_signed_amount(text, "❌ Invalid amount.")
        if draft.selected.transaction_type == TransactionType.EXPENSE:
            amount = -abs(amount)
        return signed_amount_cell(amount)

    @staticmethod
    def _parse_summary_period(session: Session, text: str) -> SummaryPeriod:
        choice = parse_choice(
            text,
            (kb.MONTHLY_SUMMARY, kb.YEARLY_SUMMARY),
            SELECT_FROM_BUTTONS,
        )
        return SummaryPeriod.MONTHLY if choice == kb.MONTHLY_SUMMARY else SummaryPeriod.YEARLY

    def _parse_year(self, session: Session, text: str) -> int:
        year = parse_year_button(text)
        current = self._prompts.current_year()
        if year is None or not current - 2 <= year <= current:
            raise InputRejected(SELECT_FROM_BUTTONS)
        return year

    @staticmethod
    def _parse_month(session: Session, text: str) -> int:
        month = parse_month_button(text)
        if month is None:
            raise InputRejected(SELECT_FROM_BUTTONS)
        return month

    # =========================================================================
    # ADVANCE (draft mutation -> next step)
    # =========================================================================

    @staticmethod
    def _set_category(session: Session, value: str) -> Step:
        session.draft.category = value
        return Step.ACCOUNT1

    @staticmethod
    def _set_account1(session: Session, value: str) -> Step:
        session.draft.account1 = value
        if session.draft.type == TransactionType.TRANSFER:
            return Step.ACCOUNT2
        return Step.DESCRIPTION

    @staticmethod
    def _set_account2(session: Session, value: str) -> Step:
        session.draft.account2 = value
        return Step.DESCRIPTION

    @staticmethod
    def _set_description(session: Session, value: str) -> Step:
        session.draft.description = value
        return Step.AMOUNT

    @staticmethod
    def _set_receivable_kind(session: Session, value: ReceivableKind) -> Step:
        draft: ReceivableDraft = session.draft
        draft.kind = value
        if value == ReceivableKind.PAYMENT:
            draft.account1 = RECEIVABLE_ACCOUNT
        return Step.RECEIVABLE_ACCOUNT

    @staticmethod
    def _set_receivable_account(session: Session, value: str) -> Step:
        draft: ReceivableDraft = session.draft
        if draft.kind == ReceivableKind.PAYMENT:
            draft.account2 = value
        else:
            draft.account1 = value
            draft.account2 = RECEIVABLE_ACCOUNT
        return Step.RECEIVABLE_DESCRIPTION

    @staticmethod
    def _set_receivable_description(session: Session, value: str) -> Step:
        session.draft.description = value
        return Step.RECEIVABLE_AMOUNT

    @staticmethod
    def _set_loan_description(session: Session, value: str) -> Step:
        session.draft.description = value
        return Step.PAYABLE_PROCEEDS

    @staticmethod
    def _set_loan_proceeds(session: Session, value: Decimal) -> Step:
        session.draft.proceeds = value
        return Step.PAYABLE_ACCOUNT

    @staticmethod
    def _set_loan_account(session: Session, value: str) -> Step:
        session.draft.payment_account = value
        return Step.PAYABLE_BILLING_DATE

    @staticmethod
    def _set_loan_billing_date(session: Session, value: str) -> Step:
        session.draft.first_billing_date = value
        return Step.PAYABLE_TERMS

    @staticmethod
    def _set_loan_terms(session: Session, value: int) -> Step:
        session.draft.term_count = value
        return Step.PAYABLE_PRINCIPAL

    @staticmethod
    def _set_loan_principal(session: Session, value: Decimal) -> Step:
        session.draft.monthly_principal = value
        return Step.PAYABLE_INTEREST

    @staticmethod
    def _set_loan_interest(session: Session, value: Decimal) -> Step:
        session.draft.monthly_interest = value
        return Step.PAYABLE_FEE

    @staticmethod
    def _select_row(session: Session, value: int) -> Step:
        draft: EditDraft = session.draft
        listed = draft.listing[value - 1]
        position = listed_position(draft.total_rows, len(draft.listing), value)
        draft.selected = listed.model_copy(update={"position": position})
        return Step.EDIT_FIELD_SELECT

    @staticmethod
    def _set_edit_field(session: Session, value: EditableField) -> Step:
        session.draft.field = value
        return Step.EDIT_VALUE

    @staticmethod
    def _set_summary_period(session: Session, value: SummaryPeriod) -> Step:
        session.draft.period = value
        return Step.SUMMARY_YEAR

    @staticmethod
    def _set_summary_year(session: Session, value: int) -> Step:
        session.draft.year = value
        return Step.SUMMARY_MONTH

    @staticmethod
    def _is_yearly(session: Session) -> bool:
        return session.draft.period == SummaryPeriod.YEARLY

    # =========================================================================
    # COMPLETE
    # =========================================================================

    async def _save_entry(
        self,
        session: Session,
        amount: Decimal,
        correlation_id: UUID,
    ) -> list[Reply]:
        draft: SimpleEntryDraft = session.draft
        transaction = Transaction(
            date=self._now(),
            type=draft.type,
            category=draft.category,
            account1=draft.account1,
            account2=draft.account2,
            description=draft.description,
            amount=amount,
        )
        await self._storage.append_transaction(transaction)
        await self._audit.log_transaction_saved(
            session.user_id, transaction.to_values(), correlation_id
        )
        return self._finish_flow(session, self._prompts.entry_saved(transaction))

    async def _save_receivable(
        self,
        session: Session,
        amount: Decimal,
        correlation_id: UUID,
    ) -> list[Reply]:
        draft: ReceivableDraft = session.draft
        transaction = Transaction(
            date=self._now(),
            type=TransactionType.TRANSFER,
            account1=draft.account1,
            account2=draft.account2,
            description=draft.description,
            amount=amount,
        )
        await self._storage.append_transaction(transaction)
        await self._audit.log_transaction_saved(
            session.user_id, transaction.to_values(), correlation_id
        )
        return self._finish_flow(
            session, self._prompts.receivable_saved(draft.kind, transaction)
        )

    def _loan_lock(self, account: str) -> asyncio.Lock:
        lock = self._loan_locks.get(account)
        if lock is None:
            lock = asyncio.Lock()
            self._loan_locks[account] = lock
        return lock

    async def _create_loan(
        self,
        session: Session,
        processing_fee: Decimal,
        correlation_id: UUID,
    ) -> list[Reply]:
        draft: PayableDraft = session.draft
        try:
            parse_billing_date(draft.first_billing_date)
        except InvalidBillingDateError:
            logger.warning(
                "invalid_billing_date",
                user_id=session.user_id,
                value=draft.first_billing_date,
            )
            return self._finish_flow(
                session, self._prompts.invalid_billing_date(draft.first_billing_date)
            )

        account = draft.payment_account
        async with self._loan_lock(account):
            rows = await self._storage.get_all_rows()
            loan_number = next_loan_number(
                rows, account, self._settings.loan_number_offsets
            )
            schedule = generate_loan_schedule(
                account=account,
                loan_number=loan_number,
                proceeds=draft.proceeds,
                first_billing_date=draft.first_billing_date,
                term_count=draft.term_count,
                monthly_principal=draft.monthly_principal,
                monthly_interest=draft.monthly_interest,
                processing_fee=processing_fee,
                entry_date=self._now(),
                description=draft.description,
                proceeds_account=self._settings.loan_proceeds_account,
            )
            await self._storage.append_transactions(schedule)

        logger.info(
            "loan_created",
            user_id=session.user_id,
            account=account,
            loan_number=loan_number,
            rows=len(schedule),
        )
        await self._audit.log_loan_created(
            session.user_id, account, loan_number, len(schedule), correlation_id
        )
        return self._finish_flow(
            session,
            self._prompts.loan_created(draft, loan_number, processing_fee, len(schedule)),
        )

    async def _verify_unchanged(
        self,
        session: Session,
        listed: LedgerRow,
        correlation_id: UUID,
    ) -> Optional[list[Reply]]:
        """Re-read the listed position; replies when the row changed, else None."""
        current = await self._storage.get_row(listed.position)
        if current == listed:
            return None

        logger.warning(
            "stale_selection",
            user_id=session.user_id,
            position=listed.position,
        )
        await self._audit.log_stale_selection(
            session.user_id, listed.position, correlation_id
        )
        return self._finish_flow(session, STALE_SELECTION)

    async def _delete_row(
        self,
        session: Session,
        number: int,
        correlation_id: UUID,
    ) -> list[Reply]:
        draft: DeleteDraft = session.draft
        position = listed_position(draft.total_rows, len(draft.listing), number)
        listed = draft.listing[number - 1].model_copy(update={"position": position})

        stale = await self._verify_unchanged(session, listed, correlation_id)
        if stale is not None:
            return stale

        await self._storage.delete_row(position)
        await self._audit.log_transaction_deleted(
            session.user_id,
            position,
            [listed.value_of(f.value) for f in EditableField],
            correlation_id,
        )
        return self._finish_flow(session, self._prompts.deleted(listed))

    async def _update_row(
        self,
        session: Session,
        value: str,
        correlation_id: UUID,
    ) -> list[Reply]:
        draft: EditDraft = session.draft
        selected = draft.selected
        field = draft.field

        stale = await self._verify_unchanged(session, selected, correlation_id)
        if stale is not None:
            return stale

        old_value = selected.value_of(field.value)
        await self._storage.update_cell(selected.position, field.value, value)
        await self._audit.log_transaction_updated(
            session.user_id,
            selected.position,
            field.value,
            old_value,
            value,
            correlation_id,
        )

        # An Expense row never keeps a positive amount.
        if (
            field == EditableField.TYPE
            and value == TransactionType.EXPENSE.value
            and selected.amount > 0
        ):
            old_amount = selected.value_of(EditableField.AMOUNT.value)
            new_amount = signed_amount_cell(-abs(selected.amount))
            await self._storage.update_cell(
                selected.position, EditableField.AMOUNT.value, new_amount
            )
            await self._audit.log_transaction_updated(
                session.user_id,
                selected.position,
                EditableField.AMOUNT.value,
                old_amount,
                new_amount,
                correlation_id,
            )
        return self._finish_flow(session, self._prompts.updated(field, old_value, value))

    async def _report(
        self,
        session: Session,
        start: datetime,
        end: datetime,
        period_name: str,
        correlation_id: UUID,
    ) -> list[Reply]:
        rows = await self._storage.get_rows_by_date_range(start, end)
        summary = calculate_summary(rows)
        report = render_summary_report(
            summary,
            period_name,
            start,
            end,
            currency_symbol=self._settings.currency_symbol,
            date_format=self._settings.display_date_format,
        )
        await self._audit.log_summary_generated(
            session.user_id, period_name, summary.transaction_count, correlation_id
        )
        return self._finish_flow(session, report)

    async def _yearly_summary(
        self,
        session: Session,
        year: int,
        correlation_id: UUID,
    ) -> list[Reply]:
        start, end = year_range(year)
        return await self._report(session, start, end, f"Year {year}", correlation_id)

    async def _monthly_summary(
        self,
        session: Session,
        month: int,
        correlation_id: UUID,
    ) -> list[Reply]:
        year = session.draft.year
        start, end = month_range(year, month)
        return await self._report(
            session, start, end, f"{MONTH_NAMES[month - 1]} {year}", correlation_id
        )
