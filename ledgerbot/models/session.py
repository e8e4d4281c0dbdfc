"""
Conversation Session Models

A session is the per-user state of a multi-message flow:
- step: where in the flow the user is
- draft: the partially built entry, one model per flow family
- history: snapshots taken before every reversible forward transition

DESIGN DECISION: Drafts are a discriminated union instead of an open dict.
Starting a new flow replaces the whole draft, so a field from a previous
flow can never leak into the next one.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from ledgerbot.models.catalog import TransactionType
from ledgerbot.models.transaction import LedgerRow


class Step(str, Enum):
    """Every point in a flow that expects a reply."""
    IDLE = "idle"

    # Simple entry
    CATEGORY = "category"
    ACCOUNT1 = "account1"
    ACCOUNT2 = "account2"
    DESCRIPTION = "description"
    AMOUNT = "amount"

    # Receivable
    RECEIVABLE_TYPE = "receivable_type"
    RECEIVABLE_ACCOUNT = "receivable_account"
    RECEIVABLE_DESCRIPTION = "receivable_description"
    RECEIVABLE_AMOUNT = "receivable_amount"

    # Payable (loan)
    PAYABLE_DESCRIPTION = "payable_description"
    PAYABLE_PROCEEDS = "payable_proceeds_amount"
    PAYABLE_ACCOUNT = "payable_account"
    PAYABLE_BILLING_DATE = "payable_billing_date"
    PAYABLE_TERMS = "payable_terms"
    PAYABLE_PRINCIPAL = "payable_principal"
    PAYABLE_INTEREST = "payable_interest"
    PAYABLE_FEE = "payable_processing_fee"

    # Delete / edit
    DELETE_SELECT = "delete_select"
    EDIT_SELECT = "edit_select"
    EDIT_FIELD_SELECT = "edit_field_select"
    EDIT_VALUE = "edit_value"

    # Summary
    SUMMARY_TYPE = "summary_select_type"
    SUMMARY_YEAR = "summary_select_year"
    SUMMARY_MONTH = "summary_select_month"


class ReceivableKind(str, Enum):
    NEW = "new"
    PAYMENT = "payment"


class SummaryPeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class EditableField(str, Enum):
    DATE = "date"
    TYPE = "type"
    CATEGORY = "category"
    ACCOUNT1 = "account1"
    ACCOUNT2 = "account2"
    DESCRIPTION = "description"
    AMOUNT = "amount"


# =============================================================================
# FLOW DRAFTS
# =============================================================================

class SimpleEntryDraft(BaseModel):
    """Expense, income, transfer or reimbursement."""
    flow: Literal["simple"] = "simple"
    type: TransactionType
    category: str = ""
    account1: str = ""
    account2: str = ""
    description: str = ""


class ReceivableDraft(BaseModel):
    """New receivable or payment received; persisted as a Transfer."""
    flow: Literal["receivable"] = "receivable"
    kind: Optional[ReceivableKind] = None
    account1: str = ""
    account2: str = ""
    description: str = ""


class PayableDraft(BaseModel):
    """Loan proceeds plus the terms of its amortization schedule."""
    flow: Literal["payable"] = "payable"
    description: str = ""
    proceeds: Optional[Decimal] = None
    payment_account: str = ""
    first_billing_date: str = ""
    term_count: Optional[int] = None
    monthly_principal: Optional[Decimal] = None
    monthly_interest: Optional[Decimal] = None


class DeleteDraft(BaseModel):
    """The numbered listing the user picks a row to delete from."""
    flow: Literal["delete"] = "delete"
    listing: list[LedgerRow] = Field(default_factory=list)
    total_rows: int = Field(
        default=0,
        ge=0,
        description="Sheet row count including the header, at listing time"
    )


class EditDraft(BaseModel):
    """Listing, the selected row and the field being edited."""
    flow: Literal["edit"] = "edit"
    listing: list[LedgerRow] = Field(default_factory=list)
    total_rows: int = Field(default=0, ge=0)
    selected: Optional[LedgerRow] = None
    field: Optional[EditableField] = None


class SummaryDraft(BaseModel):
    flow: Literal["summary"] = "summary"
    period: Optional[SummaryPeriod] = None
    year: Optional[int] = None


FlowDraft = Annotated[
    Union[
        SimpleEntryDraft,
        ReceivableDraft,
        PayableDraft,
        DeleteDraft,
        EditDraft,
        SummaryDraft,
    ],
    Field(discriminator="flow"),
]


# =============================================================================
# SESSION
# =============================================================================

class Snapshot(BaseModel):
    """A (step, draft) pair saved on the navigation stack."""
    step: Step
    draft: Optional[FlowDraft] = None


class Session(BaseModel):
    """Conversation state for one user. Lives in process memory only."""

    user_id: str
    step: Step = Step.IDLE
    draft: Optional[FlowDraft] = None
    history: list[Snapshot] = Field(default_factory=list)

    def snapshot(self) -> Snapshot:
        """Deep copy of the current position; the draft is mutated in place later."""
        draft = self.draft.model_copy(deep=True) if self.draft is not None else None
        return Snapshot(step=self.step, draft=draft)

    def restore(self, snapshot: Snapshot) -> None:
        self.step = snapshot.step
        self.draft = (
            snapshot.draft.model_copy(deep=True)
            if snapshot.draft is not None
            else None
        )

    def reset(self) -> None:
        self.step = Step.IDLE
        self.draft = None
        self.history = []

    @property
    def is_idle(self) -> bool:
        return self.step == Step.IDLE
