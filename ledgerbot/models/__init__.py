"""
Data Models Package

This package contains all Pydantic models used by the ledger bot.
All data flowing between the conversation engine and the ledger must
conform to these schemas.
"""

from ledgerbot.models.catalog import (
    INTEREST_EXPENSE_CATEGORY,
    LOAN_CLEARING_ACCOUNT,
    RECEIVABLE_ACCOUNT,
    REIMBURSIBLES_CATEGORY,
    TransactionType,
)
from ledgerbot.models.transaction import (
    FIELD_COLUMNS,
    LEDGER_COLUMNS,
    LedgerRow,
    LedgerSnapshot,
    SummaryData,
    Transaction,
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
    Snapshot,
    Step,
    SummaryDraft,
    SummaryPeriod,
)
from ledgerbot.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Catalog
    "INTEREST_EXPENSE_CATEGORY",
    "LOAN_CLEARING_ACCOUNT",
    "RECEIVABLE_ACCOUNT",
    "REIMBURSIBLES_CATEGORY",
    "TransactionType",
    # Ledger models
    "FIELD_COLUMNS",
    "LEDGER_COLUMNS",
    "LedgerRow",
    "LedgerSnapshot",
    "SummaryData",
    "Transaction",
    # Session models
    "DeleteDraft",
    "EditableField",
    "EditDraft",
    "PayableDraft",
    "ReceivableDraft",
    "ReceivableKind",
    "Session",
    "SimpleEntryDraft",
    "Snapshot",
    "Step",
    "SummaryDraft",
    "SummaryPeriod",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
