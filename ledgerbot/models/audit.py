"""
Audit Models for Sheets Ledger Bot

Every change the bot makes to the ledger, and every refused access,
is recorded as an audit event. This provides:
1. Traceability of who changed which row and when
2. Debugging information when a ledger call fails
3. A trail for the known races (stale selections, loan numbering)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Access
    UNAUTHORIZED_ACCESS = "unauthorized_access"

    # Conversation
    FLOW_STARTED = "flow_started"
    FLOW_CANCELLED = "flow_cancelled"

    # Ledger writes
    TRANSACTION_SAVED = "transaction_saved"
    LOAN_CREATED = "loan_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    STALE_SELECTION = "stale_selection"

    # Reads
    SUMMARY_GENERATED = "summary_generated"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_id is the sheet row position for row-level events.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context
    user_id: Optional[str] = None
    entity_id: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by every event raised while handling one message"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """Columns in AUDIT_COLUMNS order."""
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(user_id, values, correlation_id)
    """

    @staticmethod
    def unauthorized_access(user_id: str, chat_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED_ACCESS,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            description=f"Unauthorized message from user {user_id}",
            details={"chat_id": chat_id},
            is_user_action=True,
        )

    @staticmethod
    def flow_started(
        user_id: str,
        flow: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FLOW_STARTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Flow started: {flow}",
            details={"flow": flow},
            is_user_action=True,
        )

    @staticmethod
    def flow_cancelled(
        user_id: str,
        step: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FLOW_CANCELLED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Flow cancelled at step {step}",
            details={"step": step},
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        user_id: str,
        values: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{values[1]} saved: {values[5][:200]} ({values[6]})",
            details={"row": values},
        )

    @staticmethod
    def loan_created(
        user_id: str,
        account: str,
        loan_number: int,
        row_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_CREATED,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{account} Loan #{loan_number} created with {row_count} rows",
            details={
                "account": account,
                "loan_number": loan_number,
                "row_count": row_count,
            },
        )

    @staticmethod
    def transaction_updated(
        user_id: str,
        position: int,
        field: str,
        old_value: str,
        new_value: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            user_id=user_id,
            entity_id=str(position),
            correlation_id=correlation_id,
            description=f"Row {position} {field} updated",
            details={
                "field": field,
                "old": old_value,
                "new": new_value,
            },
        )

    @staticmethod
    def transaction_deleted(
        user_id: str,
        position: int,
        values: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_id=str(position),
            correlation_id=correlation_id,
            description=f"Row {position} deleted",
            details={"row": values},
        )

    @staticmethod
    def stale_selection(
        user_id: str,
        position: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_SELECTION,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_id=str(position),
            correlation_id=correlation_id,
            description=f"Row {position} changed between listing and action",
        )

    @staticmethod
    def summary_generated(
        user_id: str,
        period_name: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_GENERATED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Summary for {period_name}: {transaction_count} transactions",
            details={
                "period": period_name,
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def storage_error(
        user_id: str,
        step: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Ledger call failed at step {step}",
            error_message=error_message,
            details={"step": step},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
