"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Traceability of edits and deletes made from the chat
2. Debugging capability when a ledger call fails
3. A record of refused access attempts

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the bot if logging fails)
- Supports correlation IDs to trace all events of one inbound message
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledgerbot.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledgerbot.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Google Sheets AuditLog worksheet, when storage is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledgerbot.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_unauthorized(self, user_id: str, chat_id: str) -> None:
        await self.log(AuditEventBuilder.unauthorized_access(user_id, chat_id))

    async def log_flow_started(
        self,
        user_id: str,
        flow: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.flow_started(user_id, flow, correlation_id))

    async def log_flow_cancelled(
        self,
        user_id: str,
        step: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.flow_cancelled(user_id, step, correlation_id))

    async def log_transaction_saved(
        self,
        user_id: str,
        values: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log a single appended row."""
        event = AuditEventBuilder.transaction_saved(
            user_id=user_id,
            values=values,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_loan_created(
        self,
        user_id: str,
        account: str,
        loan_number: int,
        row_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.loan_created(
            user_id=user_id,
            account=account,
            loan_number=loan_number,
            row_count=row_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        user_id: str,
        position: int,
        field: str,
        old_value: str,
        new_value: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            user_id=user_id,
            position=position,
            field=field,
            old_value=old_value,
            new_value=new_value,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        user_id: str,
        position: int,
        values: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            position=position,
            values=values,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_stale_selection(
        self,
        user_id: str,
        position: int,
        correlation_id: UUID,
    ) -> None:
        """Log a listed row that changed before it could be acted on."""
        await self.log(
            AuditEventBuilder.stale_selection(user_id, position, correlation_id)
        )

    async def log_summary_generated(
        self,
        user_id: str,
        period_name: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.summary_generated(
            user_id=user_id,
            period_name=period_name,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        user_id: str,
        step: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed ledger call."""
        event = AuditEventBuilder.storage_error(
            user_id=user_id,
            step=step,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when an inbound message arrives.
    Pass it through all subsequent operations.
    """
    return uuid4()
