"""
Main Orchestrator for the Sheets Ledger Bot

Ties the components together:

    settings -> ledger storage + audit storage -> audit logger
             -> authorization gate + session store -> conversation engine

DESIGN DECISION: The ledger backend is chosen once, here.
- use_sheets_storage=True: Google Sheets. A misconfigured sheet fails
  start-up; the bot never silently writes somewhere else.
- use_sheets_storage=False: in-memory rows, for the console and tests.

The audit trail is best-effort: if the audit worksheet cannot be opened
the bot still runs and audit events go to the local log only.
"""

from datetime import datetime
from typing import Callable, NamedTuple, Optional

import structlog

from ledgerbot.audit import AuditLogger
from ledgerbot.config import Settings, get_settings
from ledgerbot.conversation import ConversationEngine, SessionStore
from ledgerbot.services.auth import AuthorizationGate
from ledgerbot.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)


logger = structlog.get_logger()


class AppComponents(NamedTuple):
    engine: ConversationEngine
    storage: LedgerStorageInterface
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient]


def create_app_components(
    settings: Optional[Settings] = None,
    use_storage: Optional[bool] = None,
    allowed_ids: Optional[list[str]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Root settings; defaults to the cached environment settings.
        use_storage: Override for AppSettings.use_sheets_storage.
        allowed_ids: Override for the authorized user ids.
        clock: Override for "now" (tests).

    Returns:
        AppComponents(engine, storage, audit_logger, sheets_client)
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    if use_storage is None:
        use_storage = settings.app.use_sheets_storage

    sheets_client = None
    if use_storage:
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        storage = GoogleSheetsLedgerStorage(
            sheets_client,
            timeout_seconds=ledger_settings.storage_timeout_seconds,
        )
        sheets_client.get_transactions_sheet()
        try:
            sheets_client.get_audit_sheet()
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            logger.warning("audit_storage_unavailable", error=str(e))
            audit_logger = AuditLogger()
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    gate = (
        AuthorizationGate(allowed_ids=allowed_ids)
        if allowed_ids is not None
        else AuthorizationGate(settings=settings.auth)
    )

    engine = ConversationEngine(
        storage=storage,
        sessions=SessionStore(),
        gate=gate,
        settings=ledger_settings,
        audit_logger=audit_logger,
        clock=clock,
    )

    logger.info(
        "components_created",
        storage=type(storage).__name__,
        authorized_users=len(gate),
    )
    return AppComponents(engine, storage, audit_logger, sheets_client)
