"""Shared fixtures: an engine over in-memory storage with a fixed clock."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from ledgerbot.audit import AuditLogger
from ledgerbot.config import LedgerSettings
from ledgerbot.conversation import ConversationEngine, SessionStore
from ledgerbot.services.auth import AuthorizationGate
from ledgerbot.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


USER_ID = "1001"
CHAT_ID = "1001"
FIXED_NOW = datetime(2026, 3, 15, 14, 30, 0, tzinfo=ZoneInfo("Asia/Manila"))
FIXED_TIMESTAMP = "03/15/2026, 02:30:00 PM"


@pytest.fixture
def ledger_settings():
    return LedgerSettings(_env_file=None)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def engine(storage, audit_storage, sessions, ledger_settings):
    return ConversationEngine(
        storage=storage,
        sessions=sessions,
        gate=AuthorizationGate(allowed_ids=[USER_ID]),
        settings=ledger_settings,
        audit_logger=AuditLogger(audit_storage),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def chat(engine):
    """Send messages in order; returns the replies to the last one."""
    async def send(*texts, user_id=USER_ID):
        replies = []
        for text in texts:
            replies = await engine.handle_message(user_id, CHAT_ID, text)
        return replies
    return send
