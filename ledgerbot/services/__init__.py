"""Services package."""

from ledgerbot.services.auth import UNAUTHORIZED_MESSAGE, AuthorizationGate
from ledgerbot.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StorageTimeoutError,
)

__all__ = [
    # Authorization
    "AuthorizationGate",
    "UNAUTHORIZED_MESSAGE",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
    "StorageTimeoutError",
]
