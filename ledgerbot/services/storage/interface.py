"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger operations.
This allows us to:
1. Keep the conversation engine unaware of gspread
2. Use in-memory storage for testing and the local console
3. Swap the backing spreadsheet for a real database later

Rows are addressed by their 1-based sheet position (row 1 is the header).
Positions are not stable identifiers: a delete shifts every row below it.
Callers that act on a previously listed row must re-read and compare first.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ledgerbot.models.audit import AuditEvent
from ledgerbot.models.transaction import LedgerRow, LedgerSnapshot, Transaction
from ledgerbot.reports.summary import filter_by_range


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, in-memory, ...)
    must implement the abstract methods. The read helpers are
    derived from read_snapshot().
    """

    @abstractmethod
    async def append_transaction(self, transaction: Transaction) -> bool:
        """
        Append one row.

        Raises:
            StorageError: If the append fails
        """
        pass

    @abstractmethod
    async def append_transactions(self, transactions: list[Transaction]) -> int:
        """
        Append many rows in a single call.

        Returns:
            Number of rows appended

        Raises:
            StorageError: If the append fails (nothing is resent)
        """
        pass

    @abstractmethod
    async def read_snapshot(self) -> LedgerSnapshot:
        """
        Read every data row together with the total row count.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def update_cell(self, position: int, field: str, value: str) -> bool:
        """
        Overwrite a single cell.

        Args:
            position: 1-based sheet row, header included
            field: One of the keys of FIELD_COLUMNS
            value: New cell content

        Raises:
            NotFoundError: If the position is outside the data rows
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete_row(self, position: int) -> bool:
        """
        Delete a data row by position.

        Raises:
            NotFoundError: If the position is outside the data rows
            StorageError: If the delete fails
        """
        pass

    async def get_all_rows(self) -> list[LedgerRow]:
        """All data rows, header excluded, oldest first."""
        snapshot = await self.read_snapshot()
        return snapshot.rows

    async def get_recent_rows(self, limit: int) -> list[LedgerRow]:
        """The last `limit` data rows, oldest first."""
        snapshot = await self.read_snapshot()
        return snapshot.tail(limit)

    async def get_row(self, position: int) -> Optional[LedgerRow]:
        snapshot = await self.read_snapshot()
        return snapshot.row_at(position)

    async def get_rows_by_date_range(
        self,
        start: datetime,
        end: datetime,
    ) -> list[LedgerRow]:
        """Rows whose Date cell falls within [start, end]."""
        rows = await self.get_all_rows()
        return filter_by_range(rows, start, end)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageTimeoutError(StorageError):
    """A storage call did not finish within the configured timeout."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
