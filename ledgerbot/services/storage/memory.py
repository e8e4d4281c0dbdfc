"""
In-Memory Storage

Backs the test-suite and the local console. Behaves like the sheet:
a header row at position 1, appends at the bottom, deletes shift rows up.
"""

from typing import Optional

from ledgerbot.models.audit import AuditEvent
from ledgerbot.models.transaction import (
    FIELD_COLUMNS,
    LEDGER_COLUMNS,
    LedgerRow,
    LedgerSnapshot,
    Transaction,
)
from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger held as a list of raw rows, header first."""

    def __init__(self, rows: Optional[list[list[str]]] = None):
        self._values: list[list[str]] = [list(LEDGER_COLUMNS)]
        for row in rows or []:
            self._values.append([str(cell) for cell in row])

    @property
    def values(self) -> list[list[str]]:
        """Raw cells, header included."""
        return self._values

    def _check_position(self, position: int) -> None:
        if position < 2 or position > len(self._values):
            raise NotFoundError(f"Row {position} is not a data row")

    async def append_transaction(self, transaction: Transaction) -> bool:
        self._values.append(transaction.to_values())
        return True

    async def append_transactions(self, transactions: list[Transaction]) -> int:
        self._values.extend(t.to_values() for t in transactions)
        return len(transactions)

    async def read_snapshot(self) -> LedgerSnapshot:
        rows = [
            LedgerRow.from_values(position, row)
            for position, row in enumerate(self._values[1:], start=2)
        ]
        return LedgerSnapshot(rows=rows, total_rows=len(self._values))

    async def update_cell(self, position: int, field: str, value: str) -> bool:
        if field not in FIELD_COLUMNS:
            raise StorageError(f"Unknown ledger field: {field}")
        self._check_position(position)

        row = self._values[position - 1]
        row += [""] * (len(LEDGER_COLUMNS) - len(row))
        row[FIELD_COLUMNS[field] - 1] = value
        return True

    async def delete_row(self, position: int) -> bool:
        self._check_position(position)
        del self._values[position - 1]
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
