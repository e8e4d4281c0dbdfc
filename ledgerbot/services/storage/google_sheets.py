"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the ledger itself, not a cache of it.
1. The owner reads and edits the sheet directly
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions: a batch append is one API call, nothing more
- Rows are addressed by position, which shifts on delete
- Limited query capabilities (we filter in Python)

gspread is synchronous. Every call runs in a worker thread and is bounded
by storage_timeout_seconds. Idempotent calls (reads, single-cell updates,
connecting) are retried; appends and deletes are NOT retried because the
API gives us no idempotency key and a resend could duplicate rows.
"""

import asyncio
from typing import Callable, Optional, TypeVar

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledgerbot.config import GoogleSheetsSettings, get_settings
from ledgerbot.models.audit import AUDIT_COLUMNS, AuditEvent
from ledgerbot.models.transaction import (
    FIELD_COLUMNS,
    LEDGER_COLUMNS,
    LedgerRow,
    LedgerSnapshot,
    Transaction,
)
from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StorageTimeoutError,
)


logger = structlog.get_logger()

T = TypeVar("T")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup. Worksheets are created
    with their header row on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        header: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(header),
            )
            sheet.append_row(header)
            logger.info("worksheet_created", title=title)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the ledger worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            LEDGER_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One transaction per row, seven columns, header in row 1.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._timeout = timeout_seconds or get_settings().ledger.storage_timeout_seconds

    async def _call(self, operation: str, func: Callable[..., T], *args) -> T:
        """Run a blocking gspread call off the event loop, bounded by the timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error("sheets_call_timeout", operation=operation, timeout=self._timeout)
            raise StorageTimeoutError(
                f"{operation} did not finish within {self._timeout:g}s"
            )
        except StorageError:
            raise
        except Exception as e:
            logger.error("sheets_call_failed", operation=operation, error=str(e))
            raise StorageError(f"Failed to {operation}: {e}")

    # Blocking helpers (run in a worker thread)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_values(self) -> list[list[str]]:
        sheet = self._client.get_transactions_sheet()
        return sheet.get_all_values()

    def _append_values(self, values: list[list[str]]) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.append_rows(values, value_input_option="USER_ENTERED")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _update_cell(self, position: int, column: int, value: str) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.update_cell(position, column, value)

    def _delete_row(self, position: int) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.delete_rows(position)

    # Interface

    async def append_transaction(self, transaction: Transaction) -> bool:
        """Append one row."""
        await self.append_transactions([transaction])
        return True

    async def append_transactions(self, transactions: list[Transaction]) -> int:
        """Append all rows with a single append_rows call."""
        if not transactions:
            return 0
        values = [transaction.to_values() for transaction in transactions]
        await self._call("append rows", self._append_values, values)
        logger.info("rows_appended", count=len(values))
        return len(values)

    async def read_snapshot(self) -> LedgerSnapshot:
        values = await self._call("read ledger", self._read_values)
        if not values:
            return LedgerSnapshot(rows=[], total_rows=1)

        rows = [
            LedgerRow.from_values(position, row)
            for position, row in enumerate(values[1:], start=2)
        ]
        return LedgerSnapshot(rows=rows, total_rows=len(values))

    async def update_cell(self, position: int, field: str, value: str) -> bool:
        """Overwrite one cell of a data row."""
        if field not in FIELD_COLUMNS:
            raise StorageError(f"Unknown ledger field: {field}")
        if position < 2:
            raise NotFoundError(f"Row {position} is not a data row")

        await self._call(
            "update cell",
            self._update_cell,
            position,
            FIELD_COLUMNS[field],
            value,
        )
        logger.info("cell_updated", position=position, field=field)
        return True

    async def delete_row(self, position: int) -> bool:
        """Delete one data row. Rows below it move up by one."""
        if position < 2:
            raise NotFoundError(f"Row {position} is not a data row")

        await self._call("delete row", self._delete_row, position)
        logger.info("row_deleted", position=position)
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_sheet)
            await asyncio.to_thread(
                sheet.append_row,
                event.to_sheets_row(),
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            logger.warning(
                "audit_event_not_persisted",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False
