"""
Ledger Row Models

The spreadsheet layout is a boundary contract: seven ordered columns,
header in row 1. These models are the only place that knows the order.

- Transaction: a row we are about to write.
- LedgerRow: a row we read back, with its 1-based sheet position.

DESIGN DECISION: Expense amounts are sign-normalized here, at the
boundary, instead of trusting whatever sign the user typed.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ledgerbot.formatting import signed_amount_cell
from ledgerbot.models.catalog import TransactionType
from ledgerbot.validation import parse_amount


LEDGER_COLUMNS = [
    "Date",
    "Type",
    "Category",
    "Account 1",
    "Account 2",
    "Description",
    "Amount",
]

# Field name -> 1-based column index, used for single-cell updates
FIELD_COLUMNS = {
    "date": 1,
    "type": 2,
    "category": 3,
    "account1": 4,
    "account2": 5,
    "description": 6,
    "amount": 7,
}


class Transaction(BaseModel):
    """A ledger entry ready to be appended."""
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(
        ...,
        min_length=1,
        description="Localized timestamp or MM/DD/YYYY"
    )
    type: TransactionType
    category: str = ""
    account1: str = ""
    account2: str = ""
    description: str = ""
    amount: Decimal

    @model_validator(mode='after')
    def normalize_expense_sign(self) -> 'Transaction':
        """Expenses are always stored as outflows."""
        if self.type == TransactionType.EXPENSE:
            self.amount = -abs(self.amount)
        return self

    def to_values(self) -> list[str]:
        """Convert to the seven spreadsheet cells."""
        return [
            self.date,
            self.type.value,
            self.category,
            self.account1,
            self.account2,
            self.description,
            signed_amount_cell(self.amount),
        ]


class LedgerRow(BaseModel):
    """
    A row read from the ledger.

    Type is kept as a plain string: the sheet is edited by hand too, and
    a row with an unexpected type must still be listable and deletable.
    """

    position: int = Field(
        ...,
        ge=2,
        description="1-based sheet row (row 1 is the header)"
    )
    date: str = ""
    type: str = ""
    category: str = ""
    account1: str = ""
    account2: str = ""
    description: str = ""
    amount: Decimal = Decimal("0")

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount_cell(cls, v) -> Decimal:
        return parse_amount(v)

    @classmethod
    def from_values(cls, position: int, values: list) -> 'LedgerRow':
        """Build from raw cells, padding missing trailing columns."""
        cells = [str(v) if v is not None else "" for v in values]
        cells += [""] * (len(LEDGER_COLUMNS) - len(cells))
        return cls(
            position=position,
            date=cells[0],
            type=cells[1],
            category=cells[2],
            account1=cells[3],
            account2=cells[4],
            description=cells[5],
            amount=cells[6],
        )

    def value_of(self, field: str) -> str:
        if field == "amount":
            return signed_amount_cell(self.amount)
        return getattr(self, field)

    @property
    def transaction_type(self) -> Optional[TransactionType]:
        try:
            return TransactionType(self.type)
        except ValueError:
            return None


class LedgerSnapshot(BaseModel):
    """
    Every data row plus the sheet's row count at read time.

    total_rows includes the header, so an empty ledger has total_rows == 1.
    """

    rows: list[LedgerRow] = Field(default_factory=list)
    total_rows: int = Field(default=1, ge=1)

    def row_at(self, position: int) -> Optional[LedgerRow]:
        index = position - 2
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return None

    def tail(self, limit: int) -> list[LedgerRow]:
        """The last `limit` data rows, oldest first."""
        if limit <= 0:
            return []
        return self.rows[-limit:]


class SummaryData(BaseModel):
    """Aggregate over a date-filtered set of rows."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    net_income: Decimal = Decimal("0")
    income_by_category: dict[str, Decimal] = Field(default_factory=dict)
    expense_by_category: dict[str, Decimal] = Field(default_factory=dict)
    transaction_count: int = 0
