"""Pydantic schemas for transaction import (price backfill and confirm)."""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from services.holdings_service import TransactionKind


class RawTransaction(BaseModel):
    """A parsed-but-unverified transaction row.

    Any of price, date, fees and total may be missing; the backfill step
    fills them in.
    """

    symbol: Optional[str] = None
    type: TransactionKind = TransactionKind.BUY
    quantity: Decimal = Decimal("0")
    price: Optional[Decimal] = None
    date: Optional[datetime.date] = None
    fees: Optional[Decimal] = None
    total: Optional[Decimal] = None


class NormalizedTransaction(BaseModel):
    """A transaction row after defaults and price backfill."""

    id: str
    symbol: Optional[str] = None
    type: TransactionKind
    quantity: Decimal
    price: Decimal
    date: datetime.date
    fees: Decimal
    total: Decimal
    valid: bool
    error: Optional[str] = None


class BackfillRequest(BaseModel):
    """Request body for the price backfill endpoint."""

    transactions: list[RawTransaction]


class BackfillResponse(BaseModel):
    """Normalized rows, each flagged valid or carrying an error reason."""

    transactions: list[NormalizedTransaction]


class ImportConfirmRequest(BaseModel):
    """Request body for committing reviewed rows to a portfolio."""

    portfolio_id: str
    transactions: list[NormalizedTransaction] = Field(min_length=1)
    broker: str = "manual"
    source: str = "import"


class ImportRowError(BaseModel):
    """A row that passed validation but failed to persist."""

    symbol: str
    error: str


class ImportResult(BaseModel):
    """Outcome of committing an import batch."""

    batch_id: str
    imported: int
    failed: int
    skipped: int
    errors: list[ImportRowError] = []
