"""Pydantic schemas for ledger transactions."""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from services.holdings_service import TransactionKind


class TransactionCreate(BaseModel):
    """Schema for recording a single transaction."""

    symbol: Optional[str] = None
    name: Optional[str] = None
    type: TransactionKind
    quantity: Decimal = Field(ge=0)
    price_per_unit: Decimal = Field(default=Decimal("0"), ge=0)
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    date: datetime.date
    broker_source: str = "manual"
    notes: Optional[str] = None


class TransactionResponse(BaseModel):
    """Schema for Transaction API response."""

    id: str
    portfolio_id: str
    asset_id: str
    transaction_type: str
    quantity: Decimal
    price_per_unit: Decimal
    total_amount: Decimal
    fees: Decimal
    transaction_date: datetime.date
    broker_source: str
    import_batch_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)
