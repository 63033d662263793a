"""Pydantic schemas for quote endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class QuoteResponse(BaseModel):
    """A cached quote."""

    symbol: str
    price: Decimal
    previous_close: Decimal
    change: Decimal
    change_percent: Decimal
    day_high: Optional[Decimal] = None
    day_low: Optional[Decimal] = None
    name: str = ""
    source: str = ""

    model_config = ConfigDict(from_attributes=True)


class QuotesResponse(BaseModel):
    """Quotes keyed by upper-case symbol."""

    quotes: dict[str, QuoteResponse]
    last_updated: Optional[datetime] = None
    error: Optional[str] = None


class PollingRequest(BaseModel):
    """Symbols to watch."""

    symbols: list[str] = Field(default_factory=list)


class PollingStatusResponse(BaseModel):
    """Scheduler state for staleness indicators."""

    symbols: list[str]
    is_polling: bool
    interval_seconds: Optional[float] = None
    last_updated: Optional[datetime] = None
    last_updated_relative: Optional[str] = None
    loading: bool
    error: Optional[str] = None
    cached_symbols: list[str] = []
