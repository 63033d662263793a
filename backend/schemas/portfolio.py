"""Pydantic schemas for portfolios, holdings and valuation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PortfolioCreate(BaseModel):
    """Schema for creating a portfolio."""

    name: str
    description: Optional[str] = None


class PortfolioResponse(BaseModel):
    """Schema for Portfolio API response."""

    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HoldingResponse(BaseModel):
    """A derived holding with weighted-average cost."""

    portfolio_id: str
    asset_id: str
    symbol: str
    name: str
    quantity: Decimal
    avg_cost: Decimal
    total_cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class HoldingValuationResponse(HoldingResponse):
    """A holding priced against the latest quote."""

    current_price: Decimal
    market_value: Decimal
    unrealized_gain: Decimal
    unrealized_gain_percent: Decimal
    day_change: Decimal
    weight: Decimal
    has_quote: bool


class ValuationSummaryResponse(BaseModel):
    """Aggregate portfolio metrics."""

    total_value: Decimal
    total_cost: Decimal
    day_change: Decimal
    day_change_percent: Decimal
    total_gain: Decimal
    total_gain_percent: Decimal

    model_config = ConfigDict(from_attributes=True)


class PortfolioValuationResponse(BaseModel):
    """Summary plus per-holding rows, with quote freshness."""

    portfolio_id: Optional[str] = None
    summary: ValuationSummaryResponse
    holdings: list[HoldingValuationResponse]
    quotes_last_updated: Optional[datetime] = None
    quotes_error: Optional[str] = None
