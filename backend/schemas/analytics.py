"""Pydantic schemas for cross-portfolio analytics."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from schemas.portfolio import ValuationSummaryResponse


class AllocationSliceResponse(BaseModel):
    symbol: str
    name: str
    value: Decimal
    percent: Decimal


class PerformerResponse(BaseModel):
    portfolio_id: str
    symbol: str
    name: str
    gain: Decimal
    gain_percent: Decimal


class OverlapResponse(BaseModel):
    """A symbol held in more than one portfolio."""

    symbol: str
    portfolio_ids: list[str]
    portfolio_names: list[str]
    total_quantity: Decimal
    total_value: Decimal


class PortfolioBreakdownResponse(BaseModel):
    portfolio_id: str
    name: str
    total_value: Decimal
    total_cost: Decimal
    gain: Decimal
    gain_percent: Decimal
    cash_balance: Decimal
    holdings_count: int


class MoverResponse(BaseModel):
    symbol: str
    name: str
    day_change: Decimal
    day_change_percent: Decimal


class AnalyticsResponse(BaseModel):
    """Cross-portfolio KPIs with quote freshness."""

    summary: ValuationSummaryResponse
    total_cash: Decimal
    portfolio_count: int
    holdings_count: int
    best_performer: Optional[PerformerResponse] = None
    worst_performer: Optional[PerformerResponse] = None
    allocation: list[AllocationSliceResponse]
    overlaps: list[OverlapResponse]
    portfolios: list[PortfolioBreakdownResponse]
    top_movers: list[MoverResponse]
    quotes_last_updated: Optional[datetime] = None
    quotes_error: Optional[str] = None
