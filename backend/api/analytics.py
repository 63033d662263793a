"""Analytics API endpoints: cross-portfolio KPIs."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.market_data import get_quote_scheduler
from database import get_db
from schemas.analytics import AnalyticsResponse
from services.analytics_service import AnalyticsService
from services.holdings_service import unique_symbols
from services.portfolio_service import PortfolioService
from services.quote_scheduler import QuoteScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/kpis", response_model=AnalyticsResponse)
async def get_kpis(
    refresh: bool = Query(False, description="Fetch fresh quotes before analysing"),
    db: Session = Depends(get_db),
    scheduler: QuoteScheduler = Depends(get_quote_scheduler),
):
    """Allocation, performers, overlaps, movers and per-portfolio breakdown.

    Uses the scheduler's quote cache; unquoted holdings are valued at
    average cost. Pass ``refresh=true`` to fetch quotes first.
    """
    if refresh:
        holdings = PortfolioService.get_holdings(db)
        await scheduler.fetch_quotes(unique_symbols(holdings))

    result = AnalyticsService.get_analytics(db, scheduler.quotes)
    return {
        **asdict(result),
        "quotes_last_updated": scheduler.last_updated,
        "quotes_error": scheduler.error,
    }
