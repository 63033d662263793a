"""Portfolio API endpoints: portfolios, holdings, valuation and transactions."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.helpers import get_or_404, holding_response_dict, holding_valuation_response_dict
from api.market_data import get_quote_scheduler
from database import get_db
from models import Portfolio
from schemas.portfolio import (
    HoldingResponse,
    PortfolioCreate,
    PortfolioResponse,
    PortfolioValuationResponse,
)
from schemas.transaction import TransactionCreate, TransactionResponse
from services.holdings_service import unique_symbols
from services.portfolio_service import PortfolioService
from services.quote_scheduler import QuoteScheduler
from services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portfolios", tags=["portfolios"])


@router.get("", response_model=list[PortfolioResponse])
def list_portfolios(db: Session = Depends(get_db)):
    """List all portfolios, oldest first."""
    return PortfolioService.list_portfolios(db)


@router.post("", response_model=PortfolioResponse, status_code=201)
def create_portfolio(data: PortfolioCreate, db: Session = Depends(get_db)):
    """Create a new portfolio."""
    if not data.name.strip():
        raise HTTPException(status_code=400, detail="Portfolio name is required")
    portfolio = PortfolioService.create_portfolio(db, data.name.strip(), data.description)
    db.commit()
    db.refresh(portfolio)
    return portfolio


async def _valuation(
    db: Session,
    scheduler: QuoteScheduler,
    portfolio_id: Optional[str],
    refresh: bool,
) -> dict:
    if refresh:
        holdings = PortfolioService.get_holdings(db, portfolio_id)
        await scheduler.fetch_quotes(unique_symbols(holdings))

    result = PortfolioService.get_summary(db, portfolio_id, scheduler.quotes)
    return {
        "portfolio_id": result.portfolio_id,
        "summary": asdict(result.summary),
        "holdings": [holding_valuation_response_dict(row) for row in result.holdings],
        "quotes_last_updated": scheduler.last_updated,
        "quotes_error": scheduler.error,
    }


@router.get("/holdings", response_model=list[HoldingResponse])
def get_all_holdings(db: Session = Depends(get_db)):
    """Current holdings across every portfolio."""
    return [holding_response_dict(h) for h in PortfolioService.get_holdings(db)]


@router.get("/valuation", response_model=PortfolioValuationResponse)
async def get_all_valuation(
    refresh: bool = Query(False, description="Fetch fresh quotes before valuing"),
    db: Session = Depends(get_db),
    scheduler: QuoteScheduler = Depends(get_quote_scheduler),
):
    """Value holdings across every portfolio against the quote cache."""
    return await _valuation(db, scheduler, None, refresh)


@router.get("/{portfolio_id}", response_model=PortfolioResponse)
def get_portfolio(portfolio_id: str, db: Session = Depends(get_db)):
    """Get a single portfolio."""
    return get_or_404(db, Portfolio, portfolio_id, "Portfolio not found")


@router.get("/{portfolio_id}/holdings", response_model=list[HoldingResponse])
def get_holdings(portfolio_id: str, db: Session = Depends(get_db)):
    """Current holdings of one portfolio, derived from its transactions."""
    get_or_404(db, Portfolio, portfolio_id, "Portfolio not found")
    return [
        holding_response_dict(h)
        for h in PortfolioService.get_holdings(db, portfolio_id)
    ]


@router.get("/{portfolio_id}/valuation", response_model=PortfolioValuationResponse)
async def get_valuation(
    portfolio_id: str,
    refresh: bool = Query(False, description="Fetch fresh quotes before valuing"),
    db: Session = Depends(get_db),
    scheduler: QuoteScheduler = Depends(get_quote_scheduler),
):
    """Value one portfolio against the quote cache.

    Holdings without a cached quote are valued at cost. Pass
    ``refresh=true`` to fetch quotes for the holdings first.
    """
    get_or_404(db, Portfolio, portfolio_id, "Portfolio not found")
    return await _valuation(db, scheduler, portfolio_id, refresh)


@router.post(
    "/{portfolio_id}/transactions",
    response_model=TransactionResponse,
    status_code=201,
)
def create_transaction(
    portfolio_id: str,
    data: TransactionCreate,
    db: Session = Depends(get_db),
):
    """Record a transaction in a portfolio."""
    get_or_404(db, Portfolio, portfolio_id, "Portfolio not found")
    try:
        txn = TransactionService.create_transaction(db, portfolio_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(txn)
    return txn
