"""Transaction import endpoints: price backfill and confirm."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import get_or_404
from api.market_data import get_market_data_service
from database import get_db
from models import Portfolio
from schemas.imports import (
    BackfillRequest,
    BackfillResponse,
    ImportConfirmRequest,
    ImportResult,
)
from services.market_data_service import MarketDataService
from services.price_backfill_service import PriceBackfillService
from services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["import"])


@router.post("/backfill", response_model=BackfillResponse)
async def backfill_prices(
    request: BackfillRequest,
    market_data: MarketDataService = Depends(get_market_data_service),
):
    """Normalize parsed rows and fill missing prices from historical closes.

    Nothing is persisted; the caller reviews the rows and then confirms.
    """
    service = PriceBackfillService(lookup=market_data.fetch_historical_close)
    rows = await service.backfill_prices(request.transactions)
    return {"transactions": rows}


@router.post("/confirm", response_model=ImportResult)
def confirm_import(request: ImportConfirmRequest, db: Session = Depends(get_db)):
    """Persist the valid subset of reviewed rows into a portfolio.

    Returns:
        Batch id with imported/failed/skipped counts.
    """
    get_or_404(db, Portfolio, request.portfolio_id, "Portfolio not found")
    try:
        result = TransactionService.import_transactions(
            db, request.portfolio_id, request.transactions, broker=request.broker
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    logger.info("Import from %s committed to portfolio %s", request.source, request.portfolio_id)
    return result
