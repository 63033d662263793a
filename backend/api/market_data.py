"""Market data API endpoints: quotes and quote polling."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from config import settings
from schemas.quote import (
    PollingRequest,
    PollingStatusResponse,
    QuoteResponse,
    QuotesResponse,
)
from services.market_data_service import MarketDataService
from services.quote_scheduler import QuoteScheduler, format_relative_time
from utils.market_hours import utc_now
from utils.query_params import parse_symbols

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/market-data", tags=["market-data"])

# Dependency injection for testing
_market_data_service_override: Optional[MarketDataService] = None

# Process-wide scheduler, created on first use
_quote_scheduler: Optional[QuoteScheduler] = None


def get_market_data_service() -> MarketDataService:
    """Get MarketDataService instance, allowing for test overrides."""
    if _market_data_service_override is not None:
        return _market_data_service_override
    return MarketDataService()


def set_market_data_service_override(service: Optional[MarketDataService]) -> None:
    """Set a MarketDataService override for testing."""
    global _market_data_service_override
    _market_data_service_override = service


async def get_quote_scheduler() -> QuoteScheduler:
    """Get the process-wide QuoteScheduler, creating it on first request.

    Async so that FastAPI resolves it on the event loop that runs the
    scheduler's timer, never on a threadpool worker.
    """
    global _quote_scheduler
    if _quote_scheduler is None:
        service = get_market_data_service()
        _quote_scheduler = QuoteScheduler(
            fetcher=service.fetch_quotes,
            is_crypto=service.is_crypto,
        )
        logger.info("Quote scheduler created")
    return _quote_scheduler


def shutdown_quote_scheduler() -> None:
    """Stop polling and drop the process-wide scheduler."""
    global _quote_scheduler
    if _quote_scheduler is not None:
        _quote_scheduler.stop_polling()
        _quote_scheduler = None


def _quotes_response(scheduler: QuoteScheduler, quotes: dict) -> QuotesResponse:
    return QuotesResponse(
        quotes={
            symbol: QuoteResponse.model_validate(quote)
            for symbol, quote in quotes.items()
        },
        last_updated=scheduler.last_updated,
        error=scheduler.error,
    )


@router.get("/quotes", response_model=QuotesResponse)
async def get_quotes(
    symbols: str = Query(..., description="Comma-separated ticker symbols"),
    scheduler: QuoteScheduler = Depends(get_quote_scheduler),
):
    """Fetch live quotes through the scheduler cache.

    Returns whatever subset of symbols could be priced. When the provider
    is down the last-known quotes are returned with ``error`` set.
    """
    symbol_list = parse_symbols(symbols, settings.MAX_QUOTE_SYMBOLS)
    await scheduler.fetch_quotes(symbol_list)

    cached = {}
    for symbol in symbol_list:
        quote = scheduler.get_quote(symbol)
        if quote is not None:
            cached[symbol] = quote
    return _quotes_response(scheduler, cached)


@router.get("/quotes/cached", response_model=QuotesResponse)
async def get_cached_quotes(scheduler: QuoteScheduler = Depends(get_quote_scheduler)):
    """Return the whole quote cache without touching the provider."""
    return _quotes_response(scheduler, scheduler.quotes)


def _status_response(scheduler: QuoteScheduler) -> PollingStatusResponse:
    status = scheduler.status()
    return PollingStatusResponse(
        symbols=status.symbols,
        is_polling=status.is_polling,
        interval_seconds=status.interval_seconds,
        last_updated=status.last_updated,
        last_updated_relative=(
            format_relative_time(status.last_updated, utc_now())
            if status.last_updated else None
        ),
        loading=status.loading,
        error=status.error,
        cached_symbols=status.cached_symbols,
    )


@router.get("/polling", response_model=PollingStatusResponse)
async def get_polling_status(scheduler: QuoteScheduler = Depends(get_quote_scheduler)):
    """Current polling state and quote freshness."""
    return _status_response(scheduler)


@router.post("/polling", response_model=PollingStatusResponse)
async def start_polling(
    request: PollingRequest,
    scheduler: QuoteScheduler = Depends(get_quote_scheduler),
):
    """Replace the watched symbol set and (re)start polling.

    An empty list stops polling.
    """
    await scheduler.start_polling(request.symbols)
    return _status_response(scheduler)


@router.delete("/polling", response_model=PollingStatusResponse)
async def stop_polling(scheduler: QuoteScheduler = Depends(get_quote_scheduler)):
    """Stop polling. Safe to call when already stopped."""
    scheduler.stop_polling()
    return _status_response(scheduler)
