"""Portfolio service: ledger to holdings to valuation."""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from integrations.market_data_protocol import Quote
from models import Portfolio
from services.holdings_service import Holding, compute_holdings
from services.transaction_service import TransactionService
from services.valuation_service import (
    HoldingValuation,
    ValuationSummary,
    compute_holding_valuations,
    compute_valuation,
)

logger = logging.getLogger(__name__)


@dataclass
class PortfolioSummary:
    """Valuation of one portfolio (or all of them) at a point in time."""

    portfolio_id: Optional[str]
    summary: ValuationSummary
    holdings: list[HoldingValuation]


class PortfolioService:
    """Composes the transaction ledger with holdings and valuation."""

    @staticmethod
    def create_portfolio(db: Session, name: str, description: Optional[str] = None) -> Portfolio:
        portfolio = Portfolio(name=name, description=description)
        db.add(portfolio)
        db.flush()
        logger.info("Created portfolio: %s", name)
        return portfolio

    @staticmethod
    def list_portfolios(db: Session) -> list[Portfolio]:
        return db.query(Portfolio).order_by(Portfolio.created_at.asc()).all()

    @staticmethod
    def get_holdings(db: Session, portfolio_id: Optional[str] = None) -> list[Holding]:
        """Current holdings; ``portfolio_id=None`` covers every portfolio."""
        ledger = TransactionService.list_ledger(db, portfolio_id)
        return compute_holdings(ledger, portfolio_id)

    @staticmethod
    def get_summary(
        db: Session,
        portfolio_id: Optional[str],
        quotes: Mapping[str, Quote],
    ) -> PortfolioSummary:
        """Value current holdings against a quote snapshot."""
        holdings = PortfolioService.get_holdings(db, portfolio_id)
        return PortfolioSummary(
            portfolio_id=portfolio_id,
            summary=compute_valuation(holdings, quotes),
            holdings=compute_holding_valuations(holdings, quotes),
        )
