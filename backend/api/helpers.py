"""Shared API helpers for route handlers.

Common query patterns and response builders used across multiple route files.
"""

from typing import TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from database import Base
from services.holdings_service import Holding
from services.valuation_service import HoldingValuation

T = TypeVar("T", bound=Base)


def get_or_404(db: Session, model: type[T], entity_id: str, detail: str = "Not found") -> T:
    """Fetch a single entity by primary key or raise 404.

    Args:
        db: Database session.
        model: SQLAlchemy model class.
        entity_id: Primary key value.
        detail: Error message for the 404 response.

    Returns:
        The entity instance.

    Raises:
        HTTPException: 404 if the entity doesn't exist.
    """
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def holding_response_dict(holding: Holding) -> dict:
    """Build a HoldingResponse-compatible dict from a derived Holding."""
    return {
        "portfolio_id": holding.portfolio_id,
        "asset_id": holding.asset_id,
        "symbol": holding.symbol,
        "name": holding.name,
        "quantity": holding.quantity,
        "avg_cost": holding.avg_cost,
        "total_cost": holding.total_cost,
    }


def holding_valuation_response_dict(row: HoldingValuation) -> dict:
    """Build a HoldingValuationResponse-compatible dict."""
    result = holding_response_dict(row.holding)
    result.update(
        current_price=row.current_price,
        market_value=row.market_value,
        unrealized_gain=row.unrealized_gain,
        unrealized_gain_percent=row.unrealized_gain_percent,
        day_change=row.day_change,
        weight=row.weight,
        has_quote=row.has_quote,
    )
    return result
