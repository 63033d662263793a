"""Test fixtures and sample data."""
import pytest
from datetime import date
from decimal import Decimal

from models import Asset, Portfolio, Transaction
from sqlalchemy.orm import Session


def add_transaction(
    db: Session,
    portfolio: Portfolio,
    asset: Asset,
    kind: str,
    quantity: str,
    price: str = "0",
    fees: str = "0",
    on_date: date = date(2024, 1, 15),
) -> Transaction:
    """Create a ledger transaction. Amounts are given as strings."""
    qty = Decimal(quantity)
    unit_price = Decimal(price)
    fee = Decimal(fees)
    txn = Transaction(
        portfolio_id=portfolio.id,
        asset_id=asset.id,
        transaction_type=kind,
        quantity=qty,
        price_per_unit=unit_price,
        total_amount=qty * unit_price + fee,
        fees=fee,
        transaction_date=on_date,
    )
    db.add(txn)
    db.commit()
    return txn


def get_or_create_asset(db: Session, symbol: str, name: str | None = None) -> Asset:
    """Get or create an Asset record for the given symbol.

    This is a helper function (not a fixture) for tests that need several
    assets.
    """
    existing = db.query(Asset).filter_by(symbol=symbol).first()
    if existing:
        return existing
    asset = Asset(symbol=symbol, name=name or symbol)
    db.add(asset)
    db.flush()
    return asset


@pytest.fixture
def portfolio(db: Session) -> Portfolio:
    """Create a test portfolio."""
    p = Portfolio(name="Brokerage", description="Taxable account")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def second_portfolio(db: Session) -> Portfolio:
    """Create a second portfolio for isolation tests."""
    p = Portfolio(name="Retirement")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def asset(db: Session) -> Asset:
    """Create a test asset."""
    a = Asset(symbol="AAPL", name="Apple Inc.")
    db.add(a)
    db.commit()
    db.refresh(a)
    return a
