"""Transaction model - one immutable ledger entry."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Transaction(Base):
    """A brokerage transaction recorded against a portfolio.

    Holdings are never stored; they are derived from these rows on
    demand by the holdings service.
    """

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    portfolio_id = Column(
        String(36), ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    asset_id = Column(
        String(36), ForeignKey("assets.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    transaction_type = Column(String, nullable=False)  # see services.holdings_service.TransactionKind
    quantity = Column(Numeric(18, 8), nullable=False, default=Decimal("0"))
    price_per_unit = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    total_amount = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    fees = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    transaction_date = Column(Date, nullable=False)
    broker_source = Column(String, nullable=False, default="manual")
    import_batch_id = Column(String(36), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    portfolio = relationship("Portfolio", back_populates="transactions")
    asset = relationship("Asset", back_populates="transactions")
