"""Asset model - master symbol list."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Asset(Base):
    """A tradable asset, keyed by its upper-cased symbol."""

    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    symbol = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    asset_type = Column(String, nullable=False, default="stock")  # stock, etf, crypto, option, ...
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    transactions = relationship("Transaction", back_populates="asset")
