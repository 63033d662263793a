"""SQLAlchemy ORM models."""

from .asset import Asset
from .portfolio import Portfolio
from .transaction import Transaction
from .utils import generate_uuid

__all__ = ["Asset", "Portfolio", "Transaction", "generate_uuid"]
