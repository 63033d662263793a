"""API route handlers."""
from . import analytics, imports, market_data, portfolio

__all__ = ["analytics", "imports", "market_data", "portfolio"]
