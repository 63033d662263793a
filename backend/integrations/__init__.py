"""External market data integrations.

This package contains:
- Market data protocol: common interface for price providers
- Yahoo Finance client: equities, ETFs and funds
- CoinGecko client: cryptocurrencies
"""

from integrations.exceptions import (
    MarketDataAPIError,
    MarketDataConnectionError,
    MarketDataError,
)
from integrations.market_data_protocol import MarketDataProvider, PriceResult, Quote

__all__ = [
    "MarketDataAPIError",
    "MarketDataConnectionError",
    "MarketDataError",
    "MarketDataProvider",
    "PriceResult",
    "Quote",
]
