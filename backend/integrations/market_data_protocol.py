"""Market data provider protocol definitions.

Defines the interface for market data providers (price feeds). The
core consumes exactly two operations from them: a batched live quote
snapshot and a historical close lookup (derived from price history).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol


@dataclass
class PriceResult:
    """A single closing price for a symbol on a specific date."""

    symbol: str
    price_date: date  # Actual trading date (may differ from requested for weekends/holidays)
    close_price: Decimal
    source: str  # e.g., "yahoo"


@dataclass
class Quote:
    """Point-in-time quote for a symbol."""

    symbol: str
    price: Decimal
    previous_close: Decimal
    change: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    day_high: Decimal | None = None
    day_low: Decimal | None = None
    name: str = ""
    source: str = ""


class MarketDataProvider(Protocol):
    """Protocol for market data providers.

    Implementations fetch price data from external sources.
    """

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'yahoo')."""
        ...

    def get_price_history(
        self, symbols: list[str], start_date: date, end_date: date
    ) -> dict[str, list[PriceResult]]:
        """Fetch historical closing prices for the given symbols and date range.

        Args:
            symbols: List of ticker symbols.
            start_date: Start date (inclusive).
            end_date: End date (inclusive).

        Returns:
            Dict mapping each symbol to its list of daily closing prices.
            Unknown or failed symbols map to an empty list.
        """
        ...

    def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Fetch the latest quote for each symbol.

        Args:
            symbols: List of upper-case ticker symbols.

        Returns:
            Dict mapping symbol to Quote. Symbols the provider could not
            price are omitted (partial results are allowed).

        Raises:
            MarketDataError: When the provider is unreachable as a whole.
        """
        ...
