"""Market data service: thin orchestrator for market data providers."""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from config import settings
from integrations.market_data_protocol import MarketDataProvider, PriceResult, Quote
from utils.ticker import dedupe_symbols

logger = logging.getLogger(__name__)


def _default_is_crypto(symbol: str) -> bool:
    from integrations.coingecko_client import is_known_crypto_symbol

    return is_known_crypto_symbol(symbol)


class MarketDataService:
    """Orchestrates market data fetching via pluggable providers.

    Routes known crypto symbols to a dedicated crypto provider
    (CoinGecko) and everything else to the default provider
    (Yahoo Finance).
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        crypto_provider: Optional[MarketDataProvider] = None,
        is_crypto: Optional[Callable[[str], bool]] = None,
    ):
        """Initialize with optional providers for dependency injection.

        Args:
            provider: Default market data provider (equities). If None,
                     a YahooFinanceClient is created on first use.
            crypto_provider: Crypto market data provider. If None,
                            a CoinGeckoClient is created on first use.
            is_crypto: Predicate deciding crypto routing. Defaults to the
                      CoinGecko known-symbol table.
        """
        self._provider = provider
        self._crypto_provider = crypto_provider
        self.is_crypto = is_crypto or _default_is_crypto

    @property
    def provider(self) -> MarketDataProvider:
        """Get the default market data provider, creating if not provided."""
        if self._provider is None:
            from integrations.yahoo_finance_client import YahooFinanceClient

            self._provider = YahooFinanceClient()
        return self._provider

    @property
    def crypto_provider(self) -> MarketDataProvider:
        """Get the crypto market data provider, creating if not provided."""
        if self._crypto_provider is None:
            from integrations.coingecko_client import CoinGeckoClient

            self._crypto_provider = CoinGeckoClient(api_key=settings.COINGECKO_API_KEY or None)
        return self._crypto_provider

    def _split(self, symbols: list[str]) -> tuple[list[str], list[str]]:
        """Split normalized symbols into (equity, crypto) lists."""
        equity = [s for s in symbols if not self.is_crypto(s)]
        crypto = [s for s in symbols if self.is_crypto(s)]
        return equity, crypto

    def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Fetch a live quote snapshot, normalizing symbols to uppercase.

        Partial results are allowed: symbols a provider cannot price are
        simply missing from the result. If one provider fails outright
        the other's quotes are still returned; if every provider that was
        asked fails, the last error is raised.

        Returns:
            Dict mapping uppercase symbol to Quote.
        """
        normalized = dedupe_symbols(symbols)
        if not normalized:
            return {}

        equity_list, crypto_list = self._split(normalized)
        result: dict[str, Quote] = {}
        failures: list[Exception] = []
        attempted = 0

        for provider_attr, batch in (("provider", equity_list), ("crypto_provider", crypto_list)):
            if not batch:
                continue
            attempted += 1
            provider = getattr(self, provider_attr)
            try:
                result.update(provider.get_quotes(batch))
            except Exception as e:
                logger.warning(
                    "Quote fetch failed for %d symbols via %s: %s",
                    len(batch), provider.provider_name, e,
                )
                failures.append(e)

        if failures and len(failures) == attempted:
            raise failures[-1]
        return result

    def get_price_history(
        self,
        symbols: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[str, list[PriceResult]]:
        """Fetch historical prices, normalizing symbols to uppercase.

        Crypto symbols go to the crypto provider, everything else goes to
        the default provider. Results are merged into a single dict.

        Args:
            symbols: List of ticker symbols (case-insensitive).
            start_date: Start date (inclusive).
            end_date: End date (inclusive).

        Returns:
            Dict mapping each uppercase symbol to its list of PriceResults.
        """
        normalized = dedupe_symbols(symbols)
        if not normalized:
            return {}

        equity_list, crypto_list = self._split(normalized)
        result: dict[str, list[PriceResult]] = {}

        if equity_list:
            result.update(self.provider.get_price_history(equity_list, start_date, end_date))
        if crypto_list:
            result.update(self.crypto_provider.get_price_history(crypto_list, start_date, end_date))

        return result

    def get_historical_close(self, symbol: str, on_date: date) -> Optional[Decimal]:
        """Closing price on ``on_date``, or the last close before it.

        Returns:
            The close price, or None when the provider has no data.
        """
        history = self.get_price_history([symbol], on_date, on_date)
        prices = [p for p in history.get(symbol.upper(), []) if p.price_date <= on_date]
        if not prices:
            return None
        return max(prices, key=lambda p: p.price_date).close_price

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Async form of get_quotes; provider I/O runs in a worker thread."""
        return await asyncio.to_thread(self.get_quotes, symbols)

    async def fetch_historical_close(self, symbol: str, on_date: date) -> Optional[Decimal]:
        """Async form of get_historical_close."""
        return await asyncio.to_thread(self.get_historical_close, symbol, on_date)
