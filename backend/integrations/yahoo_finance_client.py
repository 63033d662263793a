"""Yahoo Finance market data provider implementation."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import pandas as pd
import yfinance as yf

from integrations.exceptions import MarketDataConnectionError
from integrations.market_data_protocol import PriceResult, Quote

logger = logging.getLogger(__name__)

# Daily bars requested for a quote snapshot. Five sessions always
# contain the previous close, even across a long weekend.
_QUOTE_PERIOD = "5d"


def _to_decimal(value) -> Decimal:
    return Decimal(str(round(float(value), 6)))


def _column(df: pd.DataFrame, field: str, symbol: str, multi_symbol: bool) -> Optional[pd.Series]:
    """Extract one OHLC column for a symbol, dropping empty rows.

    yfinance returns MultiIndex columns ``(field, symbol)`` for multi-symbol
    downloads and flat columns for a single symbol.
    """
    if multi_symbol:
        if (field, symbol) not in df.columns:
            return None
        series = df[(field, symbol)]
    else:
        if field not in df.columns:
            return None
        series = df[field]
        # Newer yfinance keeps a one-column MultiIndex even for one ticker
        if isinstance(series, pd.DataFrame):
            series = series.iloc[:, 0]
    series = series.dropna()
    return None if series.empty else series


class YahooFinanceClient:
    """Market data provider using Yahoo Finance (yfinance library).

    Handles equities, ETFs, and other traditional securities.
    Crypto symbols are routed to a dedicated crypto provider
    (e.g., CoinGecko) by the MarketDataService.
    """

    @property
    def provider_name(self) -> str:
        return "yahoo"

    def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Build quotes from the most recent daily bars.

        The last bar's close is the current price (Yahoo updates the
        running session bar intraday); the bar before it supplies the
        previous close.

        Raises:
            MarketDataConnectionError: If the download itself fails.
        """
        if not symbols:
            return {}

        logger.debug("Yahoo Finance: fetching quotes for %s", symbols)

        try:
            df = yf.download(
                tickers=symbols,
                period=_QUOTE_PERIOD,
                interval="1d",
                auto_adjust=False,
                progress=False,
            )
        except Exception as e:
            raise MarketDataConnectionError(
                f"yfinance quote download failed: {e}", provider_name=self.provider_name
            ) from e

        quotes: dict[str, Quote] = {}
        if df is None or df.empty:
            return quotes

        multi_symbol = len(symbols) > 1

        for symbol in symbols:
            try:
                closes = _column(df, "Close", symbol, multi_symbol)
                if closes is None:
                    continue

                price = _to_decimal(closes.iloc[-1])
                previous_close = _to_decimal(closes.iloc[-2]) if len(closes) > 1 else price
                change = price - previous_close
                change_percent = (
                    change / previous_close * 100 if previous_close > 0 else Decimal("0")
                )

                highs = _column(df, "High", symbol, multi_symbol)
                lows = _column(df, "Low", symbol, multi_symbol)

                quotes[symbol] = Quote(
                    symbol=symbol,
                    price=price,
                    previous_close=previous_close,
                    change=change,
                    change_percent=change_percent,
                    day_high=_to_decimal(highs.iloc[-1]) if highs is not None else None,
                    day_low=_to_decimal(lows.iloc[-1]) if lows is not None else None,
                    name=symbol,
                    source=self.provider_name,
                )
            except Exception:
                logger.warning("Failed to parse quote for %s", symbol, exc_info=True)

        return quotes

    def get_price_history(
        self, symbols: list[str], start_date: date, end_date: date
    ) -> dict[str, list[PriceResult]]:
        """Fetch historical closing prices from Yahoo Finance.

        For single-date requests (start == end), uses a 10-day lookback
        to handle weekends and holidays, returning only the most recent
        close on or before the requested date.

        Args:
            symbols: List of ticker symbols.
            start_date: Start date (inclusive).
            end_date: End date (inclusive).

        Returns:
            Dict mapping each symbol to its list of PriceResults.
        """
        if not symbols:
            return {}

        logger.info(
            "Yahoo Finance: fetching prices for %d symbols (%s to %s)",
            len(symbols), start_date, end_date,
        )

        result: dict[str, list[PriceResult]] = {s: [] for s in symbols}

        single_date = start_date == end_date
        download_start = start_date - timedelta(days=10) if single_date else start_date

        # yfinance end is exclusive, so add one day
        download_end = end_date + timedelta(days=1)

        try:
            df = yf.download(
                tickers=symbols,
                start=download_start.isoformat(),
                end=download_end.isoformat(),
                auto_adjust=True,
                progress=False,
            )
        except Exception:
            logger.warning("yfinance download failed for %s", symbols, exc_info=True)
            return result

        if df is None or df.empty:
            return result

        multi_symbol = len(symbols) > 1

        for symbol in symbols:
            try:
                closes = _column(df, "Close", symbol, multi_symbol)
                if closes is None:
                    continue

                if single_date:
                    closes = closes[closes.index.date <= end_date]
                    if closes.empty:
                        continue
                    closes = closes.iloc[-1:]

                for ts, price in closes.items():
                    result[symbol].append(
                        PriceResult(
                            symbol=symbol,
                            price_date=ts.date(),
                            close_price=_to_decimal(price),
                            source=self.provider_name,
                        )
                    )
            except Exception:
                logger.warning("Failed to parse prices for %s", symbol, exc_info=True)

        return result
