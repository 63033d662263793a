"""CoinGecko market data provider for cryptocurrency prices."""

import logging
import time as time_module
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import httpx

from integrations.exceptions import MarketDataAPIError, MarketDataConnectionError
from integrations.market_data_protocol import PriceResult, Quote

logger = logging.getLogger(__name__)

# Hardcoded mapping for the most common crypto symbols.
# Covers the vast majority of real portfolios without an API call.
KNOWN_COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BNB": "binancecoin",
    "SOL": "solana",
    "XRP": "ripple",
    "DOGE": "dogecoin",
    "ADA": "cardano",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "POL": "matic-network",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "LTC": "litecoin",
    "NEAR": "near",
    "SHIB": "shiba-inu",
    "XLM": "stellar",
    "SUI": "sui",
    "PEPE": "pepe",
}

_MAX_RETRIES = 3
_BASE_DELAY_SECONDS = 1.0


def is_known_crypto_symbol(symbol: str) -> bool:
    """Return True if the symbol is a crypto ticker we route to CoinGecko."""
    return symbol.upper() in KNOWN_COIN_IDS


class CoinGeckoClient:
    """Market data provider using the CoinGecko API for crypto prices."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.Client] = None):
        """Initialize with optional API key.

        Args:
            api_key: CoinGecko demo API key. If provided, uses the
                     x-cg-demo-api-key header for higher rate limits.
                     If None, uses the keyless public API.
            client: Pre-built httpx client (tests inject a MockTransport).
        """
        headers: dict[str, str] = {}
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._client = client or httpx.Client(
            base_url="https://api.coingecko.com/api/v3",
            headers=headers,
            timeout=30.0,
        )
        self._resolved_ids: dict[str, str] = dict(KNOWN_COIN_IDS)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def provider_name(self) -> str:
        return "coingecko"

    def _resolve_coin_id(self, symbol: str) -> Optional[str]:
        """Resolve a ticker symbol to a CoinGecko coin ID.

        Checks the cached mapping first, then falls back to the /search
        endpoint, preferring the exact-symbol match with the best
        market cap rank.
        """
        upper = symbol.upper()
        if upper in self._resolved_ids:
            return self._resolved_ids[upper]

        try:
            response = self._request("GET", "/search", params={"query": symbol})
            coins = [
                c for c in response.json().get("coins", [])
                if c.get("symbol", "").upper() == upper
            ]
        except Exception:
            logger.warning("CoinGecko: failed to resolve symbol %s", symbol, exc_info=True)
            return None

        if not coins:
            logger.warning("CoinGecko: no matching coin for symbol %s", symbol)
            return None

        ranked = [c for c in coins if c.get("market_cap_rank") is not None]
        best = min(ranked, key=lambda c: c["market_cap_rank"]) if ranked else coins[0]
        self._resolved_ids[upper] = best["id"]
        logger.info("CoinGecko: resolved %s -> %s", symbol, best["id"])
        return best["id"]

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Make an HTTP request, backing off on 429 rate limit responses."""
        for attempt in range(_MAX_RETRIES):
            try:
                response = self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                raise MarketDataConnectionError(
                    f"CoinGecko request failed: {e}", provider_name=self.provider_name
                ) from e

            if response.status_code == 429:
                delay = _BASE_DELAY_SECONDS * (2 ** attempt)
                logger.warning(
                    "CoinGecko: rate limited, retrying in %.1fs (attempt %d/%d)",
                    delay, attempt + 1, _MAX_RETRIES,
                )
                time_module.sleep(delay)
                continue
            if response.status_code >= 400:
                raise MarketDataAPIError(
                    f"CoinGecko returned HTTP {response.status_code} for {path}",
                    provider_name=self.provider_name,
                    status_code=response.status_code,
                )
            return response

        raise MarketDataAPIError(
            "CoinGecko: max retries exceeded",
            provider_name=self.provider_name,
            status_code=429,
        )

    def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Fetch spot prices with 24h change from ``/simple/price``.

        Crypto trades around the clock, so "previous close" is the price
        24 hours ago, derived from the reported 24h percent change.
        """
        if not symbols:
            return {}

        ids_by_symbol = {s: self._resolve_coin_id(s) for s in symbols}
        coin_ids = sorted({cid for cid in ids_by_symbol.values() if cid})
        if not coin_ids:
            return {}

        response = self._request(
            "GET",
            "/simple/price",
            params={
                "ids": ",".join(coin_ids),
                "vs_currencies": "usd",
                "include_24hr_change": "true",
            },
        )
        data = response.json()

        quotes: dict[str, Quote] = {}
        for symbol, coin_id in ids_by_symbol.items():
            entry = data.get(coin_id) if coin_id else None
            if not entry or entry.get("usd") is None:
                continue
            price = Decimal(str(entry["usd"]))
            change_percent = Decimal(str(entry.get("usd_24h_change") or 0))
            previous_close = (price / (1 + change_percent / 100)).quantize(Decimal("0.01"))
            quotes[symbol] = Quote(
                symbol=symbol,
                price=price,
                previous_close=previous_close,
                change=price - previous_close,
                change_percent=change_percent,
                name=coin_id,
                source=self.provider_name,
            )
        return quotes

    def get_price_history(
        self, symbols: list[str], start_date: date, end_date: date
    ) -> dict[str, list[PriceResult]]:
        """Fetch historical crypto prices from CoinGecko.

        Args:
            symbols: List of crypto ticker symbols (e.g., ["BTC", "ETH"]).
            start_date: Start date (inclusive).
            end_date: End date (inclusive).

        Returns:
            Dict mapping each symbol to its list of daily PriceResults.
        """
        if not symbols:
            return {}

        logger.info(
            "CoinGecko: fetching prices for %d symbols (%s to %s)",
            len(symbols), start_date, end_date,
        )

        result: dict[str, list[PriceResult]] = {s: [] for s in symbols}

        from_ts = int(datetime.combine(start_date, datetime.min.time(), tzinfo=timezone.utc).timestamp())
        to_ts = int(datetime.combine(end_date, datetime.max.time(), tzinfo=timezone.utc).timestamp())

        for symbol in symbols:
            coin_id = self._resolve_coin_id(symbol)
            if coin_id is None:
                continue

            try:
                response = self._request(
                    "GET",
                    f"/coins/{coin_id}/market_chart/range",
                    params={"vs_currency": "usd", "from": str(from_ts), "to": str(to_ts)},
                )
                prices = response.json().get("prices", [])
            except Exception:
                logger.warning(
                    "CoinGecko: failed to fetch prices for %s (%s)",
                    symbol, coin_id, exc_info=True,
                )
                continue

            # [[timestamp_ms, price], ...]; the last point of each day is its close
            daily_prices: dict[date, Decimal] = {}
            for timestamp_ms, price in prices:
                price_date = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date()
                daily_prices[price_date] = Decimal(str(round(float(price), 6)))

            result[symbol] = [
                PriceResult(symbol=symbol, price_date=d, close_price=p, source=self.provider_name)
                for d, p in sorted(daily_prices.items())
                if start_date <= d <= end_date
            ]

        return result
