"""Price backfill for imported transactions.

Imported rows often lack a price (and sometimes a date or fees). Missing
prices are filled from historical closes, fetched in fixed-size batches:
lookups inside a batch run concurrently, batches run one after another,
so at most ``batch_size`` requests are ever outstanding against the
price provider.
"""

import asyncio
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from config import settings
from schemas.imports import NormalizedTransaction, RawTransaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

HistoricalCloseLookup = Callable[[str, date], Awaitable[Optional[Decimal]]]

MISSING_SYMBOL = "Missing symbol"
INVALID_QUANTITY = "Invalid quantity"
PRICE_UNAVAILABLE = "Could not fetch price"


def row_error(symbol: Optional[str], quantity: Decimal, price: Decimal) -> Optional[str]:
    """First validation failure for a row, in priority order, or None."""
    if not symbol or not symbol.strip():
        return MISSING_SYMBOL
    if quantity <= 0:
        return INVALID_QUANTITY
    if price <= 0:
        return PRICE_UNAVAILABLE
    return None


class PriceBackfillService:
    """Fills missing prices, dates, fees and totals on imported rows."""

    def __init__(
        self,
        lookup: HistoricalCloseLookup,
        batch_size: Optional[int] = None,
        today: Optional[Callable[[], date]] = None,
        id_prefix: str = "import",
    ):
        """
        Args:
            lookup: Async historical close lookup ``(SYMBOL, date) -> price | None``.
            batch_size: Rows per concurrent batch. Defaults to
                        settings.BACKFILL_BATCH_SIZE.
            today: Returns the default date for undated rows.
            id_prefix: Prefix of the generated row ids.
        """
        self._lookup = lookup
        self.batch_size = settings.BACKFILL_BATCH_SIZE if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        self._today = today or date.today
        self.id_prefix = id_prefix

    async def _safe_lookup(self, symbol: str, on_date: date) -> Optional[Decimal]:
        """Call the provider; a failure is recorded as an unknown price."""
        try:
            return await self._lookup(symbol, on_date)
        except Exception as e:
            logger.warning("Historical price lookup failed for %s on %s: %s", symbol, on_date, e)
            return None

    async def backfill_prices(self, rows: list[RawTransaction]) -> list[NormalizedTransaction]:
        """Normalize rows, backfilling missing prices from historical closes.

        Each (SYMBOL, date) pair is looked up at most once per call, also
        when the same pair appears twice within one batch. Unknown prices
        (None or a failed lookup) are remembered as well.

        Returns:
            One NormalizedTransaction per input row, in input order.
        """
        default_date = self._today()
        token = uuid.uuid4().hex[:8]
        memo: dict[tuple[str, date], asyncio.Future] = {}
        lookups = 0

        async def normalize(index: int, row: RawTransaction) -> NormalizedTransaction:
            nonlocal lookups
            on_date = row.date or default_date
            fees = row.fees or ZERO
            quantity = row.quantity
            price = row.price or ZERO

            if not price and row.symbol:
                key = (row.symbol.strip().upper(), on_date)
                pending = memo.get(key)
                if pending is None:
                    lookups += 1
                    pending = asyncio.ensure_future(self._safe_lookup(*key))
                    memo[key] = pending
                price = (await pending) or ZERO

            total = row.total or price * quantity + fees
            error = row_error(row.symbol, quantity, price)
            return NormalizedTransaction(
                id=f"{self.id_prefix}-{index}-{token}",
                symbol=row.symbol,
                type=row.type,
                quantity=quantity,
                price=price,
                date=on_date,
                fees=fees,
                total=total,
                valid=error is None,
                error=error,
            )

        results: list[NormalizedTransaction] = []
        for start in range(0, len(rows), self.batch_size):
            batch = rows[start:start + self.batch_size]
            results.extend(
                await asyncio.gather(
                    *(normalize(start + offset, row) for offset, row in enumerate(batch))
                )
            )

        invalid = sum(1 for r in results if not r.valid)
        logger.info(
            "Backfilled %d rows: %d price lookups, %d invalid",
            len(results), lookups, invalid,
        )
        return results
