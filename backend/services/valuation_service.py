"""Portfolio valuation: combines derived holdings with a quote snapshot."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from integrations.market_data_protocol import Quote
from services.holdings_service import Holding

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass
class ValuationSummary:
    """Point-in-time aggregate metrics for a set of holdings."""

    total_value: Decimal = ZERO
    total_cost: Decimal = ZERO
    day_change: Decimal = ZERO
    day_change_percent: Decimal = ZERO
    total_gain: Decimal = ZERO
    total_gain_percent: Decimal = ZERO


@dataclass
class HoldingValuation:
    """A holding priced against its quote."""

    holding: Holding
    current_price: Decimal
    market_value: Decimal
    unrealized_gain: Decimal
    unrealized_gain_percent: Decimal
    day_change: Decimal
    weight: Decimal
    has_quote: bool


def find_quote(quotes: Mapping[str, Quote], symbol: str) -> Optional[Quote]:
    if not symbol:
        return None
    return quotes.get(symbol) or quotes.get(symbol.upper())


def compute_valuation(holdings: Iterable[Holding], quotes: Mapping[str, Quote]) -> ValuationSummary:
    """Compute portfolio value using live quotes.

    Holdings without a quote are carried at cost basis and contribute
    nothing to the day change. The day change percentage is measured
    against the value at the previous close.
    """
    holdings = list(holdings)
    total_value = ZERO
    day_change = ZERO
    total_cost = sum((h.total_cost for h in holdings), ZERO)

    for h in holdings:
        quote = find_quote(quotes, h.symbol)
        if quote is not None:
            total_value += quote.price * h.quantity
            day_change += (quote.price - quote.previous_close) * h.quantity
        else:
            total_value += h.total_cost

    prior_value = total_value - day_change
    day_change_percent = day_change / prior_value * HUNDRED if prior_value > 0 else ZERO
    total_gain = total_value - total_cost
    total_gain_percent = total_gain / total_cost * HUNDRED if total_cost > 0 else ZERO

    return ValuationSummary(
        total_value=total_value,
        total_cost=total_cost,
        day_change=day_change,
        day_change_percent=day_change_percent,
        total_gain=total_gain,
        total_gain_percent=total_gain_percent,
    )


def compute_holding_valuations(
    holdings: Iterable[Holding], quotes: Mapping[str, Quote]
) -> list[HoldingValuation]:
    """Per-holding market value, gain and portfolio weight.

    Unquoted holdings are priced at their average cost.
    """
    rows = []
    for h in holdings:
        quote = find_quote(quotes, h.symbol)
        price = quote.price if quote is not None else h.avg_cost
        market_value = price * h.quantity
        gain = market_value - h.total_cost
        rows.append(
            HoldingValuation(
                holding=h,
                current_price=price,
                market_value=market_value,
                unrealized_gain=gain,
                unrealized_gain_percent=gain / h.total_cost * HUNDRED if h.total_cost > 0 else ZERO,
                day_change=(quote.price - quote.previous_close) * h.quantity if quote is not None else ZERO,
                weight=ZERO,
                has_quote=quote is not None,
            )
        )

    total = sum((r.market_value for r in rows), ZERO)
    if total > 0:
        for r in rows:
            r.weight = r.market_value / total * HUNDRED
    return rows
