"""Cross-portfolio analytics: allocation, performers, overlaps, movers.

The calculations are plain functions over valued holdings and the
ledger; ``AnalyticsService`` loads those from the database and bundles
the results.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from integrations.market_data_protocol import Quote
from services.holdings_service import (
    CASH_KINDS,
    CASH_SYMBOL,
    LedgerEntry,
    TransactionKind,
    compute_holdings,
    parse_kind,
)
from services.portfolio_service import PortfolioService
from services.transaction_service import TransactionService
from services.valuation_service import (
    HUNDRED,
    ZERO,
    HoldingValuation,
    ValuationSummary,
    compute_holding_valuations,
    compute_valuation,
    find_quote,
)

logger = logging.getLogger(__name__)

TOP_MOVERS_LIMIT = 5


@dataclass
class AllocationSlice:
    """Share of total value held in one symbol."""

    symbol: str
    name: str
    value: Decimal
    percent: Decimal


@dataclass
class Performer:
    """A holding singled out by its unrealized gain percent."""

    portfolio_id: str
    symbol: str
    name: str
    gain: Decimal
    gain_percent: Decimal


@dataclass
class Overlap:
    """A symbol held in more than one portfolio."""

    symbol: str
    portfolio_ids: list[str] = field(default_factory=list)
    portfolio_names: list[str] = field(default_factory=list)
    total_quantity: Decimal = ZERO
    total_value: Decimal = ZERO


@dataclass
class PortfolioBreakdown:
    portfolio_id: str
    name: str
    total_value: Decimal
    total_cost: Decimal
    gain: Decimal
    gain_percent: Decimal
    cash_balance: Decimal
    holdings_count: int


@dataclass
class Mover:
    symbol: str
    name: str
    day_change: Decimal
    day_change_percent: Decimal


@dataclass
class PortfolioAnalytics:
    """Everything the analytics dashboard shows, across all portfolios."""

    summary: ValuationSummary
    total_cash: Decimal
    portfolio_count: int
    holdings_count: int
    best_performer: Optional[Performer]
    worst_performer: Optional[Performer]
    allocation: list[AllocationSlice]
    overlaps: list[Overlap]
    portfolios: list[PortfolioBreakdown]
    top_movers: list[Mover]


def compute_cash_balances(ledger: Iterable[LedgerEntry]) -> dict[str, Decimal]:
    """Net cash per portfolio id from deposits, withdrawals and margin interest.

    Margin interest always reduces cash, whichever sign it was recorded with.

    Raises:
        UnknownTransactionKindError: If an entry carries an unknown kind.
    """
    balances: dict[str, Decimal] = {}
    for entry in ledger:
        kind = parse_kind(entry.kind)
        if kind not in CASH_KINDS:
            continue
        amount = entry.quantity * entry.price_per_unit
        if kind is TransactionKind.DEPOSIT:
            delta = amount
        elif kind is TransactionKind.WITHDRAWAL:
            delta = -amount
        else:
            delta = -abs(amount)
        balances[entry.portfolio_id] = balances.get(entry.portfolio_id, ZERO) + delta
    return balances


def calculate_allocation(rows: Iterable[HoldingValuation], cash: Decimal = ZERO) -> list[AllocationSlice]:
    """Percent of total value per symbol, largest first.

    A symbol held in several portfolios is a single slice. Positive cash
    gets its own slice. Returns an empty list when nothing has value.
    """
    values: dict[str, Decimal] = {}
    names: dict[str, str] = {}
    for row in rows:
        symbol = row.holding.symbol
        values[symbol] = values.get(symbol, ZERO) + row.market_value
        names.setdefault(symbol, row.holding.name)
    if cash > 0:
        values[CASH_SYMBOL] = values.get(CASH_SYMBOL, ZERO) + cash
        names.setdefault(CASH_SYMBOL, "Cash")

    total = sum(values.values(), ZERO)
    if total <= 0:
        return []

    slices = [
        AllocationSlice(symbol=symbol, name=names[symbol], value=value, percent=value / total * HUNDRED)
        for symbol, value in values.items()
    ]
    slices.sort(key=lambda s: s.value, reverse=True)
    return slices


def _performer(row: Optional[HoldingValuation]) -> Optional[Performer]:
    if row is None:
        return None
    return Performer(
        portfolio_id=row.holding.portfolio_id,
        symbol=row.holding.symbol,
        name=row.holding.name,
        gain=row.unrealized_gain,
        gain_percent=row.unrealized_gain_percent,
    )


def find_performers(rows: Iterable[HoldingValuation]) -> tuple[Optional[Performer], Optional[Performer]]:
    """Best and worst holding by unrealized gain percent.

    Ties go to the holding seen first. Both are None without holdings.
    """
    best = worst = None
    for row in rows:
        if best is None or row.unrealized_gain_percent > best.unrealized_gain_percent:
            best = row
        if worst is None or row.unrealized_gain_percent < worst.unrealized_gain_percent:
            worst = row
    return _performer(best), _performer(worst)


def find_overlapping_holdings(
    rows: Iterable[HoldingValuation], portfolio_names: Mapping[str, str]
) -> list[Overlap]:
    """Symbols held in more than one portfolio, largest combined value first."""
    grouped: dict[str, Overlap] = {}
    for row in rows:
        h = row.holding
        overlap = grouped.setdefault(h.symbol, Overlap(symbol=h.symbol))
        overlap.portfolio_ids.append(h.portfolio_id)
        overlap.portfolio_names.append(portfolio_names.get(h.portfolio_id, h.portfolio_id))
        overlap.total_quantity += h.quantity
        overlap.total_value += row.market_value

    overlaps = [o for o in grouped.values() if len(o.portfolio_ids) > 1]
    overlaps.sort(key=lambda o: o.total_value, reverse=True)
    return overlaps


def portfolio_breakdown(
    rows: Iterable[HoldingValuation],
    portfolio_names: Mapping[str, str],
    cash_balances: Mapping[str, Decimal],
) -> list[PortfolioBreakdown]:
    """Value, cost and gain of each portfolio, in ``portfolio_names`` order.

    Cash counts toward both value and cost, so it never shows up as gain.
    """
    by_portfolio: dict[str, list[HoldingValuation]] = {pid: [] for pid in portfolio_names}
    for row in rows:
        by_portfolio.setdefault(row.holding.portfolio_id, []).append(row)

    breakdown = []
    for pid, held in by_portfolio.items():
        cash = cash_balances.get(pid, ZERO)
        total_value = sum((r.market_value for r in held), ZERO) + cash
        total_cost = sum((r.holding.total_cost for r in held), ZERO) + cash
        gain = total_value - total_cost
        breakdown.append(
            PortfolioBreakdown(
                portfolio_id=pid,
                name=portfolio_names.get(pid, pid),
                total_value=total_value,
                total_cost=total_cost,
                gain=gain,
                gain_percent=gain / total_cost * HUNDRED if total_cost > 0 else ZERO,
                cash_balance=cash,
                holdings_count=len(held),
            )
        )
    return breakdown


def top_movers(
    rows: Iterable[HoldingValuation],
    quotes: Mapping[str, Quote],
    limit: int = TOP_MOVERS_LIMIT,
) -> list[Mover]:
    """Quoted symbols ranked by the size of today's percent move.

    A symbol held in several portfolios appears once with its day change
    summed. Unquoted holdings are left out.
    """
    movers: dict[str, Mover] = {}
    for row in rows:
        h = row.holding
        quote = find_quote(quotes, h.symbol)
        if quote is None:
            continue
        mover = movers.get(h.symbol)
        if mover is None:
            movers[h.symbol] = Mover(
                symbol=h.symbol,
                name=h.name or quote.name,
                day_change=row.day_change,
                day_change_percent=quote.change_percent,
            )
        else:
            mover.day_change += row.day_change

    ranked = sorted(movers.values(), key=lambda m: abs(m.day_change_percent), reverse=True)
    return ranked[:limit]


class AnalyticsService:
    """Builds the cross-portfolio analytics report from the ledger."""

    @staticmethod
    def get_analytics(db: Session, quotes: Mapping[str, Quote]) -> PortfolioAnalytics:
        """Analyse every portfolio against a quote snapshot.

        Holdings without a quote are valued at average cost, as in
        portfolio valuation.
        """
        portfolios = PortfolioService.list_portfolios(db)
        names = {p.id: p.name for p in portfolios}

        ledger = TransactionService.list_ledger(db)
        holdings = compute_holdings(ledger)
        rows = compute_holding_valuations(holdings, quotes)
        cash = compute_cash_balances(ledger)
        total_cash = sum(cash.values(), ZERO)
        best, worst = find_performers(rows)

        logger.debug(
            "Analytics over %d portfolios, %d holdings, %d quotes",
            len(portfolios), len(rows), len(quotes),
        )
        return PortfolioAnalytics(
            summary=compute_valuation(holdings, quotes),
            total_cash=total_cash,
            portfolio_count=len(portfolios),
            holdings_count=len(rows),
            best_performer=best,
            worst_performer=worst,
            allocation=calculate_allocation(rows, total_cash),
            overlaps=find_overlapping_holdings(rows, names),
            portfolios=portfolio_breakdown(rows, names, cash),
            top_movers=top_movers(rows, quotes),
        )
