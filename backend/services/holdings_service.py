"""Holdings derivation: weighted-average cost basis from a transaction ledger.

Holdings are never stored. They are recomputed on demand by folding the
ledger for each (portfolio, asset) pair. Pure functions only: no I/O, no
state between calls.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class TransactionKind(str, Enum):
    """Every transaction type the ledger can record."""

    BUY = "buy"
    SELL = "sell"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    OPTION_EXERCISE = "option_exercise"
    OPTION_ASSIGNMENT = "option_assignment"
    OPTION_EXPIRATION = "option_expiration"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    MARGIN_INTEREST = "margin_interest"
    DIVIDEND = "dividend"
    SPLIT = "split"


# Cash movements are booked against this synthetic asset and never
# produce a holding.
CASH_SYMBOL = "$CASH"

CASH_KINDS = frozenset({
    TransactionKind.DEPOSIT,
    TransactionKind.WITHDRAWAL,
    TransactionKind.MARGIN_INTEREST,
})

ACQUIRE_KINDS = frozenset({TransactionKind.BUY, TransactionKind.TRANSFER_IN})

# Exercise and assignment close the position at the tracked average cost,
# exactly like a sale.
DISPOSE_KINDS = frozenset({
    TransactionKind.SELL,
    TransactionKind.TRANSFER_OUT,
    TransactionKind.OPTION_EXERCISE,
    TransactionKind.OPTION_ASSIGNMENT,
})

# Recorded for completeness; they move neither quantity nor cost.
PASSIVE_KINDS = frozenset({TransactionKind.DIVIDEND, TransactionKind.SPLIT})


class UnknownTransactionKindError(ValueError):
    """Raised when a ledger entry carries a type outside TransactionKind."""


def parse_kind(kind) -> TransactionKind:
    """Coerce a string or enum member to a TransactionKind.

    Raises:
        UnknownTransactionKindError: If the value is not a known kind.
    """
    if isinstance(kind, TransactionKind):
        return kind
    try:
        return TransactionKind(kind)
    except ValueError:
        raise UnknownTransactionKindError(f"Unknown transaction type: {kind!r}") from None


def is_cash_kind(kind) -> bool:
    """Check if a transaction type represents a cash movement."""
    return parse_kind(kind) in CASH_KINDS


@dataclass(frozen=True)
class LedgerEntry:
    """One transaction as seen by the accumulator."""

    portfolio_id: str
    asset_id: str
    symbol: str
    kind: TransactionKind | str
    quantity: Decimal
    price_per_unit: Decimal
    fees: Decimal = ZERO
    date: Optional[date] = None
    name: str = ""


@dataclass
class Holding:
    """Aggregated open position for one asset within one portfolio."""

    asset_id: str
    symbol: str
    name: str
    portfolio_id: str
    quantity: Decimal = ZERO
    avg_cost: Decimal = ZERO
    total_cost: Decimal = ZERO

    def apply(self, kind: TransactionKind, quantity: Decimal, price: Decimal, fees: Decimal) -> None:
        """Fold one transaction into the running position."""
        if kind in ACQUIRE_KINDS:
            self.total_cost += price * quantity + fees
            self.quantity += quantity
            self.avg_cost = self.total_cost / self.quantity if self.quantity != 0 else ZERO
        elif kind in DISPOSE_KINDS:
            # avg_cost of the remaining units is unchanged by a disposal
            self.quantity -= quantity
            self.total_cost = max(ZERO, self.total_cost - self.avg_cost * quantity)
        elif kind is TransactionKind.OPTION_EXPIRATION:
            # Expiration wipes out the whole remaining position
            self.quantity = ZERO
            self.total_cost = ZERO
        elif kind in PASSIVE_KINDS:
            pass
        else:
            raise UnknownTransactionKindError(f"Unhandled transaction type: {kind!r}")


def _decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_holdings(
    transactions: Iterable[LedgerEntry],
    portfolio_id: Optional[str] = None,
) -> list[Holding]:
    """Build current holdings from a list of transactions.

    Groups by (portfolio_id, asset_id) and applies buy/sell/transfer/option
    logic in the order given. Callers should pass transactions in
    chronological order for meaningful averages; the fold itself does not
    sort.

    Args:
        transactions: Ledger entries, typically oldest first.
        portfolio_id: If given, only entries of this portfolio are used.

    Returns:
        Holdings with quantity > 0, in first-seen order.

    Raises:
        UnknownTransactionKindError: If an entry has an unknown type.
    """
    positions: dict[tuple[str, str], Holding] = {}

    for txn in transactions:
        kind = parse_kind(txn.kind)
        if kind in CASH_KINDS:
            continue
        if portfolio_id is not None and txn.portfolio_id != portfolio_id:
            continue

        key = (txn.portfolio_id, txn.asset_id)
        holding = positions.get(key)
        if holding is None:
            holding = Holding(
                asset_id=txn.asset_id,
                symbol=txn.symbol or "",
                name=txn.name or "",
                portfolio_id=txn.portfolio_id,
            )
            positions[key] = holding

        holding.apply(kind, _decimal(txn.quantity), _decimal(txn.price_per_unit), _decimal(txn.fees))

    result = []
    for holding in positions.values():
        if holding.quantity > 0:
            result.append(holding)
        elif holding.quantity < 0:
            logger.debug(
                "Oversold position dropped: %s in portfolio %s (quantity %s)",
                holding.symbol, holding.portfolio_id, holding.quantity,
            )
    return result


def unique_symbols(holdings: Iterable[Holding]) -> list[str]:
    """Distinct non-empty symbols across holdings, first-seen order."""
    return list(dict.fromkeys(h.symbol for h in holdings if h.symbol))
