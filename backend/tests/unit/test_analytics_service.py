"""Unit tests for cross-portfolio analytics."""

from datetime import date
from decimal import Decimal

import pytest

from services.analytics_service import (
    AnalyticsService,
    calculate_allocation,
    compute_cash_balances,
    find_overlapping_holdings,
    find_performers,
    portfolio_breakdown,
    top_movers,
)
from services.holdings_service import Holding, LedgerEntry, UnknownTransactionKindError
from services.valuation_service import compute_holding_valuations
from tests.fixtures import add_transaction, get_or_create_asset
from tests.fixtures.mocks import make_quote

NAMES = {"p1": "Brokerage", "p2": "Retirement"}


def _holding(symbol, quantity, avg_cost, portfolio_id="p1"):
    qty = Decimal(quantity)
    avg = Decimal(avg_cost)
    return Holding(
        asset_id=f"asset-{symbol}",
        symbol=symbol,
        name=f"{symbol} Inc.",
        portfolio_id=portfolio_id,
        quantity=qty,
        avg_cost=avg,
        total_cost=qty * avg,
    )


def _cash(kind, amount, portfolio_id="p1"):
    return LedgerEntry(
        portfolio_id=portfolio_id,
        asset_id="cash",
        symbol="$CASH",
        kind=kind,
        quantity=Decimal(amount),
        price_per_unit=Decimal("1"),
    )


class TestCashBalances:
    def test_deposits_withdrawals_and_interest(self):
        balances = compute_cash_balances([
            _cash("deposit", "5000"),
            _cash("withdrawal", "1000"),
            _cash("margin_interest", "10"),
            _cash("margin_interest", "-5"),
        ])

        assert balances == {"p1": Decimal("3985")}

    def test_balances_are_per_portfolio_and_ignore_trades(self):
        buy = LedgerEntry(
            portfolio_id="p1",
            asset_id="a1",
            symbol="AAPL",
            kind="buy",
            quantity=Decimal("10"),
            price_per_unit=Decimal("100"),
        )

        balances = compute_cash_balances([
            _cash("deposit", "100", "p1"),
            buy,
            _cash("deposit", "250", "p2"),
        ])

        assert balances == {"p1": Decimal("100"), "p2": Decimal("250")}

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownTransactionKindError):
            compute_cash_balances([_cash("bogus", "1")])


class TestAllocation:
    def test_percent_of_total_largest_first(self):
        rows = compute_holding_valuations(
            [_holding("MSFT", "2", "40"), _holding("AAPL", "10", "10")],
            {"AAPL": make_quote("AAPL", "12", "10")},
        )

        slices = calculate_allocation(rows)

        assert [(s.symbol, s.value, s.percent) for s in slices] == [
            ("AAPL", Decimal("120"), Decimal("60")),
            ("MSFT", Decimal("80"), Decimal("40")),
        ]

    def test_same_symbol_across_portfolios_is_one_slice(self):
        rows = compute_holding_valuations(
            [_holding("AAPL", "1", "100", "p1"), _holding("AAPL", "3", "100", "p2")],
            {},
        )

        (slice_,) = calculate_allocation(rows)

        assert slice_.value == Decimal("400")
        assert slice_.percent == Decimal("100")

    def test_positive_cash_is_a_slice(self):
        rows = compute_holding_valuations([_holding("AAPL", "1", "300")], {})

        slices = calculate_allocation(rows, cash=Decimal("100"))

        assert [(s.symbol, s.percent) for s in slices] == [
            ("AAPL", Decimal("75")),
            ("$CASH", Decimal("25")),
        ]

    def test_nothing_of_value_is_empty(self):
        assert calculate_allocation([]) == []
        assert calculate_allocation([], cash=Decimal("-50")) == []


class TestPerformers:
    def test_best_and_worst_by_gain_percent(self):
        rows = compute_holding_valuations(
            [
                _holding("AAPL", "10", "10"),
                _holding("MSFT", "1", "100"),
                _holding("VTI", "2", "50"),
            ],
            {
                "AAPL": make_quote("AAPL", "12", "11"),
                "MSFT": make_quote("MSFT", "90", "95"),
                "VTI": make_quote("VTI", "55", "54"),
            },
        )

        best, worst = find_performers(rows)

        assert (best.symbol, best.gain_percent) == ("AAPL", Decimal("20"))
        assert (worst.symbol, worst.gain_percent) == ("MSFT", Decimal("-10"))
        assert worst.gain == Decimal("-10")

    def test_no_holdings(self):
        assert find_performers([]) == (None, None)


class TestOverlaps:
    def test_only_symbols_in_several_portfolios(self):
        rows = compute_holding_valuations(
            [
                _holding("AAPL", "1", "100", "p1"),
                _holding("MSFT", "1", "400", "p1"),
                _holding("AAPL", "2", "100", "p2"),
            ],
            {},
        )

        (overlap,) = find_overlapping_holdings(rows, NAMES)

        assert overlap.symbol == "AAPL"
        assert overlap.portfolio_ids == ["p1", "p2"]
        assert overlap.portfolio_names == ["Brokerage", "Retirement"]
        assert overlap.total_quantity == Decimal("3")
        assert overlap.total_value == Decimal("300")

    def test_sorted_by_combined_value(self):
        rows = compute_holding_valuations(
            [
                _holding("AAPL", "1", "10", "p1"),
                _holding("AAPL", "1", "10", "p2"),
                _holding("VTI", "1", "200", "p1"),
                _holding("VTI", "1", "200", "p2"),
            ],
            {},
        )

        overlaps = find_overlapping_holdings(rows, NAMES)

        assert [o.symbol for o in overlaps] == ["VTI", "AAPL"]


class TestBreakdown:
    def test_value_cost_and_gain_per_portfolio(self):
        rows = compute_holding_valuations(
            [_holding("AAPL", "10", "10", "p1")],
            {"AAPL": make_quote("AAPL", "12", "10")},
        )

        p1, p2 = portfolio_breakdown(rows, NAMES, {"p1": Decimal("100")})

        assert p1.name == "Brokerage"
        assert p1.total_value == Decimal("220")
        assert p1.total_cost == Decimal("200")
        assert p1.gain == Decimal("20")
        assert p1.gain_percent == Decimal("10")
        assert p1.cash_balance == Decimal("100")
        assert p1.holdings_count == 1

        assert p2.name == "Retirement"
        assert (p2.total_value, p2.gain_percent, p2.holdings_count) == (Decimal("0"), Decimal("0"), 0)


class TestTopMovers:
    def test_ranked_by_absolute_percent_move(self):
        holdings = [
            _holding("VTI", "1", "50"),
            _holding("MSFT", "1", "100"),
            _holding("AAPL", "2", "10"),
            _holding("PRIVATE", "1", "5"),
        ]
        quotes = {
            "VTI": make_quote("VTI", "101", "100"),
            "MSFT": make_quote("MSFT", "90", "100"),
            "AAPL": make_quote("AAPL", "12", "10"),
        }
        rows = compute_holding_valuations(holdings, quotes)

        movers = top_movers(rows, quotes)

        assert [m.symbol for m in movers] == ["AAPL", "MSFT", "VTI"]
        assert movers[0].day_change == Decimal("4")
        assert movers[0].day_change_percent == Decimal("20")
        assert movers[1].day_change_percent == Decimal("-10")

    def test_limit_and_merge_across_portfolios(self):
        holdings = [
            _holding("AAPL", "1", "10", "p1"),
            _holding("AAPL", "2", "10", "p2"),
            _holding("MSFT", "1", "100"),
        ]
        quotes = {
            "AAPL": make_quote("AAPL", "11", "10"),
            "MSFT": make_quote("MSFT", "101", "100"),
        }
        rows = compute_holding_valuations(holdings, quotes)

        (mover,) = top_movers(rows, quotes, limit=1)

        assert mover.symbol == "AAPL"
        assert mover.day_change == Decimal("3")


class TestAnalyticsService:
    def test_report_across_portfolios(self, db, portfolio, second_portfolio, asset):
        msft = get_or_create_asset(db, "MSFT", "Microsoft")
        cash = get_or_create_asset(db, "$CASH")
        add_transaction(db, portfolio, cash, "deposit", "1000", "1", on_date=date(2024, 1, 1))
        add_transaction(db, portfolio, asset, "buy", "10", "100", on_date=date(2024, 1, 2))
        add_transaction(db, portfolio, msft, "buy", "2", "400", on_date=date(2024, 1, 3))
        add_transaction(db, second_portfolio, asset, "buy", "5", "120", on_date=date(2024, 1, 4))
        quotes = {
            "AAPL": make_quote("AAPL", "110", "100"),
            "MSFT": make_quote("MSFT", "380", "400"),
        }

        report = AnalyticsService.get_analytics(db, quotes)

        assert report.portfolio_count == 2
        assert report.holdings_count == 3
        assert report.total_cash == Decimal("1000")
        assert report.summary.total_value == Decimal("2410")

        assert (report.best_performer.symbol, report.best_performer.portfolio_id) == ("AAPL", portfolio.id)
        assert (report.worst_performer.symbol, report.worst_performer.portfolio_id) == (
            "AAPL",
            second_portfolio.id,
        )
        assert [s.symbol for s in report.allocation] == ["AAPL", "$CASH", "MSFT"]

        (overlap,) = report.overlaps
        assert overlap.symbol == "AAPL"
        assert set(overlap.portfolio_names) == {"Brokerage", "Retirement"}
        assert overlap.total_value == Decimal("1650")

        by_name = {b.name: b for b in report.portfolios}
        assert by_name["Brokerage"].total_value == Decimal("2860")
        assert by_name["Brokerage"].gain == Decimal("60")
        assert by_name["Brokerage"].holdings_count == 2
        assert by_name["Retirement"].gain == Decimal("-50")

        assert [m.symbol for m in report.top_movers] == ["AAPL", "MSFT"]
        assert report.top_movers[0].day_change == Decimal("150")

    def test_empty_state(self, db):
        report = AnalyticsService.get_analytics(db, {})

        assert report.portfolio_count == 0
        assert report.summary.total_value == Decimal("0")
        assert report.best_performer is None
        assert report.worst_performer is None
        assert report.allocation == []
        assert report.overlaps == []
        assert report.portfolios == []
        assert report.top_movers == []
