"""Unit tests for YahooFinanceClient (mocked yfinance)."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pandas as pd
import pytest

from integrations.exceptions import MarketDataConnectionError
from integrations.yahoo_finance_client import YahooFinanceClient


@pytest.fixture
def client():
    return YahooFinanceClient()


def _make_df(data: dict, dates: list[str]) -> pd.DataFrame:
    """Build a DataFrame with DatetimeIndex, mimicking yfinance output."""
    return pd.DataFrame(data, index=pd.DatetimeIndex(dates))


def _make_multi_df(fields: dict[tuple[str, str], list[float]], dates: list[str]) -> pd.DataFrame:
    """Build a multi-ticker frame with (field, symbol) MultiIndex columns."""
    cols = pd.MultiIndex.from_tuples(list(fields))
    rows = list(zip(*fields.values()))
    return pd.DataFrame(rows, index=pd.DatetimeIndex(dates), columns=cols)


class TestGetQuotes:
    def test_single_symbol_quote(self, client):
        df = _make_df(
            {
                "Close": [185.0, 187.5],
                "High": [186.0, 188.25],
                "Low": [183.0, 186.0],
            },
            ["2024-01-15", "2024-01-16"],
        )
        with patch("yfinance.download", return_value=df) as mock_dl:
            quotes = client.get_quotes(["AAPL"])

        q = quotes["AAPL"]
        assert q.price == Decimal("187.5")
        assert q.previous_close == Decimal("185.0")
        assert q.change == Decimal("2.5")
        assert q.day_high == Decimal("188.25")
        assert q.day_low == Decimal("186.0")
        assert q.source == "yahoo"
        assert mock_dl.call_args.kwargs["period"] == "5d"

    def test_multi_symbol_quotes(self, client):
        df = _make_multi_df(
            {
                ("Close", "AAPL"): [185.0, 190.0],
                ("Close", "MSFT"): [400.0, 396.0],
            },
            ["2024-01-15", "2024-01-16"],
        )
        with patch("yfinance.download", return_value=df):
            quotes = client.get_quotes(["AAPL", "MSFT"])

        assert quotes["AAPL"].change == Decimal("5.0")
        assert quotes["MSFT"].change == Decimal("-4.0")
        assert quotes["MSFT"].change_percent == Decimal("-1")
        assert quotes["AAPL"].day_high is None

    def test_symbol_without_data_is_omitted(self, client):
        df = _make_multi_df(
            {
                ("Close", "AAPL"): [185.0, 190.0],
                ("Close", "FAKE"): [float("nan"), float("nan")],
            },
            ["2024-01-15", "2024-01-16"],
        )
        with patch("yfinance.download", return_value=df):
            quotes = client.get_quotes(["AAPL", "FAKE"])

        assert set(quotes) == {"AAPL"}

    def test_single_bar_uses_price_as_previous_close(self, client):
        df = _make_df({"Close": [50.0]}, ["2024-01-16"])
        with patch("yfinance.download", return_value=df):
            quotes = client.get_quotes(["NEWIPO"])

        assert quotes["NEWIPO"].previous_close == quotes["NEWIPO"].price
        assert quotes["NEWIPO"].change == 0

    def test_empty_frame_returns_no_quotes(self, client):
        with patch("yfinance.download", return_value=pd.DataFrame()):
            assert client.get_quotes(["AAPL"]) == {}

    def test_download_failure_raises_connection_error(self, client):
        with patch("yfinance.download", side_effect=Exception("network error")):
            with pytest.raises(MarketDataConnectionError) as exc_info:
                client.get_quotes(["AAPL"])

        assert exc_info.value.provider_name == "yahoo"
        assert exc_info.value.retriable is True

    def test_empty_symbols(self, client):
        with patch("yfinance.download") as mock_dl:
            assert client.get_quotes([]) == {}
        mock_dl.assert_not_called()


class TestGetPriceHistory:
    def test_single_date_returns_that_close(self, client):
        df = _make_df({"Close": [150.25]}, ["2024-01-15"])
        with patch("yfinance.download", return_value=df) as mock_dl:
            result = client.get_price_history(["AAPL"], date(2024, 1, 15), date(2024, 1, 15))

        (pr,) = result["AAPL"]
        assert pr.price_date == date(2024, 1, 15)
        assert pr.close_price == Decimal("150.25")
        assert pr.source == "yahoo"
        # Ten-day lookback; yfinance end is exclusive
        assert mock_dl.call_args.kwargs["start"] == "2024-01-05"
        assert mock_dl.call_args.kwargs["end"] == "2024-01-16"

    def test_weekend_date_returns_prior_friday(self, client):
        df = _make_df({"Close": [148.0, 149.0, 150.0]}, ["2024-01-10", "2024-01-11", "2024-01-12"])
        with patch("yfinance.download", return_value=df):
            result = client.get_price_history(["AAPL"], date(2024, 1, 13), date(2024, 1, 13))

        assert [pr.price_date for pr in result["AAPL"]] == [date(2024, 1, 12)]

    def test_date_range_returns_every_bar(self, client):
        df = _make_multi_df(
            {
                ("Close", "AAPL"): [150.0, 151.0],
                ("Close", "MSFT"): [380.0, 381.0],
            },
            ["2024-01-15", "2024-01-16"],
        )
        with patch("yfinance.download", return_value=df):
            result = client.get_price_history(
                ["AAPL", "MSFT"], date(2024, 1, 15), date(2024, 1, 16)
            )

        assert [pr.close_price for pr in result["MSFT"]] == [Decimal("380.0"), Decimal("381.0")]

    def test_download_exception_returns_empty_results(self, client):
        with patch("yfinance.download", side_effect=Exception("network error")):
            result = client.get_price_history(["AAPL"], date(2024, 1, 15), date(2024, 1, 15))

        assert result["AAPL"] == []

    def test_preserves_precision(self, client):
        df = _make_df({"Close": [150.123456]}, ["2024-01-15"])
        with patch("yfinance.download", return_value=df):
            result = client.get_price_history(["AAPL"], date(2024, 1, 15), date(2024, 1, 15))

        assert result["AAPL"][0].close_price == Decimal("150.123456")

    def test_provider_name(self, client):
        assert client.provider_name == "yahoo"
