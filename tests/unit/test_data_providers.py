"""Tests for the return-series providers: schema, JSON, cache and YFinance.

Nothing here touches the network; ``yf.download`` is patched.
"""
import json
import math
from datetime import date
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
from pydantic import ValidationError

from src.riskengine.core.errors import DataUnavailableError, InsufficientDataError
from src.riskengine.data.adapters.json_provider import JsonReturnsProvider
from src.riskengine.data.adapters.yfinance_adapter import YFinanceReturnsAdapter
from src.riskengine.data.base import ReturnSeriesProvider
from src.riskengine.data.cache import CachedReturnsProvider
from src.riskengine.data.schemas import ReturnSeries

DOWNLOAD = "src.riskengine.data.adapters.yfinance_adapter.yf.download"


class FakeClock:

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class CountingProvider(ReturnSeriesProvider):
    """Returns a fixed series and records every call."""

    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def fetch_returns(self, ticker, market="US"):
        self.calls.append((ticker, market))
        if ticker in self.fail_for:
            raise DataUnavailableError(ticker)
        return ReturnSeries(
            ticker=ticker, market=market,
            returns={"2024-01-02": 0.01 * len(self.calls)},
        )


def _prices(closes, start="2024-01-02"):
    return pd.DataFrame(
        {"Open": closes, "Close": closes},
        index=pd.bdate_range(start=start, periods=len(closes)),
    )


class TestReturnSeries:

    def test_date_keys_normalised_to_iso(self):
        series = ReturnSeries(ticker="AAPL", returns={date(2024, 1, 2): 0.01})
        assert series.returns == {"2024-01-02": 0.01}
        assert series.return_type == "log"
        assert len(series) == 1

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            ReturnSeries(ticker="AAPL", returns={})

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError, match="Non-finite"):
            ReturnSeries(ticker="AAPL", returns={"2024-01-02": float("nan")})


class TestValidateSeries:

    def test_short_series_raises_with_ticker(self):
        series = ReturnSeries(ticker="AAPL", returns={"2024-01-02": 0.01})

        with pytest.raises(InsufficientDataError) as exc:
            CountingProvider().validate_series(series, min_points=10)

        assert exc.value.ticker == "AAPL"
        assert (exc.value.found, exc.value.required) == (1, 10)

    def test_long_enough_series_passes(self, returns_factory):
        series = ReturnSeries(ticker="AAPL", returns=returns_factory(n=10))
        assert CountingProvider().validate_series(series, min_points=10) is True


class TestJsonReturnsProvider:

    def test_serves_stored_series(self, tmp_path):
        path = tmp_path / "returns.json"
        path.write_text(json.dumps({"spy": {"2024-01-02": 0.004, "2024-01-03": -0.002}}))

        provider = JsonReturnsProvider(str(path))
        series = provider.fetch_returns("spy")

        assert series.ticker == "SPY"
        assert series.return_type == "simple"
        assert series.returns["2024-01-03"] == -0.002

    def test_unknown_ticker(self, tmp_path):
        path = tmp_path / "returns.json"
        path.write_text(json.dumps({"SPY": {"2024-01-02": 0.004}}))

        with pytest.raises(DataUnavailableError, match="QQQ"):
            JsonReturnsProvider(str(path)).fetch_returns("QQQ")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            JsonReturnsProvider(str(tmp_path / "absent.json"))

    def test_corrupted_file(self, tmp_path):
        path = tmp_path / "returns.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Corrupted"):
            JsonReturnsProvider(str(path))

    def test_relative_path_resolves_against_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "r.json").write_text(json.dumps({"TLT": {"2024-01-02": 0.001}}))
        monkeypatch.chdir(tmp_path)

        assert len(JsonReturnsProvider("data/r.json").fetch_returns("TLT")) == 1


class TestCachedReturnsProvider:

    def test_hit_skips_underlying_provider(self):
        inner = CountingProvider()
        cache = CachedReturnsProvider(inner, clock=FakeClock())

        first = cache.fetch_returns("aapl")
        second = cache.fetch_returns("AAPL")

        assert first is second
        assert inner.calls == [("aapl", "US")]
        assert len(cache) == 1

    def test_market_is_part_of_the_key(self):
        inner = CountingProvider()
        cache = CachedReturnsProvider(inner, clock=FakeClock())

        cache.fetch_returns("INFY", "US")
        cache.fetch_returns("INFY", "INDIA")

        assert len(inner.calls) == 2

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        inner = CountingProvider()
        cache = CachedReturnsProvider(inner, ttl_seconds=60, clock=clock)

        cache.fetch_returns("AAPL")
        clock.now = 59
        cache.fetch_returns("AAPL")
        clock.now = 60
        cache.fetch_returns("AAPL")

        assert len(inner.calls) == 2

    def test_cleared_when_full(self):
        cache = CachedReturnsProvider(CountingProvider(), max_entries=2, clock=FakeClock())

        cache.fetch_returns("A")
        cache.fetch_returns("B")
        cache.fetch_returns("C")

        assert len(cache) == 1

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            CachedReturnsProvider(CountingProvider(), max_entries=0)

    def test_refresh_stale_keeps_failed_entries(self):
        clock = FakeClock()
        inner = CountingProvider()
        cache = CachedReturnsProvider(inner, ttl_seconds=10, clock=clock)
        cache.fetch_returns("AAPL")
        cache.fetch_returns("MSFT")

        clock.now = 11
        inner.fail_for = {"MSFT"}

        assert sorted(cache.stale_keys()) == ["AAPL_US", "MSFT_US"]
        assert cache.refresh_stale() == 1
        assert cache.stale_keys() == ["MSFT_US"]
        assert len(cache) == 2

    def test_clear(self):
        cache = CachedReturnsProvider(CountingProvider(), clock=FakeClock())
        cache.fetch_returns("AAPL")
        cache.clear()
        assert len(cache) == 0


class TestYFinanceReturnsAdapter:

    def test_yahoo_symbol(self):
        assert YFinanceReturnsAdapter.yahoo_symbol("reliance", "INDIA") == "RELIANCE.NS"
        assert YFinanceReturnsAdapter.yahoo_symbol("TCS.NS", "india") == "TCS.NS"
        assert YFinanceReturnsAdapter.yahoo_symbol("aapl", "US") == "AAPL"

    def test_log_returns_from_flat_columns(self):
        with patch(DOWNLOAD, return_value=_prices([100.0, 101.0, 99.0])) as download:
            series = YFinanceReturnsAdapter().fetch_returns("AAPL")

        assert download.call_args.kwargs["period"] == "1y"
        assert series.return_type == "log"
        assert list(series.returns) == ["2024-01-03", "2024-01-04"]
        assert series.returns["2024-01-03"] == pytest.approx(math.log(101 / 100))
        assert series.returns["2024-01-04"] == pytest.approx(math.log(99 / 101))

    def test_simple_returns_from_multiindex_columns(self):
        df = _prices([100.0, 110.0, 99.0])
        df.columns = pd.MultiIndex.from_product([df.columns, ["SAP.NS"]])

        with patch(DOWNLOAD, return_value=df):
            series = YFinanceReturnsAdapter(return_type="simple").fetch_returns("SAP", "INDIA")

        assert series.ticker == "SAP"
        assert series.market == "INDIA"
        assert series.returns["2024-01-03"] == pytest.approx(0.10)
        assert series.returns["2024-01-04"] == pytest.approx(-0.10)

    def test_explicit_window_passed_through(self):
        adapter = YFinanceReturnsAdapter(start_date=date(2024, 1, 1), end_date=date(2024, 2, 1))

        with patch(DOWNLOAD, return_value=_prices([1.0, 2.0])) as download:
            adapter.fetch_returns("AAPL")

        kwargs = download.call_args.kwargs
        assert kwargs["start"] == date(2024, 1, 1)
        assert kwargs["end"] == date(2024, 2, 1)
        assert "period" not in kwargs

    def test_non_positive_closes_dropped(self):
        with patch(DOWNLOAD, return_value=_prices([100.0, 0.0, 102.0, 104.0])):
            series = YFinanceReturnsAdapter().fetch_returns("AAPL")

        assert len(series) == 2
        assert all(math.isfinite(r) for r in series.returns.values())

    def test_empty_download(self):
        with patch(DOWNLOAD, return_value=pd.DataFrame()):
            with pytest.raises(DataUnavailableError, match="empty"):
                YFinanceReturnsAdapter().fetch_returns("ZZZZ")

    def test_download_error_wrapped(self):
        with patch(DOWNLOAD, MagicMock(side_effect=ConnectionError("timeout"))):
            with pytest.raises(DataUnavailableError, match="timeout"):
                YFinanceReturnsAdapter().fetch_returns("AAPL")

    def test_single_close_is_not_enough(self):
        with patch(DOWNLOAD, return_value=_prices([100.0])):
            with pytest.raises(DataUnavailableError):
                YFinanceReturnsAdapter().fetch_returns("AAPL")
