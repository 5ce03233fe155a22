"""
YFinance return-series adapter.

Fetches daily closing prices via the yfinance library and converts them
into the internal ``ReturnSeries`` contract.  Handles quirks across
yfinance versions (flat vs. MultiIndex column layouts for single-ticker
downloads) so the analysis layer always receives a consistent series.
"""
from datetime import date
from typing import Literal, Optional

import numpy as np
import pandas as pd
import yfinance as yf
from loguru import logger

from src.riskengine.core.errors import DataUnavailableError
from src.riskengine.data.base import ReturnSeriesProvider
from src.riskengine.data.schemas import ReturnSeries

# Yahoo suffixes for markets whose symbols are not plain US tickers.
MARKET_SUFFIXES = {
    "INDIA": ".NS",
}


class YFinanceReturnsAdapter(ReturnSeriesProvider):
    """Concrete ReturnSeriesProvider backed by Yahoo Finance."""

    def __init__(
        self,
        period: str = "1y",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        return_type: Literal["log", "simple"] = "log",
    ):
        """
        Args:
            period: yfinance look-back period (ignored when *start_date* is set).
            start_date: First calendar date of the window (inclusive).
            end_date: Last calendar date of the window (exclusive in yfinance).
            return_type: ``"log"`` for ln(P_t / P_t-1), ``"simple"`` for
                         P_t / P_t-1 - 1.
        """
        self.period = period
        self.start_date = start_date
        self.end_date = end_date
        self.return_type = return_type

    @staticmethod
    def yahoo_symbol(ticker: str, market: str) -> str:
        """Map an internal ticker/market pair onto a Yahoo Finance symbol."""
        symbol = ticker.strip().upper()
        suffix = MARKET_SUFFIXES.get(market.upper())
        if suffix and "." not in symbol:
            symbol += suffix
        return symbol

    def fetch_returns(self, ticker: str, market: str = "US") -> ReturnSeries:
        """Download daily closes and return the derived return series.

        Raises:
            DataUnavailableError: If the download fails or yields fewer than
                two usable closing prices.
        """
        symbol = self.yahoo_symbol(ticker, market)
        logger.info(f"Fetching {symbol} from Yahoo Finance ({self._window()})")

        try:
            if self.start_date is not None:
                df = yf.download(
                    symbol,
                    start=self.start_date,
                    end=self.end_date,
                    auto_adjust=True,
                    actions=False,
                    progress=False,
                )
            else:
                df = yf.download(
                    symbol,
                    period=self.period,
                    auto_adjust=True,
                    actions=False,
                    progress=False,
                )
        except Exception as e:
            logger.error(f"YFinance download failed for {symbol}: {e}")
            raise DataUnavailableError(ticker, f"download failed: {e}") from e

        if df is None or df.empty:
            logger.warning(
                f"No data returned for {symbol}. "
                "Possible holiday range or delisted symbol."
            )
            raise DataUnavailableError(ticker, "empty response from Yahoo Finance")

        closes = self._extract_close(df, symbol)
        closes = closes[closes > 0].dropna().sort_index()
        if len(closes) < 2:
            raise DataUnavailableError(ticker, "fewer than two valid closing prices")

        if self.return_type == "log":
            rets = np.log(closes / closes.shift(1)).dropna()
        else:
            rets = closes.pct_change().dropna()

        returns = {pd.Timestamp(idx).date().isoformat(): float(r) for idx, r in rets.items()}

        logger.success(f"Fetched {len(returns)} daily returns for {symbol}.")
        return ReturnSeries(
            ticker=ticker.strip().upper(),
            market=market,
            return_type=self.return_type,
            returns=returns,
        )

    def _window(self) -> str:
        if self.start_date is not None:
            return f"{self.start_date} to {self.end_date or 'today'}"
        return f"period={self.period}"

    @staticmethod
    def _extract_close(df: pd.DataFrame, symbol: str) -> pd.Series:
        """Pull the close column out of either yfinance column layout.

        Handles:
          - flat columns (``Open``, ``High``, ..., ``Close``);
          - (Price, Ticker) MultiIndex produced by recent versions even
            for single-ticker downloads;
          - (Ticker, Price) MultiIndex produced by ``group_by='ticker'``.
        """
        if isinstance(df.columns, pd.MultiIndex):
            for level in range(df.columns.nlevels):
                if "Close" in df.columns.get_level_values(level):
                    close = df.xs("Close", axis=1, level=level)
                    if isinstance(close, pd.DataFrame):
                        close = close[symbol] if symbol in close.columns else close.iloc[:, 0]
                    return close.astype(float)
            raise DataUnavailableError(symbol, "no Close column in response")

        if "Close" not in df.columns:
            raise DataUnavailableError(symbol, "no Close column in response")
        return df["Close"].astype(float)
