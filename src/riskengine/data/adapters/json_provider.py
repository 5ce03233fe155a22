"""
Static JSON return-series provider.

Reads a JSON file mapping tickers to their daily returns and serves them
through the ``ReturnSeriesProvider`` interface.  Useful for offline runs,
reproducible fixtures and for replaying series exported from another
system.

Expected JSON structure::

    {
      "AAPL": {"2024-01-02": 0.0121, "2024-01-03": -0.0075, ...},
      "SPY":  {"2024-01-02": 0.0043, ...}
    }
"""
import json
import os
from pathlib import Path
from typing import Dict

from loguru import logger

from src.riskengine.core.errors import DataUnavailableError
from src.riskengine.data.base import ReturnSeriesProvider
from src.riskengine.data.schemas import ReturnSeries


class JsonReturnsProvider(ReturnSeriesProvider):
    """Serves return series from a static JSON file."""

    def __init__(
        self,
        returns_file: str = "portfolios/returns.json",
        return_type: str = "simple",
    ):
        """
        Args:
            returns_file: Path to the returns file; relative paths resolve
                          against the current working directory.
            return_type: How the stored returns were computed.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file contains invalid JSON.
        """
        self.file_path = Path(os.getcwd()) / returns_file
        self.return_type = return_type
        self._data: Dict[str, Dict[str, float]] = {}
        self._load()

    def _load(self) -> None:
        if not self.file_path.exists():
            logger.critical(f"Returns file not found at: {self.file_path}")
            raise FileNotFoundError(f"Missing returns file: {self.file_path}")

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            logger.critical(f"Invalid JSON in returns file: {e}")
            raise ValueError("Corrupted returns file") from e

        self._data = {ticker.upper(): series for ticker, series in raw.items()}
        logger.info(f"Loaded returns for {len(self._data)} tickers from {self.file_path.name}")

    def fetch_returns(self, ticker: str, market: str = "US") -> ReturnSeries:
        symbol = ticker.strip().upper()
        if symbol not in self._data:
            logger.error(f"No stored returns for {symbol}")
            raise DataUnavailableError(ticker, f"not present in {self.file_path.name}")

        return ReturnSeries(
            ticker=symbol,
            market=market,
            return_type=self.return_type,
            returns=self._data[symbol],
        )
