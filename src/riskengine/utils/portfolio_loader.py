"""
Portfolio definition loader.

Reads a JSON file that maps portfolio names to their tickers and
(optionally) weights, and caches the result in memory.  The file is
loaded eagerly at construction time so that configuration errors surface
immediately rather than mid-pipeline.

Expected JSON structure::

    {
      "mag_seven": {
        "tickers": ["AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA"]
      },
      "balanced": {
        "tickers": ["SPY", "TLT"],
        "weights": [0.6, 0.4],
        "benchmark": "SPY"
      },
      "default": ["SPY"]
    }

A bare list is shorthand for ``{"tickers": [...]}`` (equal weights).
"""
import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger


class PortfolioLoader:
    """Loads and caches portfolio definitions from a JSON file."""

    def __init__(
        self,
        portfolio_file: str = "portfolios/portfolios.json",
    ):
        """
        Args:
            portfolio_file: Path to the portfolio definitions file, relative
                            to the current working directory.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file contains invalid JSON.
        """
        self.file_path = Path(os.getcwd()) / portfolio_file
        self._cache: Dict[str, dict] = {}
        self._load_portfolios()

    def _load_portfolios(self) -> None:
        """Read the JSON file into the in-memory cache.

        Raises:
            FileNotFoundError: If *self.file_path* does not exist.
            ValueError: If the file is not valid JSON.
        """
        if not self.file_path.exists():
            logger.critical(f"Portfolio file not found at: {self.file_path}")
            raise FileNotFoundError(
                f"Missing portfolio definition file: {self.file_path}"
            )

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            logger.info(
                f"Loaded portfolio definitions from {self.file_path.name}"
            )
        except json.JSONDecodeError as e:
            logger.critical(f"Invalid JSON in portfolio file: {e}")
            raise ValueError("Corrupted portfolio definition file") from e

        self._cache = {
            name: ({"tickers": entry} if isinstance(entry, list) else entry)
            for name, entry in raw.items()
        }

    def _entry(self, portfolio_name: str) -> dict:
        if portfolio_name not in self._cache:
            available = list(self._cache.keys())
            logger.error(
                f"Portfolio '{portfolio_name}' not found. "
                f"Available: {available}"
            )
            raise KeyError(f"Unknown portfolio: {portfolio_name}")
        return self._cache[portfolio_name]

    def get_portfolio(
        self, portfolio_name: str
    ) -> Tuple[List[str], Optional[List[float]], Optional[str]]:
        """Return ``(tickers, weights, benchmark)`` for a portfolio.

        ``weights`` and ``benchmark`` are ``None`` when not defined.

        Raises:
            KeyError: If *portfolio_name* is not present in the file.
        """
        entry = self._entry(portfolio_name)
        tickers = list(entry.get("tickers", []))
        weights = entry.get("weights")
        logger.info(
            f"Selected portfolio '{portfolio_name}': {len(tickers)} assets"
        )
        return tickers, (list(weights) if weights else None), entry.get("benchmark")
