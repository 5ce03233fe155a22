"""
Abstract base class for return-series providers.

Every concrete data adapter (YFinance, static JSON, a cache in front of
either) must implement the ``fetch_returns`` interface defined here.  The
base class also provides a shared ``validate_series`` method that acts as
a final safety net before data reaches the risk engine.
"""
from abc import ABC, abstractmethod

from loguru import logger

from src.riskengine.core.errors import InsufficientDataError
from src.riskengine.data.schemas import ReturnSeries


class ReturnSeriesProvider(ABC):
    """Contract that all return-series sources must satisfy."""

    @abstractmethod
    def fetch_returns(self, ticker: str, market: str = "US") -> ReturnSeries:
        """Fetch the daily return history of one instrument.

        Args:
            ticker: Instrument symbol (e.g. ``"AAPL"``).
            market: Market identifier (e.g. ``"US"``, ``"INDIA"``).

        Returns:
            A validated ``ReturnSeries``.

        Raises:
            DataUnavailableError: If the source has no data for *ticker*.
        """

    def validate_series(self, series: ReturnSeries, min_points: int = 10) -> bool:
        """Verify that a single series is long enough to be worth aligning.

        Args:
            series: The provider-produced series.
            min_points: Minimum number of observations.

        Returns:
            ``True`` if validation passes.

        Raises:
            InsufficientDataError: If the series is shorter than *min_points*.
        """
        if len(series) < min_points:
            logger.warning(
                f"Insufficient data points for {series.ticker}. "
                f"Found: {len(series)}, Need: {min_points}"
            )
            raise InsufficientDataError(
                found=len(series), required=min_points, ticker=series.ticker
            )
        return True
