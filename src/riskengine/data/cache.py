"""
In-memory caching layer in front of any return-series provider.

Remote sources are slow and rate-limited, so fetched series are kept for
a fixed time-to-live (one day by default, matching a daily close cycle).
The cache is bounded: once ``max_entries`` is reached it is cleared
before the next insert.  This is the only stateful component on the data
path; the risk engine itself never caches.
"""
import threading
import time
from typing import Callable, Dict, List, Tuple

from loguru import logger

from src.riskengine.core.errors import RiskEngineError
from src.riskengine.data.base import ReturnSeriesProvider
from src.riskengine.data.schemas import ReturnSeries

ONE_DAY_SECONDS = 24 * 60 * 60


class CachedReturnsProvider(ReturnSeriesProvider):
    """Read-through cache keyed by ``{ticker}_{market}``."""

    def __init__(
        self,
        provider: ReturnSeriesProvider,
        ttl_seconds: float = ONE_DAY_SECONDS,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            provider: The underlying source queried on a miss.
            ttl_seconds: How long a fetched series stays fresh.
            max_entries: Cache size at which all entries are dropped.
            clock: Time source, injectable for tests.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[ReturnSeries, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(ticker: str, market: str) -> str:
        return f"{ticker.strip().upper()}_{market.upper()}"

    def __len__(self) -> int:
        return len(self._entries)

    def fetch_returns(self, ticker: str, market: str = "US") -> ReturnSeries:
        key = self._key(ticker, market)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and entry[1] > now:
            logger.debug(f"Cache hit for {key}")
            return entry[0]

        logger.info(f"Cache miss for {key}, fetching from {type(self.provider).__name__}")
        series = self.provider.fetch_returns(ticker, market)
        self._store(key, series)
        return series

    def _store(self, key: str, series: ReturnSeries) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                logger.warning(f"Cache limit ({self.max_entries}) reached, clearing")
                self._entries.clear()
            self._entries[key] = (series, self._clock() + self.ttl_seconds)

    def stale_keys(self) -> List[str]:
        """Keys whose entries have passed their expiry time."""
        now = self._clock()
        with self._lock:
            return [k for k, (_, expires) in self._entries.items() if expires <= now]

    def refresh_stale(self) -> int:
        """Re-fetch every expired entry.

        Per-ticker failures are logged and the stale entry is kept, so one
        unavailable instrument does not block the rest of the refresh.

        Returns:
            Number of entries refreshed successfully.
        """
        stale = self.stale_keys()
        logger.info(f"Refreshing {len(stale)} stale records")

        refreshed = 0
        for key in stale:
            with self._lock:
                entry = self._entries.get(key)
            if entry is None:
                continue
            cached = entry[0]
            try:
                series = self.provider.fetch_returns(cached.ticker, cached.market)
            except RiskEngineError as e:
                logger.warning(f"Failed to refresh {cached.ticker}: {e}")
                continue
            self._store(key, series)
            refreshed += 1
            logger.info(f"Refreshed data for {cached.ticker}")

        return refreshed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
