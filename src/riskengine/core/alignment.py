"""
Temporal alignment of heterogeneous return series.

Instruments trade on different calendars (holidays, listings, halts), so
their return series rarely cover identical dates.  Aligning by position,
e.g. keeping the last K observations of every series, silently pairs
returns from different days and corrupts the covariance estimate.  The
aligner therefore keeps only the dates present in *every* series
(intersection) and fails loudly when too few remain.
"""
from datetime import date
from typing import Any, List, Mapping, Optional, Union

import numpy as np
import pandas as pd
from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.riskengine.core.errors import InsufficientDataError, InvalidInputError

DateKey = Union[str, date]
ReturnMapping = Mapping[DateKey, float]


class AlignedReturns(BaseModel):
    """Synchronized T × N return matrix plus the optional benchmark vector."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    tickers: List[str]
    dates: List[Any]
    matrix: np.ndarray
    benchmark: Optional[np.ndarray] = None

    @property
    def observations(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_assets(self) -> int:
        return self.matrix.shape[1]


def _to_series(name: str, returns: Optional[ReturnMapping]) -> pd.Series:
    """Convert one date → return mapping into a float Series.

    Missing and non-finite returns are dropped so that a date only counts
    as present when it carries a usable observation.
    """
    if returns is None or len(returns) == 0:
        raise InvalidInputError(f"Return series for {name} is empty")

    try:
        series = pd.Series(dict(returns), dtype=float, name=name)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Return series for {name} has non-numeric values") from e
    series = series.replace([np.inf, -np.inf], np.nan)

    n_bad = int(series.isna().sum())
    if n_bad:
        logger.warning(f"{name}: dropping {n_bad} missing/non-finite returns")
        series = series.dropna()

    return series


def align_returns(
    instrument_returns: Mapping[str, ReturnMapping],
    benchmark_returns: Optional[ReturnMapping] = None,
    min_common_dates: int = 10,
) -> AlignedReturns:
    """Intersect the trading dates of every series and build the return matrix.

    Args:
        instrument_returns: Mapping ticker → (date → daily return).  Column
            order of the output follows the mapping's iteration order.
        benchmark_returns: Optional benchmark date → return mapping.  When
            supplied, its dates take part in the intersection as well.
        min_common_dates: Minimum number of synchronized dates required.

    Returns:
        An ``AlignedReturns`` whose rows are the common dates in ascending
        order.

    Raises:
        InvalidInputError: If no instruments are given, a series is empty, or
            the date keys cannot be ordered against each other.
        InsufficientDataError: If fewer than ``min_common_dates`` dates are
            shared by every series.
    """
    if not instrument_returns:
        raise InvalidInputError("Tickers list cannot be empty")

    tickers = list(instrument_returns.keys())
    # Columns are addressed by position; the benchmark, when present, is last.
    columns: List[pd.Series] = [
        _to_series(ticker, instrument_returns[ticker]) for ticker in tickers
    ]
    if benchmark_returns is not None:
        columns.append(_to_series("benchmark", benchmark_returns))

    # Inner join keeps only dates every series has an observation for.
    try:
        frame = pd.concat(
            columns, axis=1, join="inner", keys=list(range(len(columns)))
        ).sort_index()
    except TypeError as e:
        raise InvalidInputError(
            "Return series use date keys of incompatible types"
        ) from e

    found = len(frame)
    if found < min_common_dates:
        logger.error(
            f"Only {found} common dates across {len(columns)} series "
            f"(need {min_common_dates})"
        )
        raise InsufficientDataError(found=found, required=min_common_dates)

    longest = max(len(s) for s in columns)
    if found < longest:
        logger.info(
            f"Alignment kept {found} common dates "
            f"(longest series had {longest})"
        )

    benchmark = None
    if benchmark_returns is not None:
        benchmark = frame.iloc[:, len(tickers)].to_numpy(dtype=float)

    logger.debug(f"Aligned {len(tickers)} instruments over {found} dates")

    return AlignedReturns(
        tickers=tickers,
        dates=list(frame.index),
        matrix=frame.iloc[:, : len(tickers)].to_numpy(dtype=float),
        benchmark=benchmark,
    )
