"""
Pure NumPy covariance and correlation estimators.

Both functions operate on an aligned T × N return matrix (rows = dates,
columns = instruments) and use the unbiased sample convention (divisor
T − 1), shared by portfolio variance, asset volatility and beta.

Zero-variance policy: a constant column has an undefined correlation
(0 / 0) with every other column.  Such columns receive the identity
fallback (1.0 with themselves, 0.0 with everything else) and are
reported back to the caller instead of raising.
"""
from typing import List, Tuple

import numpy as np
from loguru import logger

from src.riskengine.core.errors import InvalidInputError

# Variances at or below this are treated as exactly zero.
VARIANCE_EPSILON = 1e-18


def sample_covariance(returns: np.ndarray) -> np.ndarray:
    """Unbiased N × N sample covariance of a T × N return matrix.

    Formula: ``Cov = (X − mean(X))ᵀ (X − mean(X)) / (T − 1)``

    Raises:
        InvalidInputError: If the matrix is not two-dimensional or has
            fewer than two observations.
    """
    X = np.asarray(returns, dtype=float)
    if X.ndim != 2:
        raise InvalidInputError(f"Return matrix must be 2-D, got shape {X.shape}")

    T = X.shape[0]
    if T < 2:
        raise InvalidInputError("Sample covariance needs at least two observations")

    centered = X - X.mean(axis=0)
    cov = centered.T @ centered / (T - 1)

    # Remove floating-point asymmetry introduced by the matrix product.
    return (cov + cov.T) / 2.0


def correlation_matrix(
    cov: np.ndarray,
    tickers: List[str],
) -> Tuple[np.ndarray, List[str]]:
    """Pearson correlation matrix derived from a covariance matrix.

    Args:
        cov: N × N sample covariance matrix.
        tickers: Instrument identifiers, index-aligned to ``cov``.

    Returns:
        A tuple of (correlation, degenerate):
          - ``correlation``: N × N matrix with an exact unit diagonal and
            entries clipped into [-1, 1].
          - ``degenerate``: tickers whose variance was zero or non-finite
            and that therefore received the identity fallback.
    """
    n = cov.shape[0]
    if n == 1:
        # A single instrument is perfectly correlated with itself.
        return np.array([[1.0]]), []

    variances = np.diag(cov).copy()
    valid = np.isfinite(variances) & (variances > VARIANCE_EPSILON)
    degenerate = [t for t, ok in zip(tickers, valid) if not ok]

    std = np.sqrt(np.where(valid, variances, 1.0))
    with np.errstate(divide="ignore", invalid="ignore"):
        corr = cov / np.outer(std, std)

    corr = np.clip(corr, -1.0, 1.0)
    corr[~valid, :] = 0.0
    corr[:, ~valid] = 0.0
    np.fill_diagonal(corr, 1.0)

    # Non-finite covariances between otherwise valid columns.
    bad = ~np.isfinite(corr)
    if bad.any():
        logger.warning(f"Replacing {int(bad.sum())} non-finite correlations with 0.0")
        corr[bad] = 0.0

    if degenerate:
        logger.warning(
            f"Zero-variance instruments {degenerate}: "
            "using identity correlation fallback"
        )

    return corr, degenerate
