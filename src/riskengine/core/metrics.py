"""
Portfolio risk and performance metrics.

Every quantity is derived from the aligned daily return matrix and its
sample covariance, then annualized with the configured trading-day
factor: means and variances scale by ``trading_days``, standard
deviations by ``sqrt(trading_days)``.

Degenerate inputs never abort the calculation.  Each metric has a
documented neutral value that replaces a zero denominator or a
non-finite result, and every substitution is logged and recorded as a
``MetricWarning`` on the result:

  - Sharpe / Sortino: 0.0 when the risk denominator is zero.
  - Beta: 1.0 when the benchmark is missing or has degenerate variance.
  - Any other non-finite scalar: 0.0.
"""
import math
from typing import Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from src.riskengine.core.types import MetricWarning, RiskConfig

NEUTRAL_VALUE = 0.0
NEUTRAL_BETA = 1.0

# Benchmark variances at or below this are treated as zero.
BENCHMARK_VARIANCE_EPSILON = 1e-18

# Annualized risk below this is floating-point noise from a constant series.
ZERO_RISK_TOLERANCE = 1e-12

# Portfolio variance below this fraction of the undiversified variance is
# cancellation noise.
RELATIVE_VARIANCE_TOLERANCE = 1e-12


def format_matrix(matrix: Sequence[Sequence[float]]) -> str:
    """Render a matrix as four-decimal fixed point, one row per line."""
    if matrix is None or len(matrix) == 0:
        return "No correlation data"
    return "\n".join(" ".join(f"{float(v):.4f}" for v in row) for row in matrix)


class RiskMetricsCalculator:
    """Derives portfolio-level and per-asset statistics for one analysis.

    The calculator holds only its configuration; warnings are collected
    per call, so a single instance can be shared between threads.
    """

    def __init__(self, config: RiskConfig = RiskConfig()):
        self.config = config

    # ------------------------------------------------------------------
    #  Formulas
    # ------------------------------------------------------------------

    @staticmethod
    def portfolio_returns(matrix: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """Daily weighted portfolio returns, ``r_p = X · w``."""
        return matrix @ weights

    @staticmethod
    def expected_return(matrix: np.ndarray, weights: np.ndarray, trading_days: int) -> float:
        """Weighted mean daily return, annualized."""
        mean_returns = matrix.mean(axis=0)
        return float(weights @ mean_returns) * trading_days

    @staticmethod
    def portfolio_variance(cov: np.ndarray, weights: np.ndarray, trading_days: int) -> float:
        """Quadratic form ``wᵀ Σ w`` on the daily covariance, annualized.

        Offsetting positions (e.g. a perfect hedge) leave rounding residue
        in the quadratic form; anything below ``RELATIVE_VARIANCE_TOLERANCE``
        of the undiversified variance ``(Σ |w_i| σ_i)²`` is returned as 0.0.
        """
        variance = float(weights @ cov @ weights)
        stds = np.sqrt(np.clip(np.diag(cov), 0.0, None))
        undiversified = float(np.abs(weights) @ stds) ** 2
        if math.isfinite(variance) and variance <= RELATIVE_VARIANCE_TOLERANCE * undiversified:
            return 0.0
        return variance * trading_days

    @staticmethod
    def downside_deviation(portfolio_returns: np.ndarray, trading_days: int) -> float:
        """Annualized downside deviation of the portfolio.

        Only negative days contribute to the numerator, but the mean is
        taken over *all* observations, not just the negative ones.
        """
        downside = np.minimum(portfolio_returns, 0.0)
        return float(np.sqrt(np.mean(downside ** 2)) * np.sqrt(trading_days))

    @staticmethod
    def beta(portfolio_returns: np.ndarray, benchmark_returns: np.ndarray) -> float:
        """``Cov(r_p, r_b) / Var(r_b)`` with the sample (T − 1) convention.

        Returns NaN when the benchmark variance is zero or non-finite; the
        caller decides on the fallback.
        """
        var_b = float(np.var(benchmark_returns, ddof=1))
        if not math.isfinite(var_b) or var_b <= BENCHMARK_VARIANCE_EPSILON:
            return math.nan
        cov_pb = float(np.cov(portfolio_returns, benchmark_returns, ddof=1)[0, 1])
        return cov_pb / var_b

    @staticmethod
    def parametric_var(expected_return: float, volatility: float, z_score: float) -> float:
        """Parametric Value-at-Risk, ``|μ − z·σ|``.

        Assumes normally distributed returns; an estimate of the loss
        quantile, not a bound on the worst case.
        """
        return abs(expected_return - z_score * volatility)

    # ------------------------------------------------------------------
    #  Guards
    # ------------------------------------------------------------------

    @staticmethod
    def _checked(
        metric: str,
        value: float,
        warnings: List[MetricWarning],
        fallback: float = NEUTRAL_VALUE,
    ) -> float:
        """Return *value* if finite, otherwise *fallback* (recorded)."""
        if value is not None and math.isfinite(value):
            return float(value)
        logger.warning(f"Data quality: {metric} is {value}, substituting {fallback}")
        warnings.append(
            MetricWarning(metric=metric, reason=f"non-finite value ({value})", fallback=fallback)
        )
        return fallback

    @staticmethod
    def _ratio(
        metric: str,
        excess_return: float,
        risk: float,
        warnings: List[MetricWarning],
    ) -> float:
        """Risk-adjusted ratio with the zero-denominator guard."""
        if abs(risk) < ZERO_RISK_TOLERANCE:
            logger.warning(f"{metric}: zero risk denominator, returning {NEUTRAL_VALUE}")
            warnings.append(
                MetricWarning(metric=metric, reason="zero risk denominator", fallback=NEUTRAL_VALUE)
            )
            return NEUTRAL_VALUE
        return excess_return / risk

    # ------------------------------------------------------------------
    #  Main entry point
    # ------------------------------------------------------------------

    def calculate(
        self,
        tickers: List[str],
        matrix: np.ndarray,
        weights: np.ndarray,
        cov: np.ndarray,
        benchmark: Optional[np.ndarray] = None,
        risk_free_rate: Optional[float] = None,
    ) -> Dict:
        """Compute every scalar metric plus per-asset volatilities.

        Args:
            tickers: Instrument identifiers, index-aligned to the columns.
            matrix: Aligned T × N daily return matrix.
            weights: Portfolio weight vector (length N).
            cov: Daily N × N sample covariance matrix.
            benchmark: Optional length-T benchmark returns on the same dates.
            risk_free_rate: Annualized risk-free rate; defaults to the config.

        Returns:
            Dict with the scalar metrics, ``asset_volatilities`` and
            ``warnings`` (list of ``MetricWarning``).
        """
        days = self.config.trading_days
        rf = self.config.risk_free_rate if risk_free_rate is None else risk_free_rate
        warnings: List[MetricWarning] = []

        expected = self._checked(
            "expected_return", self.expected_return(matrix, weights, days), warnings
        )
        variance = self._checked(
            "variance", self.portfolio_variance(cov, weights, days), warnings
        )
        # Rounding can leave a tiny negative quadratic form on singular Σ.
        variance = max(variance, 0.0)
        volatility = self._checked("volatility", math.sqrt(variance), warnings)

        sharpe = self._checked(
            "sharpe_ratio", self._ratio("sharpe_ratio", expected - rf, volatility, warnings), warnings
        )

        port_returns = self.portfolio_returns(matrix, weights)
        downside = self._checked(
            "downside_deviation", self.downside_deviation(port_returns, days), warnings
        )
        sortino = self._checked(
            "sortino_ratio", self._ratio("sortino_ratio", expected - rf, downside, warnings), warnings
        )

        beta = self._portfolio_beta(tickers, port_returns, benchmark, warnings)

        var_95 = self._checked(
            "value_at_risk_95",
            self.parametric_var(expected, volatility, self.config.var_z_score),
            warnings,
        )

        asset_vols: Dict[str, float] = {}
        for i, ticker in enumerate(tickers):
            raw = math.sqrt(max(float(cov[i, i]), 0.0)) * self.config.annualization_sqrt
            asset_vols[ticker] = self._checked(f"asset_volatility[{ticker}]", raw, warnings)
            logger.debug(f"{ticker} volatility: {asset_vols[ticker]:.2%}")

        return {
            "variance": variance,
            "volatility": volatility,
            "expected_return": expected,
            "sharpe_ratio": sharpe,
            "sortino_ratio": sortino,
            "beta": beta,
            "value_at_risk_95": var_95,
            "asset_volatilities": asset_vols,
            "warnings": warnings,
        }

    def _portfolio_beta(
        self,
        tickers: List[str],
        port_returns: np.ndarray,
        benchmark: Optional[np.ndarray],
        warnings: List[MetricWarning],
    ) -> float:
        """Beta against the benchmark, or the neutral 1.0 when undefined."""
        if benchmark is None:
            if len(tickers) == 1:
                # A lone asset moves exactly with itself.
                return NEUTRAL_BETA
            logger.warning(f"No benchmark supplied, beta defaults to {NEUTRAL_BETA}")
            warnings.append(
                MetricWarning(metric="beta", reason="no benchmark supplied", fallback=NEUTRAL_BETA)
            )
            return NEUTRAL_BETA

        value = self.beta(port_returns, benchmark)
        if math.isnan(value):
            logger.warning(f"Benchmark variance is degenerate, beta defaults to {NEUTRAL_BETA}")
            warnings.append(
                MetricWarning(
                    metric="beta", reason="degenerate benchmark variance", fallback=NEUTRAL_BETA
                )
            )
            return NEUTRAL_BETA

        return self._checked("beta", value, warnings, fallback=NEUTRAL_BETA)
