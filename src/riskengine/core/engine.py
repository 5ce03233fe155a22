"""
Portfolio risk analytics engine.

Runs the full pipeline for one weighted basket of instruments:
  1. Validate the request (weights, lengths, non-empty series).
  2. Align every return series on the dates they all share.
  3. Estimate the sample covariance and Pearson correlation matrices.
  4. Derive portfolio and per-asset risk metrics.

The engine is a pure computation over in-memory data: it performs no
I/O, keeps no state between calls and is safe to share across threads.
Invalid input and insufficient history abort the run; numerical
degeneracies are recovered per metric and reported as warnings on the
returned ``RiskMetricsResult``.
"""
from typing import Mapping, Optional, Sequence

import numpy as np
from loguru import logger

from src.riskengine.core.alignment import ReturnMapping, align_returns
from src.riskengine.core.breakdown import risk_breakdown
from src.riskengine.core.covariance import correlation_matrix, sample_covariance
from src.riskengine.core.errors import InvalidInputError
from src.riskengine.core.metrics import RiskMetricsCalculator, format_matrix
from src.riskengine.core.types import (
    MetricWarning,
    RiskConfig,
    RiskMetricsResult,
    validate_weights,
)


class RiskAnalyticsEngine:
    """End-to-end risk pipeline: alignment → covariance → metrics."""

    def __init__(self, config: RiskConfig = RiskConfig()):
        """
        Args:
            config: Risk-free rate, annualization factor, VaR z-score and
                    minimum history length.
        """
        self.config = config
        self.calculator = RiskMetricsCalculator(config)

    def compute(
        self,
        instrument_returns: Mapping[str, ReturnMapping],
        weights: Sequence[float],
        benchmark_returns: Optional[ReturnMapping] = None,
        risk_free_rate: Optional[float] = None,
        include_breakdown: bool = True,
    ) -> RiskMetricsResult:
        """Compute the complete risk profile of a weighted portfolio.

        Args:
            instrument_returns: Mapping ticker → (date → daily return).  The
                mapping's order defines the ticker order of the result and
                must match the order of ``weights``.
            weights: Portfolio weights in (0, 1] summing to 1 (± 0.01).
            benchmark_returns: Optional benchmark date → return mapping used
                for beta.
            risk_free_rate: Annualized risk-free rate; overrides the config.
            include_breakdown: Attach the per-asset volatility decomposition.

        Returns:
            A frozen ``RiskMetricsResult``.

        Raises:
            InvalidInputError: Malformed tickers, weights or series.
            InsufficientDataError: Fewer common dates than
                ``config.min_common_dates``.
        """
        if not instrument_returns:
            raise InvalidInputError("Tickers list cannot be empty")

        tickers = list(instrument_returns.keys())
        w = np.asarray(validate_weights(weights, len(tickers)), dtype=float)

        rf = self.config.risk_free_rate if risk_free_rate is None else float(risk_free_rate)
        if not np.isfinite(rf):
            raise InvalidInputError(f"Risk-free rate must be finite, got {risk_free_rate}")

        logger.info(f"Calculating risk metrics for {len(tickers)} instruments: {tickers}")

        aligned = align_returns(
            instrument_returns,
            benchmark_returns=benchmark_returns,
            min_common_dates=self.config.min_common_dates,
        )
        logger.info(
            f"Using {aligned.observations} common dates for {aligned.n_assets} instruments"
        )

        cov = sample_covariance(aligned.matrix)
        corr, degenerate = correlation_matrix(cov, tickers)

        warnings = [
            MetricWarning(
                metric=f"correlation[{ticker}]",
                reason="zero variance, identity fallback applied",
                fallback=0.0,
            )
            for ticker in degenerate
        ]

        metrics = self.calculator.calculate(
            tickers,
            aligned.matrix,
            w,
            cov,
            benchmark=aligned.benchmark,
            risk_free_rate=rf,
        )
        warnings.extend(metrics.pop("warnings"))

        breakdown = None
        if include_breakdown:
            breakdown = risk_breakdown(w, cov, tickers, self.config.trading_days)

        corr_rows = tuple(tuple(float(v) for v in row) for row in corr)

        result = RiskMetricsResult(
            tickers=tuple(tickers),
            weights=tuple(float(x) for x in w),
            correlation_matrix=corr_rows,
            correlation_matrix_as_string=format_matrix(corr_rows),
            observations=aligned.observations,
            start_date=str(aligned.dates[0]),
            end_date=str(aligned.dates[-1]),
            risk_breakdown=breakdown,
            warnings=tuple(warnings),
            **metrics,
        )

        logger.info(f"  Volatility: {result.volatility:.2%}")
        logger.info(f"  Expected Return: {result.expected_return:.2%}")
        logger.info(f"  Sharpe Ratio: {result.sharpe_ratio:.2f}")
        logger.info(f"  Sortino Ratio: {result.sortino_ratio:.2f}")
        logger.info(f"  Beta: {result.beta:.2f}")
        logger.info(f"  VaR (95%): {result.value_at_risk_95:.2%}")
        if warnings:
            logger.warning(f"{len(warnings)} metric(s) recovered with fallback values")

        logger.success("Risk metrics calculated.")
        return result


def compute_risk_metrics(
    instrument_returns: Mapping[str, ReturnMapping],
    weights: Sequence[float],
    benchmark_returns: Optional[ReturnMapping] = None,
    risk_free_rate: Optional[float] = None,
    config: Optional[RiskConfig] = None,
) -> RiskMetricsResult:
    """Functional entry point; see ``RiskAnalyticsEngine.compute``."""
    engine = RiskAnalyticsEngine(config or RiskConfig())
    return engine.compute(
        instrument_returns,
        weights,
        benchmark_returns=benchmark_returns,
        risk_free_rate=risk_free_rate,
    )
