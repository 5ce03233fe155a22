"""
Euler decomposition of portfolio volatility into per-asset contributions.

For weights ``w`` and covariance ``Σ``:

    marginal_i   = (Σ w)_i / σ_p
    component_i  = w_i × marginal_i          (Σ_i component_i = σ_p)
    percent_i    = component_i / σ_p          (Σ_i percent_i = 1)

All figures are annualized with the same factor as the headline metrics.
"""
from typing import List

import numpy as np
from loguru import logger

from src.riskengine.core.metrics import ZERO_RISK_TOLERANCE, RiskMetricsCalculator
from src.riskengine.core.types import AssetRiskContribution, RiskBreakdown


def risk_breakdown(
    weights: np.ndarray,
    cov: np.ndarray,
    tickers: List[str],
    trading_days: int = 252,
) -> RiskBreakdown:
    """Split annualized portfolio volatility across the instruments.

    Args:
        weights: Portfolio weight vector (length N).
        cov: Daily N × N sample covariance matrix.
        tickers: Instrument identifiers, index-aligned to ``weights``.
        trading_days: Annualization factor.

    Returns:
        A ``RiskBreakdown``.  When portfolio volatility is zero every
        contribution is 0.0 and the diversification ratio is 1.0.
    """
    annual_cov = cov * trading_days
    sigma_w = annual_cov @ weights
    variance = RiskMetricsCalculator.portfolio_variance(cov, weights, trading_days)
    port_vol = float(np.sqrt(max(variance, 0.0)))
    asset_vols = np.sqrt(np.clip(np.diag(annual_cov), 0.0, None))

    contributions = {}
    if np.isfinite(port_vol) and port_vol >= ZERO_RISK_TOLERANCE:
        marginal = sigma_w / port_vol
        component = weights * marginal
        percent = component / port_vol
        diversification = float(weights @ asset_vols) / port_vol
    else:
        logger.warning("Zero portfolio volatility: risk contributions set to 0.0")
        marginal = component = percent = np.zeros(len(tickers))
        diversification = 1.0

    for i, ticker in enumerate(tickers):
        contributions[ticker] = AssetRiskContribution(
            weight=float(weights[i]),
            marginal_contribution=_finite(marginal[i]),
            component_contribution=_finite(component[i]),
            percent_contribution=_finite(percent[i]),
        )

    return RiskBreakdown(
        contributions=contributions,
        diversification_ratio=_finite(diversification, default=1.0),
    )


def _finite(value: float, default: float = 0.0) -> float:
    value = float(value)
    return value if np.isfinite(value) else default
