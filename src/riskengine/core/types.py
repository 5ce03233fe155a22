"""
Data contracts for risk analysis requests, configuration and results.

Pydantic models defined here enforce the request invariants (weights in
(0, 1] summing to 1 within tolerance, well-formed tickers) at the boundary,
so malformed input is rejected before any matrix is built.  The result
model is frozen: it is a snapshot of one analysis and is never mutated
after construction.
"""
import math
import os
import re
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.riskengine.core.errors import InvalidInputError

WEIGHT_SUM_TOLERANCE = 0.01
MAX_TICKERS = 20
TICKER_PATTERN = re.compile(r"^[A-Z0-9.]{1,10}$")

AnalysisType = Literal["QUICK", "STANDARD", "COMPREHENSIVE"]


def validate_weights(weights: Sequence[float], n_assets: int) -> List[float]:
    """Check the weight vector against the portfolio invariants.

    Args:
        weights: One weight per instrument, index-aligned to the tickers.
        n_assets: Number of instruments the weights must cover.

    Returns:
        The weights as a list of floats.

    Raises:
        InvalidInputError: On length mismatch, an entry outside (0, 1] or a
            sum further than ``WEIGHT_SUM_TOLERANCE`` from 1.0.
    """
    if weights is None or len(weights) == 0:
        raise InvalidInputError("Weights array cannot be empty")

    if len(weights) != n_assets:
        raise InvalidInputError(
            f"Number of weights must match number of tickers. "
            f"Got {len(weights)} weights for {n_assets} tickers"
        )

    values = [float(w) for w in weights]
    for w in values:
        if not math.isfinite(w) or w <= 0 or w > 1.0:
            raise InvalidInputError(
                f"Each weight must be between 0 (exclusive) and 1.0 (inclusive). Got: {w}"
            )

    total = sum(values)
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise InvalidInputError(
            f"Weights must sum to 1.0 (±{WEIGHT_SUM_TOLERANCE} tolerance). Got sum: {total:.4f}"
        )

    return values


class RiskConfig(BaseModel):
    """Parameters shared across risk analyses."""

    model_config = ConfigDict(frozen=True)

    risk_free_rate: float = Field(
        0.02,
        description="Annualized risk-free rate used by Sharpe and Sortino",
    )
    trading_days: int = Field(
        252, gt=0,
        description="Trading days per year used for annualization",
    )
    var_z_score: float = Field(
        1.645, gt=0,
        description="One-tailed standard normal quantile for parametric VaR (95 %)",
    )
    min_common_dates: int = Field(
        10, ge=2,
        description="Minimum synchronized observations required for covariance",
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RiskConfig":
        """Build a config from ``RISK_FREE_RATE``, ``TRADING_DAYS``,
        ``VAR_Z_SCORE`` and ``MIN_COMMON_DATES``; unset variables keep
        their defaults.
        """
        env = os.environ if environ is None else environ
        mapping = {
            "risk_free_rate": "RISK_FREE_RATE",
            "trading_days": "TRADING_DAYS",
            "var_z_score": "VAR_Z_SCORE",
            "min_common_dates": "MIN_COMMON_DATES",
        }
        values = {
            field: env[var] for field, var in mapping.items()
            if env.get(var) not in (None, "")
        }
        try:
            return cls(**values)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid risk configuration: {e}") from e

    @property
    def annualization_sqrt(self) -> float:
        return math.sqrt(self.trading_days)


class MetricWarning(BaseModel):
    """A degenerate metric that was recovered with a neutral value."""

    model_config = ConfigDict(frozen=True)

    metric: str
    reason: str
    fallback: float


class AssetRiskContribution(BaseModel):
    """One instrument's share of total portfolio volatility."""

    model_config = ConfigDict(frozen=True)

    weight: float
    marginal_contribution: float
    component_contribution: float
    percent_contribution: float


class RiskBreakdown(BaseModel):
    """Per-asset decomposition of annualized portfolio volatility."""

    model_config = ConfigDict(frozen=True)

    contributions: Dict[str, AssetRiskContribution]
    diversification_ratio: float


class RiskMetricsResult(BaseModel):
    """Immutable snapshot of one portfolio risk analysis.

    All return and risk quantities are annualized.  ``value_at_risk_95`` is
    a parametric estimate that assumes normally distributed returns; it is
    an approximation of the 95 % loss quantile, not a worst-case bound.
    Correlations against a zero-variance instrument follow the identity
    fallback (1.0 on the diagonal, 0.0 elsewhere) and are listed in
    ``warnings``.
    """

    model_config = ConfigDict(frozen=True)

    tickers: Tuple[str, ...]
    weights: Tuple[float, ...]

    variance: float
    volatility: float
    expected_return: float

    sharpe_ratio: float
    sortino_ratio: float

    beta: float
    value_at_risk_95: float

    asset_volatilities: Dict[str, float]
    correlation_matrix: Tuple[Tuple[float, ...], ...]
    correlation_matrix_as_string: str

    observations: int
    start_date: str
    end_date: str

    risk_breakdown: Optional[RiskBreakdown] = None
    warnings: Tuple[MetricWarning, ...] = ()

    def to_dict(self) -> dict:
        """JSON-compatible representation (tuples become lists)."""
        return self.model_dump(mode="json")


class AnalysisRequest(BaseModel):
    """Validated request for a portfolio analysis.

    When ``weights`` is omitted every ticker receives an equal 1/N weight.
    """

    tickers: List[str] = Field(
        ..., min_length=1, max_length=MAX_TICKERS,
        description="Ticker symbols to analyze",
    )
    weights: Optional[List[float]] = Field(
        None,
        description="Portfolio weights, index-aligned to tickers",
    )
    benchmark: Optional[str] = Field(
        None,
        description="Benchmark ticker used for beta (e.g. SPY)",
    )
    market: str = Field("US", description="Market the tickers trade on")
    analysis_type: AnalysisType = "STANDARD"

    @field_validator("tickers")
    @classmethod
    def tickers_must_be_well_formed(cls, v: List[str]) -> List[str]:
        """Normalise to upper case and reject malformed or duplicate symbols."""
        cleaned = []
        for ticker in v:
            if ticker is None or not ticker.strip():
                raise ValueError("Ticker cannot be null or empty")
            symbol = ticker.strip().upper()
            if not TICKER_PATTERN.match(symbol):
                raise ValueError(
                    f"Invalid ticker format: {ticker}. Expected 1-10 alphanumeric "
                    "characters (may include dot for market suffix)"
                )
            cleaned.append(symbol)

        if len(set(cleaned)) != len(cleaned):
            raise ValueError(f"Duplicate tickers in request: {cleaned}")
        return cleaned

    @field_validator("benchmark")
    @classmethod
    def benchmark_must_be_well_formed(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        symbol = v.strip().upper()
        if not TICKER_PATTERN.match(symbol):
            raise ValueError(f"Invalid benchmark ticker format: {v}")
        return symbol

    @model_validator(mode="after")
    def weights_must_match_tickers(self) -> "AnalysisRequest":
        """Default to equal weights, otherwise enforce the weight invariants."""
        if not self.weights:
            n = len(self.tickers)
            self.weights = [1.0 / n] * n
        else:
            self.weights = validate_weights(self.weights, len(self.tickers))
        return self
