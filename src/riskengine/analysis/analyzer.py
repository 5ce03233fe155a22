"""
Portfolio analysis service.

Resolves every ticker of an ``AnalysisRequest`` through a return-series
provider, hands the in-memory series to the risk engine and wraps the
outcome in an ``AnalysisReport``.  All I/O happens here, before the
engine is invoked; the engine itself stays a pure computation.
"""
from datetime import datetime, timezone
from typing import Dict, Union

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.riskengine.core.engine import RiskAnalyticsEngine
from src.riskengine.core.errors import DataUnavailableError, InvalidInputError, RiskEngineError
from src.riskengine.core.types import AnalysisRequest, AnalysisType, RiskConfig, RiskMetricsResult
from src.riskengine.data.base import ReturnSeriesProvider
from src.riskengine.data.schemas import ReturnSeries


class AnalysisReport(BaseModel):
    """Outcome of one portfolio analysis."""

    request: AnalysisRequest
    analysis_type: AnalysisType
    risk_metrics: RiskMetricsResult
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PortfolioAnalyzer:
    """Fetches return series and runs the risk engine for a request."""

    def __init__(
        self,
        provider: ReturnSeriesProvider,
        config: RiskConfig = RiskConfig(),
    ):
        """
        Args:
            provider: Source of daily return series (possibly cached).
            config: Engine configuration.
        """
        self.provider = provider
        self.config = config
        self.engine = RiskAnalyticsEngine(config)

    @staticmethod
    def build_request(payload: Union[AnalysisRequest, dict]) -> AnalysisRequest:
        """Coerce a raw payload into a validated request.

        Raises:
            InvalidInputError: If the payload violates the request contract.
        """
        if isinstance(payload, AnalysisRequest):
            return payload
        try:
            return AnalysisRequest(**payload)
        except ValidationError as e:
            logger.error(f"Invalid analysis request: {e}")
            raise InvalidInputError(str(e)) from e

    def analyze(self, payload: Union[AnalysisRequest, dict]) -> AnalysisReport:
        """Run a full analysis.

        Args:
            payload: An ``AnalysisRequest`` or a dict matching its schema.

        Returns:
            An ``AnalysisReport``.  ``QUICK`` analyses skip the per-asset
            risk breakdown.

        Raises:
            InvalidInputError: Malformed request.
            DataUnavailableError: A ticker (or the benchmark) could not be
                fetched.
            InsufficientDataError: Too few common trading dates.
        """
        request = self.build_request(payload)
        logger.info(
            f"Portfolio analysis started for {request.tickers} "
            f"({request.analysis_type})"
        )

        instrument_returns: Dict[str, Dict[str, float]] = {}
        for ticker in request.tickers:
            instrument_returns[ticker] = self._fetch(ticker, request.market).returns

        benchmark_returns = None
        if request.benchmark:
            benchmark_returns = self._fetch(request.benchmark, request.market).returns

        metrics = self.engine.compute(
            instrument_returns,
            request.weights,
            benchmark_returns=benchmark_returns,
            include_breakdown=request.analysis_type != "QUICK",
        )

        logger.success("Portfolio analysis completed successfully")
        return AnalysisReport(
            request=request,
            analysis_type=request.analysis_type,
            risk_metrics=metrics,
        )

    def _fetch(self, ticker: str, market: str) -> ReturnSeries:
        """Fetch one series, attributing unexpected failures to the provider."""
        try:
            series = self.provider.fetch_returns(ticker, market)
        except RiskEngineError:
            raise
        except Exception as e:
            logger.error(f"Provider failed for {ticker}: {e}")
            raise DataUnavailableError(ticker, str(e)) from e

        self.provider.validate_series(series, self.config.min_common_dates)
        return series
