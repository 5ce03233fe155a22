"""
Exception hierarchy for the risk analytics engine.

Only conditions that must abort an analysis are modelled as exceptions:
  - ``InvalidInputError`` — malformed request (caller-fixable).
  - ``InsufficientDataError`` — too few synchronized observations.
  - ``DataUnavailableError`` — the return-series provider failed.

Numerical degeneracy (zero variance, NaN intermediates) is never raised;
it is recovered per metric and reported as a ``MetricWarning`` on the
result instead.
"""
from typing import Optional


class RiskEngineError(Exception):
    """Base class for every abort-class error raised by the engine."""


class InvalidInputError(RiskEngineError, ValueError):
    """Request rejected before any computation took place."""


class InsufficientDataError(RiskEngineError):
    """Fewer observations than the configured minimum."""

    def __init__(self, found: int, required: int, ticker: Optional[str] = None):
        self.found = found
        self.required = required
        self.ticker = ticker

        scope = f" for {ticker}" if ticker else ""
        super().__init__(
            f"Insufficient synchronized data{scope}: "
            f"found={found}, required={required}"
        )


class DataUnavailableError(RiskEngineError):
    """The external return-series provider could not supply a series."""

    def __init__(self, ticker: str, reason: str = "no data returned"):
        self.ticker = ticker
        self.reason = reason
        super().__init__(f"Data unavailable for {ticker}: {reason}")
