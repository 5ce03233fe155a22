"""
Strict data contracts for return series.

The pydantic model defined here is the single shape every provider hands
to the analysis layer.  Risk metrics fail silently on bad data (a NaN
return poisons a whole covariance row), so validation is enforced at the
boundary, before anything reaches the engine.
"""
import math
from datetime import date
from typing import Dict, Literal

from pydantic import BaseModel, Field, field_validator


class ReturnSeries(BaseModel):
    """Daily returns of one instrument on one market, keyed by ISO date."""

    ticker: str = Field(..., description="Asset symbol (e.g. AAPL)")
    market: str = Field("US", description="Market the instrument trades on")
    return_type: Literal["log", "simple"] = Field(
        "log", description="Log returns ln(P_t / P_t-1) or simple P_t / P_t-1 - 1",
    )
    returns: Dict[str, float] = Field(
        ..., description="Trading date (YYYY-MM-DD) → daily fractional return",
    )

    @field_validator("returns", mode="before")
    @classmethod
    def normalise_date_keys(cls, v):
        """Accept ``date`` keys as well as ISO strings."""
        if isinstance(v, dict):
            return {
                (k.isoformat() if isinstance(k, date) else str(k)): val
                for k, val in v.items()
            }
        return v

    @field_validator("returns")
    @classmethod
    def returns_must_be_usable(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Reject empty series and non-finite observations."""
        if not v:
            raise ValueError("Return series must contain at least one observation")

        bad = [d for d, r in v.items() if not math.isfinite(r)]
        if bad:
            raise ValueError(f"Non-finite returns on {bad[:5]}")
        return v

    def __len__(self) -> int:
        return len(self.returns)
