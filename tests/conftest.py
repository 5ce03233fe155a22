"""Shared pytest fixtures for the risk engine test suite.

All fixtures are synthetic and seeded; nothing touches the network.
"""
import numpy as np
import pandas as pd
import pytest


def make_returns(n=60, mean=0.0005, std=0.01, seed=42, start="2024-01-02"):
    """ISO-date → return mapping drawn from a seeded normal distribution."""
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range(start=start, periods=n)
    values = rng.normal(mean, std, n)
    return {d.date().isoformat(): float(v) for d, v in zip(dates, values)}


@pytest.fixture
def example_returns():
    """The ten-day series used in the end-to-end example."""
    values = [0.01, 0.02, -0.01, 0.015, 0.0, 0.01, 0.02, -0.02, 0.01, 0.0]
    return {f"d{i + 1}": v for i, v in enumerate(values)}


@pytest.fixture
def three_asset_returns():
    """Three independent seeded series over the same 60 business days."""
    return {
        "AAPL": make_returns(seed=1),
        "MSFT": make_returns(seed=2, std=0.015),
        "TLT": make_returns(seed=3, mean=0.0001, std=0.006),
    }


@pytest.fixture
def benchmark_returns():
    return make_returns(seed=99, std=0.008)


@pytest.fixture
def returns_factory():
    """Expose ``make_returns`` to tests that need custom series."""
    return make_returns
