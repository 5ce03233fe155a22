"""Tests for src.riskengine.core.covariance -- sample covariance and correlation."""
import numpy as np
import pytest

from src.riskengine.core.covariance import correlation_matrix, sample_covariance
from src.riskengine.core.errors import InvalidInputError


def _matrix(seed=7, t=50, n=3):
    rng = np.random.default_rng(seed)
    return rng.normal(0.0005, 0.01, size=(t, n))


class TestSampleCovariance:

    def test_matches_numpy_unbiased_estimator(self):
        X = _matrix()
        np.testing.assert_allclose(sample_covariance(X), np.cov(X, rowvar=False, ddof=1))

    def test_divides_by_t_minus_one(self):
        X = np.array([[1.0], [2.0], [3.0], [4.0]])
        # Deviations -1.5, -0.5, 0.5, 1.5 -> sum of squares 5.0, / 3.
        assert sample_covariance(X)[0, 0] == pytest.approx(5.0 / 3.0)

    def test_is_symmetric(self):
        cov = sample_covariance(_matrix(n=5))
        np.testing.assert_array_equal(cov, cov.T)

    def test_rejects_single_observation(self):
        with pytest.raises(InvalidInputError):
            sample_covariance(np.array([[0.01, 0.02]]))

    def test_rejects_one_dimensional_input(self):
        with pytest.raises(InvalidInputError):
            sample_covariance(np.array([0.01, 0.02, 0.03]))


class TestCorrelation:

    def test_single_asset_is_exactly_one(self):
        cov = sample_covariance(_matrix(n=1))
        corr, degenerate = correlation_matrix(cov, ["A"])
        assert corr.tolist() == [[1.0]]
        assert degenerate == []

    def test_matches_pearson(self):
        X = _matrix(n=4)
        corr, _ = correlation_matrix(sample_covariance(X), list("ABCD"))
        np.testing.assert_allclose(corr, np.corrcoef(X, rowvar=False), atol=1e-12)

    def test_identical_series_are_perfectly_correlated(self):
        x = _matrix(n=1)[:, 0]
        cov = sample_covariance(np.column_stack([x, x]))

        corr, _ = correlation_matrix(cov, ["A", "B"])

        assert corr[0, 1] == pytest.approx(1.0, abs=1e-9)
        assert cov[0, 0] == pytest.approx(cov[1, 1])

    def test_negated_series_are_perfectly_anticorrelated(self):
        x = _matrix(n=1)[:, 0]
        cov = sample_covariance(np.column_stack([x, -x]))

        corr, _ = correlation_matrix(cov, ["A", "B"])

        assert corr[0, 1] == pytest.approx(-1.0, abs=1e-9)
        assert corr[1, 0] == pytest.approx(-1.0, abs=1e-9)

    def test_zero_variance_column_gets_identity_fallback(self):
        X = _matrix(n=3)
        X[:, 1] = 0.01

        corr, degenerate = correlation_matrix(sample_covariance(X), ["A", "FLAT", "C"])

        assert degenerate == ["FLAT"]
        assert corr[1].tolist() == [0.0, 1.0, 0.0]
        assert corr[:, 1].tolist() == [0.0, 1.0, 0.0]
        assert np.isfinite(corr).all()
        # The healthy pair keeps its real correlation.
        assert corr[0, 2] == pytest.approx(np.corrcoef(X[:, 0], X[:, 2])[0, 1])

    def test_unit_diagonal_and_bounded_entries(self):
        corr, _ = correlation_matrix(sample_covariance(_matrix(n=6)), list("ABCDEF"))
        assert np.diag(corr).tolist() == [1.0] * 6
        assert (np.abs(corr) <= 1.0).all()
