"""
Unit Tests for the Quantile Estimator
=====================================
"""

import numpy as np
import pytest

from predint import DegenerateCalibration, InvalidArgument
from predint.conformal import (
    ResidualSample,
    conformal_quantile,
    conformal_rank,
    empirical_quantile,
    minimum_calibration_size,
    order_statistic
)


# ============================================================================
# Test 1: Empirical quantiles (type 7)
# ============================================================================

def test_median_of_even_sample_interpolates():
    """Type-7 median of 1..4 is halfway between 2 and 3."""
    assert empirical_quantile(np.array([4.0, 1.0, 3.0, 2.0]), 0.5) == pytest.approx(2.5)


def test_type7_interpolation_position():
    """h = (n-1)p + 1 = 3.25 for n=10, p=0.25."""
    sample = np.arange(1, 11, dtype=float)
    assert empirical_quantile(sample, 0.25) == pytest.approx(3.25)


def test_extreme_levels_clamp_to_sample_extremes():
    """p=0 and p=1 return the minimum and maximum."""
    sample = np.array([3.0, -2.0, 7.5, 0.1])
    assert empirical_quantile(sample, 0.0) == -2.0
    assert empirical_quantile(sample, 1.0) == 7.5


def test_vectorized_levels():
    """An array of levels returns an array of quantiles."""
    q = empirical_quantile(np.arange(5, dtype=float), np.array([0.0, 0.5, 1.0]))
    np.testing.assert_allclose(q, [0.0, 2.0, 4.0])


def test_alternative_method():
    """'higher' picks an order statistic instead of interpolating."""
    assert empirical_quantile(np.arange(1, 5, dtype=float), 0.5, method='higher') == 3.0


@pytest.mark.parametrize("p", [-0.1, 1.5, np.nan])
def test_invalid_level_raises(p):
    with pytest.raises(InvalidArgument):
        empirical_quantile(np.array([1.0, 2.0]), p)


def test_empty_sample_raises():
    with pytest.raises(InvalidArgument):
        empirical_quantile(np.array([]), 0.5)


def test_non_finite_sample_raises():
    with pytest.raises(InvalidArgument):
        empirical_quantile(np.array([1.0, np.inf]), 0.5)


def test_unknown_method_raises():
    with pytest.raises(InvalidArgument):
        empirical_quantile(np.array([1.0, 2.0]), 0.5, method='type9')


def test_invalid_argument_is_value_error():
    """Callers catching ValueError still see quantile errors."""
    with pytest.raises(ValueError):
        empirical_quantile(np.array([]), 0.5)


# ============================================================================
# Test 2: Order statistics and conformal ranks
# ============================================================================

def test_order_statistic():
    assert order_statistic(np.array([5.0, 1.0, 3.0]), 2) == 3.0


def test_order_statistic_out_of_range():
    with pytest.raises(InvalidArgument):
        order_statistic(np.array([5.0, 1.0, 3.0]), 4)


@pytest.mark.parametrize("n, alpha, expected", [
    (19, 0.05, 19),
    (9, 0.10, 9),
    (1, 0.05, 2),
    (99, 0.10, 90),
])
def test_conformal_rank(n, alpha, expected):
    assert conformal_rank(n, alpha) == expected


def test_minimum_calibration_size():
    assert minimum_calibration_size(0.10) == 9
    assert minimum_calibration_size(0.05) == 19


def test_conformal_quantile_at_least_kth_order_statistic():
    """Finite-sample corrected quantile never falls below the k-th score."""
    rng = np.random.default_rng(0)
    for n in (10, 37, 250):
        scores = rng.normal(size=n)
        k = conformal_rank(n, 0.1)
        assert conformal_quantile(scores, 0.1) >= np.sort(scores)[k - 1]


def test_conformal_quantile_uses_maximum_when_rank_equals_n():
    scores = np.arange(1, 20, dtype=float)
    assert conformal_quantile(scores, 0.05) == pytest.approx(19.0)


def test_conformal_quantile_single_score_is_degenerate():
    with pytest.raises(DegenerateCalibration):
        conformal_quantile(np.array([0.3]), 0.1)


def test_conformal_quantile_invalid_alpha():
    with pytest.raises(InvalidArgument):
        conformal_quantile(np.array([0.3, 0.4]), 1.2)


# ============================================================================
# Test 3: Residual store
# ============================================================================

def test_residual_sample_is_read_only():
    residuals = ResidualSample.from_predictions([1.0, 2.0, 3.0], [0.5, 2.5, 3.0])
    np.testing.assert_allclose(residuals.values, [0.5, -0.5, 0.0])
    with pytest.raises(ValueError):
        residuals.values[0] = 10.0


def test_residual_sample_rejects_empty():
    with pytest.raises(InvalidArgument):
        ResidualSample([])


def test_residual_sample_length_mismatch():
    with pytest.raises(InvalidArgument):
        ResidualSample.from_predictions([1.0, 2.0], [1.0])


def test_residual_sample_summary():
    summary = ResidualSample(np.arange(5, dtype=float)).summary()
    assert summary['n'] == 5
    assert summary['min'] == 0.0
    assert summary['median'] == 2.0
    assert summary['max'] == 4.0
