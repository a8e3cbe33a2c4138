"""
Unit Tests for Conformalized Quantile Regression
================================================
"""

import numpy as np
import pytest
from sklearn.linear_model import LinearRegression

from predint import (
    DegenerateCalibration,
    InvalidArgument,
    LevelMismatch,
    QuantileCrossing,
    calibrate_cqr,
    calibrate_split
)
from predint.conformal import (
    conformity_scores,
    empirical_coverage,
    predict_interval_arrays
)
from predint.models import GradientBoostingQuantileFitter, LinearQuantileFitter

from conftest import heteroscedastic_data


class CrossingQuantileModel:
    """Returns a lower quantile above the upper one for every input."""

    def predict(self, X):
        x = np.asarray(X)[:, 0]
        return {0.05: x + 1, 0.5: x, 0.95: x - 1}


class MedianOnlyModel:
    def predict(self, X):
        return {0.5: np.zeros(len(X))}


@pytest.fixture
def linear_cqr(hetero_split):
    train, cal, _ = hetero_split
    return calibrate_cqr(LinearQuantileFitter(), train, cal, alpha=0.10)


# ============================================================================
# Test 1: Conformity scores
# ============================================================================

def test_conformity_scores_sign():
    """Negative inside the band, positive distance outside it."""
    scores = conformity_scores(
        np.array([0.0, 0.0, 0.0]),
        np.array([1.0, 1.0, 1.0]),
        np.array([0.5, 2.0, -0.25])
    )
    np.testing.assert_allclose(scores, [-0.5, 1.0, 0.25])


# ============================================================================
# Test 2: Coverage and adaptivity
# ============================================================================

def test_coverage(hetero_split, linear_cqr):
    _, _, (X_test, y_test) = hetero_split

    _, lower, upper = predict_interval_arrays(linear_cqr, X_test)

    assert 0.85 <= empirical_coverage(y_test, lower, upper) <= 0.95


def test_width_tracks_noise_level(hetero_split, linear_cqr):
    """CQR widths grow with x, where the noise grows; split widths do not."""
    train, cal, (X_test, _) = hetero_split

    _, lower, upper = predict_interval_arrays(linear_cqr, X_test)
    cqr_width = upper - lower
    assert np.corrcoef(X_test[:, 0], cqr_width)[0, 1] > 0.8

    model = LinearRegression().fit(*train)
    split = calibrate_split(model, cal, alpha=0.10)
    _, lower, upper = predict_interval_arrays(split, X_test)
    assert np.std(upper - lower) < 1e-9
    assert np.std(cqr_width) > 0.1


def test_gradient_boosting_fitter(rng):
    X_train, y_train = heteroscedastic_data(400, rng)
    X_cal, y_cal = heteroscedastic_data(400, rng)
    X_test, y_test = heteroscedastic_data(1000, rng)

    fitter = GradientBoostingQuantileFitter(n_estimators=50)
    adjustment = calibrate_cqr(fitter, (X_train, y_train), (X_cal, y_cal), alpha=0.10)
    point, lower, upper = predict_interval_arrays(adjustment, X_test)

    assert empirical_coverage(y_test, lower, upper) >= 0.83
    assert np.all(lower <= point)
    assert np.all(point <= upper)


def test_point_inside_interval(hetero_split, linear_cqr):
    _, _, (X_test, _) = hetero_split

    point, lower, upper = predict_interval_arrays(linear_cqr, X_test)

    assert np.all(lower <= point)
    assert np.all(point <= upper)


def test_idempotent(hetero_split, linear_cqr):
    _, _, (X_test, _) = hetero_split

    first = predict_interval_arrays(linear_cqr, X_test)
    second = predict_interval_arrays(linear_cqr, X_test)

    for a, b in zip(first, second):
        assert np.array_equal(a, b)


# ============================================================================
# Test 3: Multiple calibrated levels
# ============================================================================

def test_extra_levels(hetero_split):
    train, cal, (X_test, _) = hetero_split
    adjustment = calibrate_cqr(
        LinearQuantileFitter(), train, cal, alpha=0.10, extra_alphas=(0.20,)
    )

    assert set(adjustment.calibrated_alphas) == {0.10, 0.20}

    _, lo80, hi80 = predict_interval_arrays(adjustment, X_test, level=0.80)
    _, lo90, hi90 = predict_interval_arrays(adjustment, X_test, level=0.90)
    assert np.mean(hi80 - lo80) < np.mean(hi90 - lo90)

    # 0.85 is served by the 0.90 calibration
    _, lo85, hi85 = predict_interval_arrays(adjustment, X_test, level=0.85)
    np.testing.assert_array_equal(lo85, lo90)
    np.testing.assert_array_equal(hi85, hi90)

    with pytest.raises(LevelMismatch):
        predict_interval_arrays(adjustment, X_test, level=0.95)


def test_correction_lookup(linear_cqr):
    assert linear_cqr.correction() == linear_cqr.correction(0.10)
    with pytest.raises(InvalidArgument):
        linear_cqr.correction(0.3)


# ============================================================================
# Test 4: Crossing, degenerate and malformed inputs
# ============================================================================

def test_quantile_crossing_is_sorted_and_reported(rng):
    X = rng.uniform(0, 5, size=(200, 1))
    y = X[:, 0] + rng.normal(0, 0.1, size=200)

    def fit(X, y, quantiles):
        return CrossingQuantileModel()

    with pytest.warns(QuantileCrossing):
        adjustment = calibrate_cqr(fit, (X, y), (X, y), alpha=0.10)

    with pytest.warns(QuantileCrossing):
        point, lower, upper = predict_interval_arrays(adjustment, X)

    assert np.all(lower <= upper)
    assert np.all(lower <= point)
    assert np.all(point <= upper)


def test_single_calibration_record_is_degenerate(hetero_split):
    train, _, _ = hetero_split
    with pytest.raises(DegenerateCalibration):
        calibrate_cqr(
            LinearQuantileFitter(), train, (np.array([[1.0]]), np.array([1.5])), alpha=0.10
        )


def test_missing_quantile_levels(rng):
    X = rng.uniform(0, 5, size=(50, 1))
    y = X[:, 0]

    with pytest.raises(InvalidArgument):
        calibrate_cqr(lambda X, y, q: MedianOnlyModel(), (X, y), (X, y), alpha=0.10)


def test_invalid_extra_alpha(hetero_split):
    train, cal, _ = hetero_split
    with pytest.raises(InvalidArgument):
        calibrate_cqr(LinearQuantileFitter(), train, cal, alpha=0.10, extra_alphas=(1.5,))
