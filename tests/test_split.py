"""
Unit Tests for Split Conformal Calibration
==========================================
"""

import numpy as np
import pytest
from sklearn.linear_model import LinearRegression

from predint import DegenerateCalibration, InvalidArgument, calibrate_split
from predint.conformal import empirical_coverage, predict_interval_arrays

from conftest import linear_data


class ShiftedModel:
    """Predicts the true mean minus a constant, so all residuals are positive."""

    def __init__(self, shift):
        self.shift = shift

    def predict(self, X):
        return 1 + np.asarray(X)[:, 0] / 2 - self.shift


@pytest.fixture
def fitted_linear(linear_split):
    (X_train, y_train), _, _ = linear_split
    return LinearRegression().fit(X_train, y_train)


# ============================================================================
# Test 1: Coverage
# ============================================================================

def test_end_to_end_linear_coverage(linear_split, fitted_linear):
    """250 train / 250 calibration at level 0.90 covers 85-95% of test points."""
    _, (X_cal, y_cal), (X_test, y_test) = linear_split

    adjustment = calibrate_split(fitted_linear, (X_cal, y_cal), alpha=0.10)
    _, lower, upper = predict_interval_arrays(adjustment, X_test)

    coverage = empirical_coverage(y_test, lower, upper)
    assert 0.85 <= coverage <= 0.95


def test_average_coverage_over_repeated_splits():
    """Average coverage over 200 simulated calibration/test splits is near 90%."""
    rng = np.random.default_rng(7)
    coverages = []

    for _ in range(200):
        X_train, y_train = linear_data(100, rng)
        X_cal, y_cal = linear_data(500, rng)
        X_test, y_test = linear_data(500, rng)

        model = LinearRegression().fit(X_train, y_train)
        adjustment = calibrate_split(model, (X_cal, y_cal), alpha=0.10)
        _, lower, upper = predict_interval_arrays(adjustment, X_test)
        coverages.append(empirical_coverage(y_test, lower, upper))

    assert np.mean(coverages) >= 0.85
    assert np.mean(coverages) <= 0.95


def test_coverage_holds_for_misspecified_model(rng):
    """Coverage does not depend on the model being correct."""
    X_cal, y_cal = linear_data(500, rng)
    X_test, y_test = linear_data(2000, rng)

    adjustment = calibrate_split(ShiftedModel(3.0), (X_cal, y_cal), alpha=0.10)
    _, lower, upper = predict_interval_arrays(adjustment, X_test)

    assert empirical_coverage(y_test, lower, upper) >= 0.85


# ============================================================================
# Test 2: Interval shape
# ============================================================================

def test_width_is_constant(linear_split, fitted_linear):
    """Every split-conformal interval has the same width."""
    _, cal, (X_test, _) = linear_split
    adjustment = calibrate_split(fitted_linear, cal, alpha=0.10)

    _, lower, upper = predict_interval_arrays(adjustment, X_test)

    np.testing.assert_allclose(upper - lower, adjustment.width)


def test_offsets_are_ordered(linear_split, fitted_linear):
    _, cal, _ = linear_split
    adjustment = calibrate_split(fitted_linear, cal, alpha=0.10)

    assert adjustment.q_low < 0 < adjustment.q_high
    assert adjustment.n_cal == 250
    assert adjustment.level == pytest.approx(0.90)


def test_interval_is_prediction_plus_offsets(linear_split, fitted_linear):
    """Sign convention: residual = y - y_hat, interval = y_hat + [q_low, q_high]."""
    _, cal, (X_test, _) = linear_split
    adjustment = calibrate_split(fitted_linear, cal, alpha=0.10)

    point, lower, upper = adjustment.intervals(X_test[:5], adjustment.alpha)

    np.testing.assert_allclose(point, fitted_linear.predict(X_test[:5]))
    np.testing.assert_allclose(lower, point + adjustment.q_low)
    np.testing.assert_allclose(upper, point + adjustment.q_high)


@pytest.mark.parametrize("alpha", [0.05, 0.10, 0.20, 0.50])
def test_point_inside_interval(linear_split, fitted_linear, alpha):
    _, cal, (X_test, _) = linear_split
    adjustment = calibrate_split(fitted_linear, cal, alpha=alpha)

    point, lower, upper = predict_interval_arrays(adjustment, X_test)

    assert np.all(lower <= point)
    assert np.all(point <= upper)


def test_point_inside_interval_for_biased_model(rng):
    """All residuals positive: the interval is widened to include the point."""
    X_cal, y_cal = linear_data(100, rng)
    adjustment = calibrate_split(ShiftedModel(5.0), (X_cal, y_cal), alpha=0.10)
    assert adjustment.q_low > 0

    point, lower, upper = predict_interval_arrays(adjustment, X_cal)

    assert np.all(lower <= point)
    assert np.all(point <= upper)


def test_idempotent(linear_split, fitted_linear):
    """Same adjustment and inputs give bit-identical results."""
    _, cal, (X_test, _) = linear_split
    adjustment = calibrate_split(fitted_linear, cal, alpha=0.10)

    first = predict_interval_arrays(adjustment, X_test)
    second = predict_interval_arrays(adjustment, X_test)

    for a, b in zip(first, second):
        assert np.array_equal(a, b)


# ============================================================================
# Test 3: Degenerate and invalid calibration
# ============================================================================

def test_single_calibration_record_is_degenerate(fitted_linear):
    with pytest.raises(DegenerateCalibration):
        calibrate_split(fitted_linear, (np.array([[1.0]]), np.array([1.5])), alpha=0.10)


def test_too_small_calibration_set_is_degenerate(rng, fitted_linear):
    """alpha/2 = 0.05 needs at least 19 residuals."""
    X_cal, y_cal = linear_data(18, rng)
    with pytest.raises(DegenerateCalibration):
        calibrate_split(fitted_linear, (X_cal, y_cal), alpha=0.10)

    X_cal, y_cal = linear_data(19, rng)
    adjustment = calibrate_split(fitted_linear, (X_cal, y_cal), alpha=0.10)
    assert adjustment.n_cal == 19


@pytest.mark.parametrize("alpha", [0.0, 1.0, -0.1, 2])
def test_invalid_alpha(fitted_linear, linear_split, alpha):
    _, cal, _ = linear_split
    with pytest.raises(InvalidArgument):
        calibrate_split(fitted_linear, cal, alpha=alpha)


def test_length_mismatch(fitted_linear):
    with pytest.raises(InvalidArgument):
        calibrate_split(fitted_linear, (np.ones((5, 1)), np.ones(4)), alpha=0.10)


def test_verbose_output(linear_split, fitted_linear, capsys):
    _, cal, _ = linear_split
    calibrate_split(fitted_linear, cal, alpha=0.10, verbose=True)

    out = capsys.readouterr().out
    assert "SPLIT CONFORMAL CALIBRATION" in out
    assert "Calibration samples: 250" in out
