"""
Coverage and Width Diagnostics

Helpers for checking calibrated intervals against held-out data.

"""

from typing import Dict, Optional, Tuple

import numpy as np
from scipy import stats

from ..data import as_dataset
from ..exceptions import InvalidArgument
from .predictor import predict_interval_arrays, resolve_alpha
from .quantiles import conformal_rank, validate_alpha


def empirical_coverage(y_true: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> float:
    """Fraction of outcomes inside their interval."""
    y_true = np.asarray(y_true, dtype=np.float64).ravel()
    lower = np.asarray(lower, dtype=np.float64).ravel()
    upper = np.asarray(upper, dtype=np.float64).ravel()
    if not len(y_true) == len(lower) == len(upper):
        raise InvalidArgument(
            f"Length mismatch: y_true ({len(y_true)}), lower ({len(lower)}), "
            f"upper ({len(upper)})"
        )
    if len(y_true) == 0:
        raise InvalidArgument("Cannot compute coverage of an empty sample")
    return float(np.mean((y_true >= lower) & (y_true <= upper)))


def interval_width(lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    return np.asarray(upper, dtype=np.float64) - np.asarray(lower, dtype=np.float64)


def compute_interval_metrics(
    y_true: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray
) -> Dict[str, float]:
    """
    Aggregate metrics for a collection of intervals.

    Returns
    -------
    metrics : dict
        - 'coverage': fraction of outcomes inside the interval
        - 'mean_width', 'median_width', 'std_width'
        - 'below_fraction', 'above_fraction': misses on each side
    """
    coverage = empirical_coverage(y_true, lower, upper)
    y_true = np.asarray(y_true, dtype=np.float64).ravel()
    widths = interval_width(lower, upper)

    return {
        'coverage': coverage,
        'mean_width': float(np.mean(widths)),
        'median_width': float(np.median(widths)),
        'std_width': float(np.std(widths)),
        'below_fraction': float(np.mean(y_true < lower)),
        'above_fraction': float(np.mean(y_true > upper)),
    }


def coverage_interval(
    n_cal: int,
    alpha: float,
    confidence: float = 0.95,
    two_sided: bool = False
) -> Tuple[float, float]:
    """
    Range of the coverage conditional on one calibration draw.

    For a conformal quantile at rank k = ceil((n + 1)(1 - alpha)) the
    coverage given the calibration set follows Beta(k, n + 1 - k)
    (Vovk, 2012). This is the CQR case.

    With ``two_sided=True`` each tail is calibrated at alpha / 2, as split
    conformal does. The bounds sit at order statistics k2 and n + 1 - k2
    with k2 = ceil((n + 1)(1 - alpha/2)); their spacing gives
    Beta(2 k2 - n - 1, 2 n + 2 - 2 k2).

    Returns the central ``confidence`` interval of that distribution.
    """
    validate_alpha(alpha)
    if not 0 < confidence < 1:
        raise InvalidArgument(f"confidence must be in (0,1), got {confidence}")

    if two_sided:
        k2 = min(conformal_rank(n_cal, alpha / 2), n_cal)
        a = max(2 * k2 - n_cal - 1, 1)
        dist = stats.beta(a, n_cal + 1 - a)
    else:
        k = min(conformal_rank(n_cal, alpha), n_cal)
        dist = stats.beta(k, n_cal + 1 - k)
    tail = (1 - confidence) / 2
    return float(dist.ppf(tail)), float(dist.ppf(1 - tail))


def validate_coverage(
    adjustment,
    test_data,
    level: Optional[float] = None,
    confidence: float = 0.95,
    verbose: bool = True
) -> Dict[str, float]:
    """
    Validate coverage of a calibrated adjustment on a test set.

    The acceptable range combines the calibration-set spread
    (``coverage_interval``, two-sided for split adjustments) with binomial
    noise from the finite test set. For CV+ the Beta spread is only a
    heuristic, so the lower end is relaxed to the 1 - 2 alpha guarantee.

    Parameters
    ----------
    adjustment : SplitAdjustment, CVPlusAdjustment or CQRAdjustment
    test_data : Dataset or (X, y)
    level : float, optional
        Level to validate; defaults to the calibrated level
    confidence : float, optional (default=0.95)
        Confidence of the acceptable range
    verbose : bool, optional (default=True)
        Print validation results

    Returns
    -------
    metrics : dict
        ``compute_interval_metrics`` output plus 'target_coverage',
        'acceptable_range' and 'valid_coverage'
    """
    test = as_dataset(test_data)
    alpha = resolve_alpha(adjustment, level)
    target = 1 - alpha

    _, lower, upper = predict_interval_arrays(adjustment, test.X, level)
    metrics = compute_interval_metrics(test.y, lower, upper)

    cal_lo, cal_hi = coverage_interval(
        adjustment.n_cal, alpha, confidence,
        two_sided=adjustment.strategy == 'split'
    )
    z = stats.norm.ppf(1 - (1 - confidence) / 2)
    test_noise = z * np.sqrt(target * (1 - target) / len(test))
    lower_bound = max(0.0, cal_lo - test_noise)
    upper_bound = min(1.0, cal_hi + test_noise)

    # CV+ is only guaranteed 1 - 2 alpha
    if adjustment.strategy == 'cv+':
        lower_bound = min(lower_bound, 1 - 2 * alpha)

    valid_coverage = lower_bound <= metrics['coverage'] <= upper_bound

    if verbose:
        print(f"\n{'='*60}")
        print("COVERAGE VALIDATION")
        print(f"{'='*60}")
        print(f"Strategy: {adjustment.strategy}")
        print(f"Test samples: {len(test)}")
        print(f"\nCoverage results:")
        print(f"  Empirical coverage: {metrics['coverage']:.3f}")
        print(f"  Target coverage:    {target:.3f}")
        print(f"  Acceptable range:   [{lower_bound:.3f}, {upper_bound:.3f}]")
        print(f"  Status: {'✓ PASS' if valid_coverage else '✗ FAIL'}")
        print(f"\nInterval widths:")
        print(f"  Mean:   {metrics['mean_width']:.4f}")
        print(f"  Median: {metrics['median_width']:.4f}")
        print(f"  Std:    {metrics['std_width']:.4f}")

        if metrics['coverage'] < lower_bound:
            print(f"\n⚠ WARNING: Under-coverage detected!")
            print(f"  Check exchangeability of calibration and test data")

    metrics.update({
        'target_coverage': target,
        'acceptable_range': [lower_bound, upper_bound],
        'valid_coverage': bool(valid_coverage),
    })

    return metrics
