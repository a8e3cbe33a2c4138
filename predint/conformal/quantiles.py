"""
Empirical Quantiles of Residual and Nonconformity-Score Samples

The default interpolation rule is Hyndman & Fan type 7 (linear
interpolation between order statistics, numpy's ``method="linear"``).
For a sorted sample x_(1) <= ... <= x_(n) the p-quantile is

    h = (n - 1) p + 1
    Q(p) = x_(floor h) + (h - floor h) (x_(floor h + 1) - x_(floor h))

so p = 0 and p = 1 return the sample minimum and maximum.

Conformal calibration evaluates the estimator at p = k / n with the
finite-sample rank k = ceil((n + 1)(1 - alpha)). Then h = k + (1 - k/n)
lies in [k, k + 1], so Q(k/n) is never below the k-th order statistic and
the coverage guarantee is preserved.
"""

import math
from typing import Union

import numpy as np

from ..exceptions import DegenerateCalibration, InvalidArgument

QUANTILE_METHODS = (
    'linear',
    'lower',
    'higher',
    'nearest',
    'midpoint',
    'inverted_cdf',
)


def empirical_quantile(
    sample: np.ndarray,
    p: Union[float, np.ndarray],
    method: str = 'linear',
    axis: int = 0
) -> Union[float, np.ndarray]:
    """
    Compute the empirical p-quantile of a sample.

    Parameters
    ----------
    sample : np.ndarray
        Finite, non-empty sample (reduced along ``axis``)
    p : float or np.ndarray
        Probability level(s) in [0, 1]
    method : str, optional (default='linear')
        Interpolation rule, one of ``QUANTILE_METHODS``. 'linear' is type 7.
    axis : int, optional (default=0)
        Axis to reduce

    Returns
    -------
    q : float or np.ndarray

    Raises
    ------
    InvalidArgument
        Empty sample, non-finite values, p outside [0, 1] or unknown method

    Examples
    --------
    >>> empirical_quantile(np.array([1.0, 2.0, 3.0, 4.0]), 0.5)
    2.5
    """
    sample = np.asarray(sample, dtype=np.float64)
    if sample.size == 0 or sample.shape[axis] == 0:
        raise InvalidArgument("Cannot compute a quantile of an empty sample")
    if not np.all(np.isfinite(sample)):
        raise InvalidArgument("Sample contains non-finite values")
    if method not in QUANTILE_METHODS:
        raise InvalidArgument(
            f"Unknown quantile method '{method}'. Use one of {QUANTILE_METHODS}"
        )

    p_arr = np.asarray(p, dtype=np.float64)
    if np.any(~np.isfinite(p_arr)) or np.any((p_arr < 0) | (p_arr > 1)):
        raise InvalidArgument(f"Quantile level must be in [0,1], got {p}")

    q = np.quantile(sample, p_arr, axis=axis, method=method)

    if np.ndim(q) == 0:
        return float(q)
    return q


def order_statistic(sample: np.ndarray, k: int, axis: int = 0) -> np.ndarray:
    """
    Return the k-th smallest value (1-based) along ``axis``.

    Uses ``np.partition`` so the cost is linear in the sample size.
    """
    sample = np.asarray(sample, dtype=np.float64)
    n = sample.shape[axis]
    if not 1 <= k <= n:
        raise InvalidArgument(f"Order statistic rank must be in [1, {n}], got {k}")
    return np.take(np.partition(sample, k - 1, axis=axis), k - 1, axis=axis)


def conformal_rank(n: int, alpha: float) -> int:
    """Finite-sample rank ceil((n + 1)(1 - alpha))."""
    validate_alpha(alpha)
    # Guard against 0.9 * 11 = 9.900000000000002 style rounding
    return int(math.ceil(round((n + 1) * (1 - alpha), 9)))


def conformal_quantile(
    scores: np.ndarray,
    alpha: float,
    method: str = 'linear'
) -> float:
    """
    Finite-sample corrected (1 - alpha) quantile of nonconformity scores.

    Parameters
    ----------
    scores : np.ndarray, shape (n,)
        Calibration scores
    alpha : float
        Miscoverage rate in (0, 1)
    method : str, optional (default='linear')
        Interpolation rule passed to ``empirical_quantile``

    Returns
    -------
    q_hat : float

    Raises
    ------
    DegenerateCalibration
        If ceil((n + 1)(1 - alpha)) > n, i.e. too few scores for the level
    """
    scores = np.asarray(scores, dtype=np.float64).ravel()
    n = len(scores)
    if n == 0:
        raise InvalidArgument("Cannot calibrate on an empty score sample")

    k = conformal_rank(n, alpha)
    if k > n:
        raise DegenerateCalibration(
            f"{n} calibration scores are too few for level {1 - alpha:.3f}: "
            f"rank ceil((n+1)(1-alpha)) = {k} > n. "
            f"Need at least {minimum_calibration_size(alpha)} scores."
        )

    return empirical_quantile(scores, k / n, method=method)


def minimum_calibration_size(alpha: float) -> int:
    """Smallest n with ceil((n + 1)(1 - alpha)) <= n."""
    validate_alpha(alpha)
    return int(math.ceil(round(1 / alpha - 1, 9)))


def validate_alpha(alpha: float) -> None:
    """Raise ``InvalidArgument`` unless alpha is in (0, 1)."""
    if not (isinstance(alpha, (int, float, np.floating)) and 0 < alpha < 1):
        raise InvalidArgument(f"alpha must be in (0,1), got {alpha}")
