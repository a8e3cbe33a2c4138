"""Conformal prediction intervals: split, CV+ and CQR"""

from .quantiles import (
    conformal_quantile,
    conformal_rank,
    empirical_quantile,
    minimum_calibration_size,
    order_statistic
)
from .residuals import ResidualSample
from .split import SplitAdjustment, calibrate_split
from .cv_plus import CVPlusAdjustment, calibrate_cv_plus
from .cqr import CQRAdjustment, calibrate_cqr, conformity_scores
from .predictor import (
    IntervalResult,
    predict_interval,
    predict_interval_arrays,
    predict_interval_frame
)
from .diagnostics import (
    compute_interval_metrics,
    coverage_interval,
    empirical_coverage,
    validate_coverage
)
from .persistence import load_calibration, save_calibration

__all__ = [
    'conformal_quantile',
    'conformal_rank',
    'empirical_quantile',
    'minimum_calibration_size',
    'order_statistic',
    'ResidualSample',
    'SplitAdjustment',
    'calibrate_split',
    'CVPlusAdjustment',
    'calibrate_cv_plus',
    'CQRAdjustment',
    'calibrate_cqr',
    'conformity_scores',
    'IntervalResult',
    'predict_interval',
    'predict_interval_arrays',
    'predict_interval_frame',
    'compute_interval_metrics',
    'coverage_interval',
    'empirical_coverage',
    'validate_coverage',
    'load_calibration',
    'save_calibration'
]
