"""
predint: Distribution-Free Prediction Intervals

Wrap any regression model with conformal prediction intervals that carry
a finite-sample coverage guarantee: split conformal, CV+ and conformalized
quantile regression.
"""

from .version import __version__, __author__, __description__
from .data import Dataset, train_calibration_split
from .exceptions import (
    DegenerateCalibration,
    InvalidArgument,
    InvalidConfiguration,
    LevelMismatch,
    PredintError,
    QuantileCrossing,
    UnverifiedCoverage
)
from .conformal import (
    IntervalResult,
    calibrate_cqr,
    calibrate_cv_plus,
    calibrate_split,
    predict_interval
)
from .pipeline import Pipeline

__all__ = [
    'Pipeline',
    'Dataset',
    'train_calibration_split',
    'IntervalResult',
    'calibrate_split',
    'calibrate_cv_plus',
    'calibrate_cqr',
    'predict_interval',
    'PredintError',
    'InvalidArgument',
    'InvalidConfiguration',
    'LevelMismatch',
    'DegenerateCalibration',
    'QuantileCrossing',
    'UnverifiedCoverage',
    '__version__',
    '__author__',
    '__description__',
]
