"""
Residual Store

Out-of-sample residuals ``outcome - predicted`` associated with a fitted
regression model. The sample is immutable once built so it can be shared
between adjustments and concurrent prediction requests.
"""

from typing import Union

import numpy as np

from ..exceptions import InvalidArgument
from .quantiles import empirical_quantile


class ResidualSample:
    """
    Read-only sample of calibration (or out-of-fold) residuals.

    Parameters
    ----------
    values : np.ndarray, shape (n,)
        Residuals, computed as ``y - y_hat``. Must be non-empty and finite.

    Attributes
    ----------
    values : np.ndarray
        Read-only float array

    Examples
    --------
    >>> residuals = ResidualSample.from_model(model, X_cal, y_cal)
    >>> residuals.quantile(0.95)
    """

    def __init__(self, values: np.ndarray):
        values = np.array(values, dtype=np.float64).ravel()
        if len(values) == 0:
            raise InvalidArgument("ResidualSample needs at least one residual")
        if not np.all(np.isfinite(values)):
            raise InvalidArgument("Residuals must be finite")
        values.setflags(write=False)
        self._values = values

    @classmethod
    def from_predictions(cls, y_true: np.ndarray, y_pred: np.ndarray) -> 'ResidualSample':
        """Residuals ``y_true - y_pred``."""
        y_true = np.asarray(y_true, dtype=np.float64).ravel()
        y_pred = np.asarray(y_pred, dtype=np.float64).ravel()
        if len(y_true) != len(y_pred):
            raise InvalidArgument(
                f"Length mismatch: y_true ({len(y_true)}) vs "
                f"predictions ({len(y_pred)})"
            )
        return cls(y_true - y_pred)

    @classmethod
    def from_model(cls, model, X, y: np.ndarray) -> 'ResidualSample':
        """Residuals of ``model.predict(X)`` against ``y``."""
        return cls.from_predictions(y, model.predict(X))

    @property
    def values(self) -> np.ndarray:
        return self._values

    def __len__(self) -> int:
        return len(self._values)

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self._values
        return self._values.astype(dtype)

    def absolute(self) -> np.ndarray:
        return np.abs(self._values)

    def quantile(self, p: Union[float, np.ndarray], method: str = 'linear'):
        return empirical_quantile(self._values, p, method=method)

    def summary(self) -> dict:
        """Min / quartiles / max, as printed during verbose calibration."""
        v = self._values
        return {
            'n': len(v),
            'min': float(v.min()),
            'q25': float(np.percentile(v, 25)),
            'median': float(np.median(v)),
            'q75': float(np.percentile(v, 75)),
            'max': float(v.max()),
        }

    def __repr__(self) -> str:
        return f"ResidualSample(n={len(self)})"
