"""
Model Capabilities

The conformal strategies never train models themselves. They only need:

- a point fitter ``fit_fn(X, y) -> FittedModel`` where
  ``FittedModel.predict(X) -> np.ndarray (n,)``
- a quantile fitter ``quantile_fit_fn(X, y, quantiles) -> QuantileModel``
  where ``QuantileModel.predict(X) -> {level: np.ndarray (n,)}``

Any object satisfying these protocols works; concrete fitters are
interchangeable implementations, not subclasses of a common base.
"""

from typing import Callable, Dict, Protocol, Sequence

import numpy as np
from sklearn.base import clone

from ..exceptions import InvalidArgument


class FittedModel(Protocol):
    def predict(self, X) -> np.ndarray: ...


class QuantileModel(Protocol):
    def predict(self, X) -> Dict[float, np.ndarray]: ...


PointFitter = Callable[..., FittedModel]
QuantileFitter = Callable[..., QuantileModel]


def level_key(level: float) -> float:
    """Canonical dict key for a quantile level (0.1 / 2 == 0.05)."""
    return round(float(level), 10)


def as_point_fitter(fit_fn) -> PointFitter:
    """
    Turn a callable or a scikit-learn regressor into a point fitter.

    Estimators are cloned on every call so each fold gets its own
    independent, unfitted copy.

    Examples
    --------
    >>> fit = as_point_fitter(LinearRegression())
    >>> model = fit(X_train, y_train)
    """
    if hasattr(fit_fn, 'fit') and hasattr(fit_fn, 'predict'):
        estimator = fit_fn

        def fit(X, y):
            return clone(estimator).fit(X, y)

        return fit

    if callable(fit_fn):
        return fit_fn

    raise InvalidArgument(
        f"Expected a fit function or an estimator with fit/predict, "
        f"got {type(fit_fn).__name__}"
    )


def fit_point_model(fit_fn, X, y) -> FittedModel:
    """Fit a single point model with a callable or estimator."""
    return as_point_fitter(fit_fn)(X, y)


def predict_quantiles(model: QuantileModel, X, quantiles: Sequence[float]) -> Dict[float, np.ndarray]:
    """
    Query a quantile model and check the requested levels are present.

    Returns a dict keyed by ``level_key(q)`` with 1-D float arrays.
    """
    raw = model.predict(X)
    out = {level_key(q): np.asarray(v, dtype=np.float64).ravel() for q, v in raw.items()}
    missing = [q for q in quantiles if level_key(q) not in out]
    if missing:
        raise InvalidArgument(
            f"Quantile model does not provide levels {missing}; "
            f"available: {sorted(out)}"
        )
    return out
