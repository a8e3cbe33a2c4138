"""
Quantile Regression Fitters (scikit-learn)

Fitters that satisfy ``quantile_fit_fn(X, y, quantiles) -> QuantileModel``
by training one scikit-learn regressor per requested quantile level.
"""

from typing import Dict, Sequence

import numpy as np
from sklearn.base import clone
from sklearn.ensemble import GradientBoostingRegressor
from sklearn.linear_model import QuantileRegressor

from ..exceptions import InvalidArgument
from .base import level_key


class QuantileEnsemble:
    """
    One fitted estimator per quantile level.

    Parameters
    ----------
    models : dict of {level: estimator}
        Fitted regressors, each targeting its level

    Examples
    --------
    >>> qm = LinearQuantileFitter()(X_train, y_train, [0.05, 0.5, 0.95])
    >>> qm.predict(X_new)[0.05]
    """

    def __init__(self, models: Dict[float, object]):
        if not models:
            raise InvalidArgument("QuantileEnsemble needs at least one model")
        self.models = {level_key(q): m for q, m in models.items()}

    @property
    def quantiles(self):
        return sorted(self.models)

    def predict(self, X) -> Dict[float, np.ndarray]:
        return {
            q: np.asarray(m.predict(X), dtype=np.float64).ravel()
            for q, m in self.models.items()
        }


def _validate_quantiles(quantiles: Sequence[float]):
    quantiles = sorted({level_key(q) for q in quantiles})
    if not quantiles:
        raise InvalidArgument("At least one quantile level is required")
    bad = [q for q in quantiles if not 0 < q < 1]
    if bad:
        raise InvalidArgument(f"Quantile levels must be in (0,1), got {bad}")
    return quantiles


class LinearQuantileFitter:
    """
    Linear quantile regression (pinball loss) via ``QuantileRegressor``.

    Parameters
    ----------
    regularization : float, optional (default=0.0)
        L1 penalty (``alpha`` in scikit-learn; renamed to avoid confusion
        with the miscoverage rate)
    solver : str, optional (default='highs')
    """

    def __init__(self, regularization: float = 0.0, solver: str = 'highs'):
        self.regularization = regularization
        self.solver = solver

    def __call__(self, X, y, quantiles: Sequence[float]) -> QuantileEnsemble:
        models = {}
        for q in _validate_quantiles(quantiles):
            model = QuantileRegressor(
                quantile=q,
                alpha=self.regularization,
                solver=self.solver
            )
            models[q] = model.fit(X, y)
        return QuantileEnsemble(models)


class GradientBoostingQuantileFitter:
    """
    Gradient boosted trees with quantile loss, one ensemble per level.

    Extra keyword arguments are forwarded to
    ``GradientBoostingRegressor``.
    """

    def __init__(self, random_seed: int = 42, **params):
        params.setdefault('n_estimators', 200)
        params.setdefault('max_depth', 3)
        params.setdefault('learning_rate', 0.05)
        params.setdefault('min_samples_leaf', 10)
        self.random_seed = random_seed
        self.params = params

    def __call__(self, X, y, quantiles: Sequence[float]) -> QuantileEnsemble:
        base = GradientBoostingRegressor(
            loss='quantile',
            random_state=self.random_seed,
            **self.params
        )
        models = {}
        for q in _validate_quantiles(quantiles):
            model = clone(base).set_params(alpha=q)
            models[q] = model.fit(X, y)
        return QuantileEnsemble(models)
