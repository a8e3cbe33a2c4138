"""Regression model capabilities: protocols, fitters and adapters"""

from .base import (
    FittedModel,
    QuantileModel,
    as_point_fitter,
    fit_point_model,
    level_key,
    predict_quantiles
)
from .quantile import (
    GradientBoostingQuantileFitter,
    LinearQuantileFitter,
    QuantileEnsemble
)
from .bayesian import (
    BayesianLinearRegression,
    BayesianQuantileFitter,
    PosteriorQuantileModel
)

__all__ = [
    'FittedModel',
    'QuantileModel',
    'as_point_fitter',
    'fit_point_model',
    'level_key',
    'predict_quantiles',
    'GradientBoostingQuantileFitter',
    'LinearQuantileFitter',
    'QuantileEnsemble',
    'BayesianLinearRegression',
    'BayesianQuantileFitter',
    'PosteriorQuantileModel'
]
