"""predint Pipeline - Main User Interface"""

import pickle
import warnings
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .conformal import (
    calibrate_cqr,
    calibrate_cv_plus,
    calibrate_split,
    compute_interval_metrics,
    predict_interval,
    predict_interval_frame
)
from .conformal.predictor import IntervalResult, predict_interval_arrays
from .conformal.quantiles import validate_alpha
from .data import Dataset, as_dataset, train_calibration_split
from .exceptions import InvalidArgument, InvalidConfiguration
from .models import GradientBoostingQuantileFitter, fit_point_model

METHODS = ('split', 'cv+', 'cqr')


class Pipeline:
    """
    End-to-end conformal prediction-interval pipeline.

    Fits a regression model, calibrates one conformal strategy and serves
    intervals for new inputs.

    Parameters
    ----------
    method : {'split', 'cv+', 'cqr'}, default='split'
        Interval strategy.

    estimator : estimator or callable, optional
        For 'split' and 'cv+': a scikit-learn regressor (cloned per fit) or
        ``fit_fn(X, y) -> model``. Defaults to ``LinearRegression()``.
        For 'cqr': ``quantile_fit_fn(X, y, quantiles) -> model``.
        Defaults to ``GradientBoostingQuantileFitter``.

    alpha : float, default=0.10
        Miscoverage rate. Target coverage = 1 - alpha.

    calibration_fraction : float, default=0.5
        Fraction of data reserved for calibration ('split' and 'cqr').

    n_folds : int, default=10
        Number of folds for 'cv+'.

    extra_alphas : sequence of float, default=()
        Additional miscoverage rates calibrated by 'cqr'.

    n_jobs : int, optional
        Concurrent fold fits for 'cv+'.

    random_seed : int, default=42
        Random seed for splits and folds.

    verbose : bool, default=True
        Print progress.

    Examples
    --------
    >>> from predint import Pipeline
    >>>
    >>> pipeline = Pipeline(method='split', alpha=0.10)
    >>> pipeline.fit(df, target_col='y')
    >>>
    >>> # Point predictions with 90% prediction intervals
    >>> intervals = pipeline.predict(new_df)
    """

    def __init__(
        self,
        method: str = 'split',
        estimator=None,
        alpha: float = 0.10,
        calibration_fraction: float = 0.5,
        n_folds: int = 10,
        extra_alphas: Sequence[float] = (),
        n_jobs: Optional[int] = None,
        random_seed: int = 42,
        verbose: bool = True
    ):
        if method not in METHODS:
            raise InvalidConfiguration(
                f"Unknown method '{method}'. Use one of {METHODS}"
            )
        validate_alpha(alpha)
        for a in extra_alphas:
            validate_alpha(a)
        if not 0 < calibration_fraction < 1:
            raise InvalidArgument(
                f"calibration_fraction must be in (0,1), got {calibration_fraction}"
            )
        if method == 'cv+' and n_folds < 2:
            raise InvalidConfiguration(f"n_folds must be >= 2, got {n_folds}")

        self.method = method
        self.estimator = estimator
        self.alpha = alpha
        self.calibration_fraction = calibration_fraction
        self.n_folds = n_folds
        self.extra_alphas = tuple(extra_alphas)
        self.n_jobs = n_jobs
        self.random_seed = random_seed
        self.verbose = verbose

        # Will be initialized during fit()
        self.adjustment = None
        self.feature_names = None
        self.target_col = None

    def _default_estimator(self):
        if self.method == 'cqr':
            return GradientBoostingQuantileFitter(random_seed=self.random_seed)
        return LinearRegression()

    def fit(
        self,
        data: Union[pd.DataFrame, Dataset, tuple],
        target_col: str = 'y'
    ) -> 'Pipeline':
        """
        Fit the model and calibrate the interval strategy.

        Parameters
        ----------
        data : pd.DataFrame, Dataset or (X, y)
            Training data. A DataFrame must contain ``target_col``.

        target_col : str, default='y'
            Outcome column when ``data`` is a DataFrame.

        Returns
        -------
        self : Pipeline
            Fitted pipeline.
        """
        if isinstance(data, pd.DataFrame):
            dataset = Dataset.from_frame(data, target_col)
            self.target_col = target_col
        else:
            dataset = as_dataset(data)

        if isinstance(dataset.X, pd.DataFrame):
            self.feature_names = list(dataset.X.columns)

        estimator = self.estimator if self.estimator is not None else self._default_estimator()

        if self.verbose:
            print(f"\n{'='*70}")
            print(f"predint Pipeline: {self.method} conformal on {len(dataset)} records")
            print(f"{'='*70}\n")

        if self.method == 'cv+':
            self.adjustment = calibrate_cv_plus(
                estimator,
                dataset,
                folds=self.n_folds,
                alpha=self.alpha,
                n_jobs=self.n_jobs,
                random_seed=self.random_seed,
                verbose=self.verbose
            )
        else:
            train, cal = train_calibration_split(
                dataset, self.calibration_fraction, self.random_seed
            )
            if self.verbose:
                print(f"✓ Split data: {len(train)} train, {len(cal)} calibration records")

            if len(cal) < 100:
                warnings.warn(
                    f"Only {len(cal)} calibration records. Coverage holds on "
                    "average but will vary noticeably between calibration draws."
                )

            if self.method == 'split':
                model = fit_point_model(estimator, train.X, train.y)
                self.adjustment = calibrate_split(
                    model, cal, alpha=self.alpha, verbose=self.verbose
                )
            else:
                self.adjustment = calibrate_cqr(
                    estimator,
                    train,
                    cal,
                    alpha=self.alpha,
                    extra_alphas=self.extra_alphas,
                    verbose=self.verbose
                )

        if self.verbose:
            print(f"\n{'='*70}")
            print(f"✓ Pipeline fitted ({self.method}, level {1 - self.alpha:.0%})")
            print(f"{'='*70}\n")

        return self

    def _check_fitted(self):
        if self.adjustment is None:
            raise RuntimeError("Pipeline not fitted. Call .fit() first.")

    def _select_features(self, X):
        if self.feature_names is not None and isinstance(X, pd.DataFrame):
            return X[self.feature_names]
        return X

    def predict(self, X, level: Optional[float] = None) -> pd.DataFrame:
        """
        Point predictions with prediction intervals.

        Parameters
        ----------
        X : pd.DataFrame or array-like
            New inputs with the training features.

        level : float, optional
            Coverage level; defaults to ``1 - alpha``.

        Returns
        -------
        predictions : pd.DataFrame
            Columns: prediction, lower, upper, width
        """
        self._check_fitted()
        return predict_interval_frame(self.adjustment, self._select_features(X), level)

    def predict_interval(self, X, level: Optional[float] = None) -> List[IntervalResult]:
        """Prediction intervals as ``IntervalResult`` records."""
        self._check_fitted()
        return predict_interval(self.adjustment, self._select_features(X), level)

    def evaluate(
        self,
        X_test,
        y_test,
        level: Optional[float] = None
    ) -> Dict[str, float]:
        """
        Evaluate point accuracy and interval coverage on test data.

        Returns
        -------
        metrics : dict
            Dictionary with keys:
            - mae, rmse: point prediction errors
            - coverage: empirical interval coverage
            - mean_width, median_width, std_width
            - below_fraction, above_fraction
        """
        self._check_fitted()
        y_test = np.asarray(y_test, dtype=np.float64).ravel()
        point, lower, upper = predict_interval_arrays(
            self.adjustment, self._select_features(X_test), level
        )

        metrics = {
            'mae': float(mean_absolute_error(y_test, point)),
            'rmse': float(np.sqrt(mean_squared_error(y_test, point))),
        }
        metrics.update(compute_interval_metrics(y_test, lower, upper))

        return metrics

    def get_calibration_summary(self) -> Dict:
        """Strategy, level, calibration size and stored corrections."""
        self._check_fitted()
        return self.adjustment.metadata()

    def save(self, filepath: str):
        """Save fitted pipeline to disk."""
        with open(filepath, 'wb') as f:
            pickle.dump(self, f)
        if self.verbose:
            print(f"✓ Pipeline saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'Pipeline':
        """Load fitted pipeline from disk."""
        with open(filepath, 'rb') as f:
            pipeline = pickle.load(f)
        if pipeline.verbose:
            print(f"✓ Pipeline loaded from {filepath}")
        return pipeline
