"""
CV+ Calibration (cross-validation conformal)

Every training record gets an out-of-fold absolute residual |R_i| from the
model mu_{-k(i)} that never saw it. For a new input x the interval is

    lower = floor(alpha (n + 1))-th smallest of  mu_{-k(i)}(x) - |R_i|
    upper = ceil((1 - alpha)(n + 1))-th smallest of  mu_{-k(i)}(x) + |R_i|

over all n residuals (Barber et al., 2021, "Predictive inference with the
jackknife+"). All records are used both for fitting and calibration. The
guarantee is P(y in C(x)) >= 1 - 2 alpha for K-fold partitions and is close
to 1 - alpha in practice. It is only proven for partitions; other
resampling schemes are accepted with an ``UnverifiedCoverage`` warning.

Fold models are independent, so they can be fit concurrently (``n_jobs``).
Each task writes only to its own fold slot and the residuals are
aggregated once all folds have finished.
"""

import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..data import as_dataset, resolve_folds, take_rows
from ..exceptions import DegenerateCalibration, InvalidArgument, UnverifiedCoverage
from ..models.base import as_point_fitter
from .quantiles import conformal_rank, minimum_calibration_size, validate_alpha

# Max entries per (records x inputs) working array in CV+ predictions (~32 MB)
BLOCK_ELEMENTS = 2 ** 22


@dataclass(frozen=True)
class FoldResult:
    """Model fit on one fold's training part and its held-out residuals."""

    fold: int
    model: Any
    test_idx: np.ndarray
    residuals: np.ndarray


@dataclass(frozen=True)
class CVPlusAdjustment:
    """
    Calibrated CV+ artifact.

    Attributes
    ----------
    fold_models : tuple
        One fitted model per fold
    alpha : float
        Calibrated miscoverage rate
    fold_of_residual : np.ndarray, shape (n,)
        Index into ``fold_models`` of the model that produced each residual
    abs_residuals : np.ndarray, shape (n,)
        Out-of-fold absolute residuals
    coverage_verified : bool
        False when the folds were not a partition of the training records
    """

    fold_models: Tuple[Any, ...]
    alpha: float
    fold_of_residual: np.ndarray = field(repr=False)
    abs_residuals: np.ndarray = field(repr=False)
    coverage_verified: bool = True

    strategy = 'cv+'

    @property
    def level(self) -> float:
        return 1 - self.alpha

    @property
    def n_folds(self) -> int:
        return len(self.fold_models)

    @property
    def n_cal(self) -> int:
        return len(self.abs_residuals)

    @property
    def calibrated_alphas(self) -> Tuple[float, ...]:
        return (self.alpha,)

    def fold_predictions(self, X) -> np.ndarray:
        """Predictions of every fold model, shape (K, m)."""
        return np.vstack([
            np.asarray(m.predict(X), dtype=np.float64).ravel()
            for m in self.fold_models
        ])

    def intervals(self, X, alpha: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Point prediction (mean over folds) and CV+ bounds for ``X``."""
        fold_preds = self.fold_predictions(X)
        point = fold_preds.mean(axis=0)

        n = self.n_cal
        m = fold_preds.shape[1]
        k_high = conformal_rank(n, alpha)
        k_low = n + 1 - k_high  # floor(alpha (n + 1))

        r = self.abs_residuals[:, None]
        lower = np.empty(m)
        upper = np.empty(m)

        # Working arrays are (n, block); cap their size for large n * m
        block = max(1, BLOCK_ELEMENTS // n)
        for start in range(0, m, block):
            cols = slice(start, start + block)
            # prediction of the model that held record i out, shifted by |R_i|
            per_record = fold_preds[self.fold_of_residual, cols]
            lower[cols] = np.partition(per_record - r, k_low - 1, axis=0)[k_low - 1]
            upper[cols] = np.partition(per_record + r, k_high - 1, axis=0)[k_high - 1]

        return point, lower, upper

    def metadata(self) -> Dict[str, Any]:
        return {
            'strategy': self.strategy,
            'alpha': self.alpha,
            'n_cal': self.n_cal,
            'n_folds': self.n_folds,
            'coverage_verified': self.coverage_verified,
            'median_abs_residual': float(np.median(self.abs_residuals)),
        }


def _fit_fold(fit_fn, train, fold: int, train_idx: np.ndarray, test_idx: np.ndarray) -> FoldResult:
    model = fit_fn(take_rows(train.X, train_idx), train.y[train_idx])
    y_hat = np.asarray(model.predict(take_rows(train.X, test_idx)), dtype=np.float64).ravel()
    residuals = np.abs(train.y[test_idx] - y_hat)
    return FoldResult(fold=fold, model=model, test_idx=test_idx, residuals=residuals)


def calibrate_cv_plus(
    fit_fn,
    train_data,
    folds=10,
    alpha: float = 0.10,
    n_jobs: Optional[int] = None,
    random_seed: Optional[int] = 42,
    verbose: bool = False
) -> CVPlusAdjustment:
    """
    Fit one model per fold and calibrate CV+ intervals.

    Parameters
    ----------
    fit_fn : callable or scikit-learn regressor
        ``fit_fn(X, y) -> FittedModel``; estimators are cloned per fold
    train_data : Dataset or (X, y)
        Training records (also used for calibration)
    folds : int, sequence or splitter, optional (default=10)
        Fold assignment, see ``predint.data.resolve_folds``
    alpha : float, optional (default=0.10)
        Miscoverage rate
    n_jobs : int, optional (default=None)
        Number of folds fit concurrently. None or 1 fits sequentially.
    random_seed : int, optional (default=42)
        Shuffle seed when ``folds`` is an int
    verbose : bool, optional (default=False)
        Print calibration details

    Returns
    -------
    adjustment : CVPlusAdjustment

    Raises
    ------
    InvalidConfiguration
        Fewer than 2 folds or an empty fold
    DegenerateCalibration
        Too few out-of-fold residuals for the requested level
    """
    validate_alpha(alpha)
    train = as_dataset(train_data)
    fit_fn = as_point_fitter(fit_fn)

    fold_pairs, is_partition = resolve_folds(
        folds, len(train), X=train.X, random_seed=random_seed
    )

    n_pairs = sum(len(te) for _, te in fold_pairs)
    if conformal_rank(n_pairs, alpha) > n_pairs:
        raise DegenerateCalibration(
            f"{n_pairs} out-of-fold residuals are too few for level "
            f"{1 - alpha:.3f}. Need at least {minimum_calibration_size(alpha)}."
        )

    if not is_partition:
        warnings.warn(
            "CV+ folds do not partition the training records (overlapping or "
            "missing held-out sets). The coverage guarantee is only proven for "
            "K-fold partitions; treat the reported level as unverified.",
            UnverifiedCoverage,
            stacklevel=2,
        )

    if verbose:
        print(f"\n{'='*60}")
        print("CV+ CALIBRATION")
        print(f"{'='*60}")
        print(f"Miscoverage rate α: {alpha:.2f}")
        print(f"Target coverage: {1-alpha:.1%} (guaranteed >= {1-2*alpha:.1%})")
        print(f"Training samples: {len(train)}")
        print(f"Folds: {len(fold_pairs)} (partition: {is_partition})")

    # One slot per fold; filled independently, aggregated below
    results: List[Optional[FoldResult]] = [None] * len(fold_pairs)

    if n_jobs is not None and n_jobs > 1:
        with ThreadPoolExecutor(max_workers=min(n_jobs, len(fold_pairs))) as executor:
            futures = {
                executor.submit(_fit_fold, fit_fn, train, k, tr, te): k
                for k, (tr, te) in enumerate(fold_pairs)
            }
            for future, k in futures.items():
                results[k] = future.result()
    else:
        for k, (tr, te) in enumerate(fold_pairs):
            results[k] = _fit_fold(fit_fn, train, k, tr, te)
            if verbose:
                print(f"  Fitted fold {k + 1}/{len(fold_pairs)} "
                      f"({len(tr)} train, {len(te)} held out)")

    fold_of_residual = np.concatenate([
        np.full(len(res.residuals), res.fold, dtype=np.intp) for res in results
    ])
    abs_residuals = np.concatenate([res.residuals for res in results])
    if not np.all(np.isfinite(abs_residuals)):
        raise InvalidArgument("Fold models produced non-finite out-of-fold predictions")
    fold_of_residual.setflags(write=False)
    abs_residuals.setflags(write=False)

    if verbose:
        print(f"\n✓ {len(abs_residuals)} out-of-fold residuals collected")
        print(f"  Median |R|: {np.median(abs_residuals):.4f}")
        print(f"  k = ⌈(1-α)(n+1)⌉ = {conformal_rank(len(abs_residuals), alpha)}")

    return CVPlusAdjustment(
        fold_models=tuple(res.model for res in results),
        alpha=float(alpha),
        fold_of_residual=fold_of_residual,
        abs_residuals=abs_residuals,
        coverage_verified=is_partition,
    )
