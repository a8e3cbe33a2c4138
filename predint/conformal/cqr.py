"""
Conformalized Quantile Regression (CQR)

A quantile model predicts a band [q_lo(x), q_hi(x)] at levels alpha/2 and
1 - alpha/2. On calibration data the conformity score

    E_i = max(q_lo(x_i) - y_i, y_i - q_hi(x_i))

measures how far y_i falls outside the band (negative when inside). With
Q = conformal (1 - alpha) quantile of E, the interval

    [q_lo(x) - Q, q_hi(x) + Q]

keeps the heteroscedastic shape of the quantile model and has the same
finite-sample marginal coverage as split conformal (Romano, Patterson &
Candès, 2019).

Several miscoverage rates can be calibrated at once (``extra_alphas``)
when the quantile model is fit at all the required levels.
"""

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from ..data import as_dataset
from ..exceptions import InvalidArgument, QuantileCrossing
from ..models.base import level_key, predict_quantiles
from .quantiles import conformal_quantile, conformal_rank, validate_alpha

MEDIAN = 0.5


def band_levels(alpha: float) -> Tuple[float, float]:
    """Lower and upper quantile levels for miscoverage ``alpha``."""
    return level_key(alpha / 2), level_key(1 - alpha / 2)


def required_quantiles(alphas: Sequence[float]) -> Tuple[float, ...]:
    """All quantile levels the model must provide, median included."""
    levels = {level_key(MEDIAN)}
    for a in alphas:
        levels.update(band_levels(a))
    return tuple(sorted(levels))


def conformity_scores(lower: np.ndarray, upper: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Signed distance of each outcome outside its predicted band."""
    return np.maximum(lower - y, y - upper)


def _warn_crossing(n_crossed: int, n_total: int, stage: str):
    warnings.warn(
        f"Quantile crossing at {stage}: {n_crossed}/{n_total} inputs have "
        f"lower quantile > upper quantile. Bounds are sorted after correction.",
        QuantileCrossing,
        stacklevel=3,
    )


@dataclass(frozen=True)
class CQRAdjustment:
    """
    Calibrated CQR corrections.

    Attributes
    ----------
    model : QuantileModel
        Quantile model trained on the training partition
    alpha : float
        Primary calibrated miscoverage rate
    corrections : tuple of (alpha, Q)
        Scalar correction per calibrated miscoverage rate
    scores : tuple of (alpha, np.ndarray)
        Calibration conformity scores per miscoverage rate
    """

    model: Any
    alpha: float
    corrections: Tuple[Tuple[float, float], ...]
    scores: Tuple[Tuple[float, np.ndarray], ...] = field(repr=False)

    strategy = 'cqr'

    @property
    def level(self) -> float:
        return 1 - self.alpha

    @property
    def n_cal(self) -> int:
        return len(self.scores[0][1])

    @property
    def calibrated_alphas(self) -> Tuple[float, ...]:
        return tuple(a for a, _ in self.corrections)

    def correction(self, alpha: Optional[float] = None) -> float:
        """Correction Q for a calibrated miscoverage rate."""
        alpha = self.alpha if alpha is None else alpha
        for a, q in self.corrections:
            if level_key(a) == level_key(alpha):
                return q
        raise InvalidArgument(
            f"alpha={alpha} was not calibrated; available: {self.calibrated_alphas}"
        )

    def intervals(self, X, alpha: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Median prediction and corrected quantile bounds for ``X``."""
        q_lo, q_hi = band_levels(alpha)
        preds = predict_quantiles(self.model, X, (q_lo, MEDIAN, q_hi))
        raw_lower, raw_upper = preds[q_lo], preds[q_hi]

        Q = self.correction(alpha)
        lower = raw_lower - Q
        upper = raw_upper + Q

        raw_crossed = raw_lower > raw_upper
        crossed = lower > upper
        if raw_crossed.any() or crossed.any():
            _warn_crossing(int(max(raw_crossed.sum(), crossed.sum())), len(lower), 'prediction')
            lower, upper = np.minimum(lower, upper), np.maximum(lower, upper)

        return preds[level_key(MEDIAN)], lower, upper

    def metadata(self) -> Dict[str, Any]:
        return {
            'strategy': self.strategy,
            'alpha': self.alpha,
            'n_cal': self.n_cal,
            'corrections': dict(self.corrections),
        }


def calibrate_cqr(
    quantile_fit_fn,
    train_data,
    cal_data,
    alpha: float = 0.10,
    extra_alphas: Sequence[float] = (),
    verbose: bool = False
) -> CQRAdjustment:
    """
    Fit a quantile model and calibrate CQR corrections.

    Parameters
    ----------
    quantile_fit_fn : callable
        ``quantile_fit_fn(X, y, quantiles) -> QuantileModel``
    train_data : Dataset or (X, y)
        Records used to fit the quantile model
    cal_data : Dataset or (X, y)
        Held-out calibration records
    alpha : float, optional (default=0.10)
        Primary miscoverage rate
    extra_alphas : sequence of float, optional
        Additional miscoverage rates to calibrate, so ``predict_interval``
        can serve those levels too
    verbose : bool, optional (default=False)
        Print calibration details

    Returns
    -------
    adjustment : CQRAdjustment

    Raises
    ------
    DegenerateCalibration
        Calibration set too small for one of the requested levels
    """
    alphas = sorted({float(a) for a in (alpha, *extra_alphas)})
    for a in alphas:
        validate_alpha(a)

    train = as_dataset(train_data)
    cal = as_dataset(cal_data)
    quantiles = required_quantiles(alphas)

    if verbose:
        print(f"\n{'='*60}")
        print("CONFORMALIZED QUANTILE REGRESSION")
        print(f"{'='*60}")
        print(f"Miscoverage rates α: {', '.join(f'{a:.2f}' for a in alphas)}")
        print(f"Quantile levels: {list(quantiles)}")
        print(f"Training samples: {len(train)}")
        print(f"Calibration samples: {len(cal)}")

    model = quantile_fit_fn(train.X, train.y, list(quantiles))
    preds = predict_quantiles(model, cal.X, quantiles)

    corrections = []
    scores = []
    for a in alphas:
        q_lo, q_hi = band_levels(a)
        lower, upper = preds[q_lo], preds[q_hi]

        n_crossed = int(np.sum(lower > upper))
        if n_crossed:
            _warn_crossing(n_crossed, len(lower), 'calibration')

        s = conformity_scores(lower, upper, cal.y)
        Q = conformal_quantile(s, a)
        s.setflags(write=False)

        corrections.append((a, float(Q)))
        scores.append((a, s))

        if verbose:
            inside = np.mean(s <= 0)
            print(f"\n  α = {a:.2f}: k = {conformal_rank(len(s), a)}, Q = {Q:.4f}")
            print(f"    Raw band coverage on calibration set: {inside:.3f}")

    return CQRAdjustment(
        model=model,
        alpha=float(alpha),
        corrections=tuple(corrections),
        scores=tuple(scores),
    )
