"""
Split Conformal Calibration

Residuals of a fixed, already-fitted point model on a held-out calibration
set give two additive offsets. Every interval is ``prediction + [q_low,
q_high]``, so the width is the same for all inputs.

With residual R = y - y_hat and miscoverage alpha:

    q_high = Q(R; alpha / 2)          (conformal upper quantile)
    q_low  = -Q(-R; alpha / 2)        (mirror image for the lower tail)

Assuming exchangeability of calibration and test records,
P(y in [y_hat + q_low, y_hat + q_high]) >= 1 - alpha, whether or not the
model is correct.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import numpy as np

from ..data import as_dataset
from .quantiles import conformal_quantile, conformal_rank, validate_alpha
from .residuals import ResidualSample


@dataclass(frozen=True)
class SplitAdjustment:
    """
    Calibrated split-conformal offsets.

    Attributes
    ----------
    model : FittedModel
        Point model used at calibration time
    alpha : float
        Calibrated miscoverage rate
    q_low, q_high : float
        Offsets added to the point prediction (q_low <= q_high)
    residuals : ResidualSample
        Calibration residuals
    """

    model: Any
    alpha: float
    q_low: float
    q_high: float
    residuals: ResidualSample = field(repr=False)

    strategy = 'split'

    @property
    def level(self) -> float:
        return 1 - self.alpha

    @property
    def n_cal(self) -> int:
        return len(self.residuals)

    @property
    def width(self) -> float:
        return self.q_high - self.q_low

    @property
    def calibrated_alphas(self) -> Tuple[float, ...]:
        return (self.alpha,)

    def intervals(self, X, alpha: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Point prediction and raw bounds for ``X``."""
        point = np.asarray(self.model.predict(X), dtype=np.float64).ravel()
        return point, point + self.q_low, point + self.q_high

    def metadata(self) -> Dict[str, float]:
        return {
            'strategy': self.strategy,
            'alpha': self.alpha,
            'n_cal': self.n_cal,
            'q_low': self.q_low,
            'q_high': self.q_high,
            'width': self.width,
        }


def calibrate_split(
    model,
    cal_data,
    alpha: float = 0.10,
    verbose: bool = False
) -> SplitAdjustment:
    """
    Calibrate split-conformal offsets for a fitted point model.

    Parameters
    ----------
    model : FittedModel
        Object with ``predict(X) -> array``; trained on data disjoint from
        ``cal_data``
    cal_data : Dataset or (X, y)
        Calibration records
    alpha : float, optional (default=0.10)
        Miscoverage rate. Target coverage = 1 - alpha.
    verbose : bool, optional (default=False)
        Print calibration details

    Returns
    -------
    adjustment : SplitAdjustment

    Raises
    ------
    DegenerateCalibration
        If ceil((n_cal + 1)(1 - alpha/2)) > n_cal (e.g. n_cal = 1)
    """
    validate_alpha(alpha)
    cal = as_dataset(cal_data)

    residuals = ResidualSample.from_model(model, cal.X, cal.y)
    n_cal = len(residuals)

    if verbose:
        print(f"\n{'='*60}")
        print("SPLIT CONFORMAL CALIBRATION")
        print(f"{'='*60}")
        print(f"Miscoverage rate α: {alpha:.2f}")
        print(f"Target coverage: {1-alpha:.1%}")
        print(f"Calibration samples: {n_cal}")
        stats = residuals.summary()
        print(f"\nResidual statistics:")
        print(f"  Min:    {stats['min']:.4f}")
        print(f"  Q25:    {stats['q25']:.4f}")
        print(f"  Median: {stats['median']:.4f}")
        print(f"  Q75:    {stats['q75']:.4f}")
        print(f"  Max:    {stats['max']:.4f}")

    q_high = conformal_quantile(residuals.values, alpha / 2)
    q_low = -conformal_quantile(-residuals.values, alpha / 2)

    if verbose:
        k = conformal_rank(n_cal, alpha / 2)
        print(f"\nQuantile calculation:")
        print(f"  k = ⌈(1-α/2)(n_cal+1)⌉ = {k} (out of {n_cal})")
        print(f"  Offsets: [{q_low:.4f}, {q_high:.4f}]")
        print(f"  Interval width: {q_high - q_low:.4f}")

    return SplitAdjustment(
        model=model,
        alpha=float(alpha),
        q_low=float(q_low),
        q_high=float(q_high),
        residuals=residuals,
    )
