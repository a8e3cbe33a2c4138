"""
Predictor Façade

Applies a calibrated adjustment (split, CV+ or CQR) to new inputs. The
strategy is whatever produced the adjustment; this module only resolves
the requested level and enforces the output contract
``lower <= point <= upper``.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from ..exceptions import InvalidArgument, LevelMismatch

# Tolerance when comparing requested and calibrated levels
LEVEL_TOL = 1e-9


@dataclass(frozen=True)
class IntervalResult:
    """Point prediction with its prediction interval."""

    point_prediction: float
    lower_bound: float
    upper_bound: float

    @property
    def width(self) -> float:
        return self.upper_bound - self.lower_bound

    def contains(self, y: float) -> bool:
        return self.lower_bound <= y <= self.upper_bound


def resolve_alpha(adjustment, level: Optional[float] = None) -> float:
    """
    Pick the calibrated miscoverage rate that serves ``level``.

    ``None`` means the adjustment's own level. A lower level is served by
    the tightest calibrated level at or above it (conservative). A higher
    level cannot be served without recalibrating.

    Raises
    ------
    LevelMismatch
        If ``level`` exceeds every calibrated level
    """
    if level is None:
        return adjustment.alpha

    if not 0 < level < 1:
        raise InvalidArgument(f"level must be in (0,1), got {level}")

    requested_alpha = 1 - level
    candidates = [
        a for a in adjustment.calibrated_alphas
        if a <= requested_alpha + LEVEL_TOL
    ]
    if not candidates:
        calibrated = ', '.join(f'{1 - a:.3f}' for a in adjustment.calibrated_alphas)
        raise LevelMismatch(
            f"Requested level {level:.3f} exceeds the calibrated level(s) "
            f"[{calibrated}] of this {adjustment.strategy} adjustment. "
            f"Recalibrate at the higher level."
        )
    return max(candidates)


def predict_interval_arrays(
    adjustment,
    new_inputs,
    level: Optional[float] = None
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorized prediction intervals.

    Parameters
    ----------
    adjustment : SplitAdjustment, CVPlusAdjustment or CQRAdjustment
        Calibration artifact
    new_inputs : array-like or pd.DataFrame, shape (m, p)
        Inputs in the format the wrapped model expects
    level : float, optional
        Requested coverage level; defaults to the calibrated level

    Returns
    -------
    point, lower, upper : np.ndarray, shape (m,)
    """
    alpha = resolve_alpha(adjustment, level)
    point, lower, upper = adjustment.intervals(new_inputs, alpha)

    # Widening never reduces coverage
    lower = np.minimum(lower, point)
    upper = np.maximum(upper, point)

    return point, lower, upper


def predict_interval(
    adjustment,
    new_inputs,
    level: Optional[float] = None
) -> List[IntervalResult]:
    """
    Prediction intervals for new inputs, one ``IntervalResult`` per row.

    Examples
    --------
    >>> adj = calibrate_split(model, (X_cal, y_cal), alpha=0.1)
    >>> results = predict_interval(adj, X_new)
    >>> results[0].lower_bound, results[0].upper_bound
    """
    point, lower, upper = predict_interval_arrays(adjustment, new_inputs, level)
    return [
        IntervalResult(float(p), float(lo), float(hi))
        for p, lo, hi in zip(point, lower, upper)
    ]


def predict_interval_frame(
    adjustment,
    new_inputs,
    level: Optional[float] = None
) -> pd.DataFrame:
    """
    Prediction intervals as a DataFrame.

    Columns: prediction, lower, upper, width. Keeps the index of
    ``new_inputs`` when it is a DataFrame.
    """
    point, lower, upper = predict_interval_arrays(adjustment, new_inputs, level)
    index = new_inputs.index if isinstance(new_inputs, pd.DataFrame) else None
    return pd.DataFrame({
        'prediction': point,
        'lower': lower,
        'upper': upper,
        'width': upper - lower,
    }, index=index)
