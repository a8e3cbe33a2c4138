"""Save and load calibration artifacts."""

import pickle
from pathlib import Path
from typing import Union


def save_calibration(adjustment, filepath: Union[str, Path], verbose: bool = True) -> None:
    """
    Pickle a calibrated adjustment (and the models it holds) to disk.

    Parameters
    ----------
    adjustment : SplitAdjustment, CVPlusAdjustment or CQRAdjustment
    filepath : str or Path
        Destination pickle file
    verbose : bool, optional (default=True)
        Print confirmation
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'wb') as f:
        pickle.dump(adjustment, f)

    if verbose:
        print(f"✓ Calibration saved to {filepath}")


def load_calibration(filepath: Union[str, Path], verbose: bool = True):
    """Load an adjustment saved with ``save_calibration``."""
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"Calibration file not found: {filepath}")

    with open(filepath, 'rb') as f:
        adjustment = pickle.load(f)

    if verbose:
        print(f"✓ Calibration loaded from {filepath}")
        print(f"  Strategy: {adjustment.strategy}")
        print(f"  Level: {adjustment.level:.3f}")
        print(f"  Calibration samples: {adjustment.n_cal}")

    return adjustment
