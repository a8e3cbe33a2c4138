"""
Datasets, Train/Calibration Splits and Fold Assignments

Small containers and helpers for moving (features, outcome) data between
the fitters and the conformal strategies.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold

from .exceptions import InvalidArgument, InvalidConfiguration


@dataclass(frozen=True)
class Dataset:
    """
    Ordered collection of (feature vector, scalar outcome) records.

    Parameters
    ----------
    X : np.ndarray or pd.DataFrame, shape (n, p)
        Feature matrix. DataFrames are kept as-is so fitted models see
        their column names.
    y : np.ndarray, shape (n,)
        Real-valued outcomes.

    Examples
    --------
    >>> data = Dataset.from_frame(df, target_col='y')
    >>> train, cal = train_calibration_split(data, calibration_fraction=0.5)
    """

    X: Union[np.ndarray, pd.DataFrame]
    y: np.ndarray

    def __post_init__(self):
        X = self.X
        if not isinstance(X, pd.DataFrame):
            X = np.asarray(X, dtype=np.float64)
            if X.ndim == 1:
                X = X.reshape(-1, 1)
            if X.ndim != 2:
                raise InvalidArgument(
                    f"X must be 2-dimensional, got shape {X.shape}"
                )

        y = np.asarray(self.y, dtype=np.float64)
        if y.ndim != 1:
            y = y.ravel()

        if len(y) == 0:
            raise InvalidArgument("Dataset must contain at least one record")
        if len(X) != len(y):
            raise InvalidArgument(
                f"Length mismatch: X ({len(X)}) vs y ({len(y)})"
            )
        if not np.all(np.isfinite(y)):
            raise InvalidArgument("y must contain only finite values")

        object.__setattr__(self, 'X', X)
        object.__setattr__(self, 'y', y)

    def __len__(self) -> int:
        return len(self.y)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, target_col: str) -> 'Dataset':
        """Build a dataset from a DataFrame holding features + target."""
        if target_col not in df.columns:
            raise InvalidArgument(f"DataFrame missing target column '{target_col}'")
        return cls(X=df.drop(columns=[target_col]), y=df[target_col].to_numpy())

    def subset(self, idx: np.ndarray) -> 'Dataset':
        """Return the records at positions ``idx``."""
        return Dataset(X=take_rows(self.X, idx), y=self.y[idx])


def take_rows(X: Union[np.ndarray, pd.DataFrame], idx: np.ndarray):
    """Positional row selection for arrays and DataFrames."""
    if isinstance(X, pd.DataFrame):
        return X.iloc[idx]
    return X[idx]


def as_dataset(data) -> Dataset:
    """Accept a ``Dataset`` or an ``(X, y)`` tuple."""
    if isinstance(data, Dataset):
        return data
    if isinstance(data, tuple) and len(data) == 2:
        return Dataset(X=data[0], y=data[1])
    raise InvalidArgument(
        f"Expected Dataset or (X, y) tuple, got {type(data).__name__}"
    )


def train_calibration_split(
    data,
    calibration_fraction: float = 0.5,
    random_seed: Optional[int] = 42
) -> Tuple[Dataset, Dataset]:
    """
    Randomly split a dataset into disjoint training and calibration parts.

    Parameters
    ----------
    data : Dataset or (X, y)
        Records to split
    calibration_fraction : float, optional (default=0.5)
        Fraction of records reserved for calibration, in (0, 1)
    random_seed : int, optional (default=42)
        Seed for the shuffle

    Returns
    -------
    train, cal : Dataset
    """
    data = as_dataset(data)
    if not 0 < calibration_fraction < 1:
        raise InvalidArgument(
            f"calibration_fraction must be in (0,1), got {calibration_fraction}"
        )

    n = len(data)
    n_cal = int(n * calibration_fraction)
    if n_cal < 1 or n_cal >= n:
        raise InvalidArgument(
            f"Cannot split {n} records with calibration_fraction="
            f"{calibration_fraction}: both parts need at least one record"
        )

    rng = np.random.default_rng(random_seed)
    perm = rng.permutation(n)

    return data.subset(perm[n_cal:]), data.subset(perm[:n_cal])


Fold = Tuple[np.ndarray, np.ndarray]


def resolve_folds(
    folds,
    n: int,
    X=None,
    random_seed: Optional[int] = 42
) -> Tuple[List[Fold], bool]:
    """
    Normalize a fold assignment into ``(train_idx, test_idx)`` pairs.

    Parameters
    ----------
    folds : int, sequence, or splitter
        - int K: shuffled K-fold partition
        - sequence of index arrays: held-out records per fold; the training
          part is the complement
        - sequence of (train_idx, test_idx) pairs
        - object with ``split(X)`` (scikit-learn splitter)
    n : int
        Number of records
    X : array-like, optional
        Passed to ``folds.split`` for splitter objects
    random_seed : int, optional (default=42)
        Shuffle seed used when ``folds`` is an int

    Returns
    -------
    fold_pairs : list of (train_idx, test_idx)
    is_partition : bool
        True when the held-out sets are disjoint, cover every record and
        each training part is exactly the complement of its held-out set.

    Raises
    ------
    InvalidConfiguration
        Fewer than 2 folds, an empty held-out set or an empty training set
    """
    if isinstance(folds, (int, np.integer)):
        if folds < 2:
            raise InvalidConfiguration(f"Need at least 2 folds, got {folds}")
        if folds > n:
            raise InvalidConfiguration(
                f"Cannot build {folds} folds from {n} records"
            )
        splitter = KFold(n_splits=int(folds), shuffle=True, random_state=random_seed)
        pairs = list(splitter.split(np.arange(n)))
    elif hasattr(folds, 'split'):
        pairs = list(folds.split(X if X is not None else np.arange(n)))
    else:
        pairs = []
        for fold in folds:
            if _is_index_pair(fold):
                train_idx, test_idx = fold
            else:
                test_idx = np.atleast_1d(np.asarray(fold))
                train_idx = np.setdiff1d(np.arange(n), test_idx)
            pairs.append((train_idx, test_idx))

    pairs = [
        (np.asarray(tr, dtype=np.intp), np.asarray(te, dtype=np.intp))
        for tr, te in pairs
    ]

    if len(pairs) < 2:
        raise InvalidConfiguration(f"Need at least 2 folds, got {len(pairs)}")

    for k, (train_idx, test_idx) in enumerate(pairs):
        if train_idx.ndim != 1 or test_idx.ndim != 1:
            raise InvalidConfiguration(f"Fold {k} indices must be 1-dimensional")
        if len(test_idx) == 0:
            raise InvalidConfiguration(f"Fold {k} has no held-out records")
        if len(train_idx) == 0:
            raise InvalidConfiguration(f"Fold {k} has no training records")
        for part, idx in (('held-out', test_idx), ('training', train_idx)):
            if idx.min() < 0 or idx.max() >= n:
                raise InvalidConfiguration(
                    f"Fold {k} {part} indices reference records outside [0, {n})"
                )

    return pairs, _is_partition(pairs, n)


def _is_index_pair(fold) -> bool:
    """A (train_idx, test_idx) pair, as opposed to a held-out set of two records."""
    return (
        isinstance(fold, (tuple, list))
        and len(fold) == 2
        and all(np.ndim(part) == 1 for part in fold)
    )


def _is_partition(pairs: Sequence[Fold], n: int) -> bool:
    all_test = np.concatenate([te for _, te in pairs])
    if len(all_test) != n or len(np.unique(all_test)) != n:
        return False
    for train_idx, test_idx in pairs:
        complement = np.setdiff1d(np.arange(n), test_idx)
        if not np.array_equal(np.sort(train_idx), complement):
            return False
    return True
