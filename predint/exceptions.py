"""
Error and Warning Types for predint

All calibration-time failures are raised to the caller. A coverage
guarantee that silently fails is worse than a visible error, so none of
these are downgraded to warnings.

The error classes also derive from ``ValueError`` so existing
``except ValueError`` handlers keep working.
"""


class PredintError(Exception):
    """Base class for all predint errors."""


class InvalidArgument(PredintError, ValueError):
    """Malformed argument: empty sample, quantile level outside [0, 1], ..."""


class InvalidConfiguration(PredintError, ValueError):
    """Degenerate fold layout or otherwise unusable strategy configuration."""


class LevelMismatch(InvalidConfiguration):
    """Requested level is not covered by the stored calibration."""


class DegenerateCalibration(PredintError, ValueError):
    """
    Calibration sample too small for the requested level.

    Raised when the finite-sample conformal rank
    ``ceil((n + 1) * (1 - alpha))`` exceeds the number of scores ``n``,
    i.e. the bound would be +infinity.
    """


class QuantileCrossing(UserWarning):
    """Quantile model produced lower > upper; bounds were sorted."""


class UnverifiedCoverage(UserWarning):
    """CV+ folds do not partition the data; the coverage proof does not apply."""
