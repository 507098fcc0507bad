"""Exception taxonomy for trial aggregation and inference."""

from __future__ import annotations


class AnalysisError(ValueError):
    """Base class for recoverable analysis failures."""


class InsufficientDataError(AnalysisError):
    """Too few trials or points for the requested statistic."""


class InsufficientTrialsError(InsufficientDataError):
    """Too few trials to split a trial matrix or timestamp set."""


class MissingFieldError(AnalysisError):
    """Expected session data is absent (e.g. no trial matrix for a contrast)."""


class SingularDesignError(AnalysisError):
    """The regression design matrix cannot be inverted."""


class EmptyWindowError(AnalysisError):
    """No time samples fall inside the requested window."""


class InvalidThresholdError(AnalysisError):
    """A session threshold is absent or invalid and defaulting is disabled."""


# Caught at the session/contrast boundary and turned into a logged skip.
RECOVERABLE_ERRORS = (
    InsufficientDataError,
    MissingFieldError,
    SingularDesignError,
    EmptyWindowError,
)


__all__ = [
    "AnalysisError",
    "InsufficientDataError",
    "InsufficientTrialsError",
    "MissingFieldError",
    "SingularDesignError",
    "EmptyWindowError",
    "InvalidThresholdError",
    "RECOVERABLE_ERRORS",
]
