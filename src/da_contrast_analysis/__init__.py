"""Contrast-conditioned trial aggregation and inference for photometry DA data."""

from .aggregate import AggregateStat, aggregate, cs_us_ratio, mean_sem, smooth
from .batch import BatchResult, run_per_session
from .config import AnalysisConfig, configure_logging, load_analysis_config, load_config
from .errors import (
    RECOVERABLE_ERRORS,
    AnalysisError,
    EmptyWindowError,
    InsufficientDataError,
    InsufficientTrialsError,
    InvalidThresholdError,
    MissingFieldError,
    SingularDesignError,
)
from .regression import RegressionResult, fit_line_through, fit_linear, fit_normal
from .splits import match_rows_to_timestamps, split_by_median_time, split_by_order, split_by_threshold
from .store import ContrastTrialGroup, Session, TrialKey, load_sessions_from_manifest
from .windows import TimeWindow, extract_window, peak_in_window, peak_records

__all__ = [
    "AggregateStat",
    "aggregate",
    "cs_us_ratio",
    "mean_sem",
    "smooth",
    "BatchResult",
    "run_per_session",
    "AnalysisConfig",
    "configure_logging",
    "load_analysis_config",
    "load_config",
    "RECOVERABLE_ERRORS",
    "AnalysisError",
    "EmptyWindowError",
    "InsufficientDataError",
    "InsufficientTrialsError",
    "InvalidThresholdError",
    "MissingFieldError",
    "SingularDesignError",
    "RegressionResult",
    "fit_line_through",
    "fit_linear",
    "fit_normal",
    "match_rows_to_timestamps",
    "split_by_median_time",
    "split_by_order",
    "split_by_threshold",
    "ContrastTrialGroup",
    "Session",
    "TrialKey",
    "load_sessions_from_manifest",
    "TimeWindow",
    "extract_window",
    "peak_in_window",
    "peak_records",
]
