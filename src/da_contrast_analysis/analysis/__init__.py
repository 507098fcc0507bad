"""Session-level analyses built on the trial store, splits and aggregates."""

from .comparisons import (
    CategoryTraces,
    ContrastTrace,
    ReactionTimePeaks,
    category_traces,
    contrast_across_sessions,
    contrast_trace,
    reaction_time_vs_peak,
)
from .csus import CsUsReport, combine_sessions, csus_ratio_by_contrast, session_ratios, trial_ratios
from .early_late import (
    EarlyLateComparison,
    EarlyLateHitRates,
    EarlyLateSession,
    EarlyLateTraces,
    PeriodTrace,
    early_late_across_sessions,
    early_late_session,
    early_late_traces,
    hit_rate_table,
    order_split_across_sessions,
    order_split_contrast,
)
from .peak_times import PeakTimeDistribution, PeakTimeReport, SessionPeakTimes, peak_time_distributions, session_peak_times
from .threshold_comparison import (
    ThresholdComparison,
    ThresholdReport,
    compare_session_threshold,
    compare_threshold_across_sessions,
    session_threshold,
)
from .trends import (
    ThresholdLinearY,
    TrendReport,
    normalization_peak,
    normalized_contrast_peaks,
    session_trend,
    threshold_linear_y,
    threshold_trend_across_sessions,
)

__all__ = [
    "CategoryTraces",
    "ContrastTrace",
    "ReactionTimePeaks",
    "category_traces",
    "contrast_across_sessions",
    "contrast_trace",
    "reaction_time_vs_peak",
    "CsUsReport",
    "combine_sessions",
    "csus_ratio_by_contrast",
    "session_ratios",
    "trial_ratios",
    "EarlyLateComparison",
    "EarlyLateHitRates",
    "EarlyLateSession",
    "EarlyLateTraces",
    "PeriodTrace",
    "early_late_across_sessions",
    "early_late_session",
    "early_late_traces",
    "hit_rate_table",
    "order_split_across_sessions",
    "order_split_contrast",
    "PeakTimeDistribution",
    "PeakTimeReport",
    "SessionPeakTimes",
    "peak_time_distributions",
    "session_peak_times",
    "ThresholdComparison",
    "ThresholdReport",
    "compare_session_threshold",
    "compare_threshold_across_sessions",
    "session_threshold",
    "ThresholdLinearY",
    "TrendReport",
    "normalization_peak",
    "normalized_contrast_peaks",
    "session_trend",
    "threshold_linear_y",
    "threshold_trend_across_sessions",
]
