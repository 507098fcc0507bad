"""Peak normalisation, contrast regressions and across-session trends."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..aggregate import mean_trace_peak
from ..batch import BatchResult, run_per_session
from ..config import AnalysisConfig
from ..errors import RECOVERABLE_ERRORS, InsufficientDataError
from ..regression import RegressionResult, fit_line_through, fit_linear
from ..store import HIT, Session
from ..windows import TimeWindow
from .threshold_comparison import session_threshold

logger = logging.getLogger(__name__)

PEAK_COLUMNS = ["contrast", "proportion", "n_trials", "peak", "normalized_peak"]


def normalization_peak(
    session: Session,
    window: TimeWindow | Sequence[float],
    category: str = HIT,
) -> float:
    """Largest mean-trace peak in ``window`` over the complete contrast groups of ``category``."""

    peaks = []
    for group in session.contrast_groups(category).values():
        if not group.complete or group.trial_count == 0:
            continue
        value = mean_trace_peak(group.zall, group.ts, window)
        if np.isfinite(value):
            peaks.append(value)
    if not peaks:
        raise InsufficientDataError(f"{session.label}: no {category} contrast to normalise by")
    peak = float(max(peaks))
    if peak == 0:
        raise InsufficientDataError(f"{session.label}: normalisation peak is zero")
    return peak


def normalized_contrast_peaks(session: Session, config: AnalysisConfig | None = None) -> pd.DataFrame:
    """Mean-trace peak of each hit contrast divided by that of the largest valid contrast.

    Contrasts with fewer than ``min_trials_contrast`` trials are left out.
    """

    config = config or AnalysisConfig()
    rows = []
    for contrast, group in session.contrast_groups(HIT).items():
        if not group.complete or group.trial_count < config.min_trials_contrast:
            logger.debug("%s: contrast %d%% has too few trials (%d)", session.label, contrast, group.trial_count)
            continue
        rows.append(
            {
                "contrast": contrast,
                "proportion": group.proportion,
                "n_trials": group.trial_count,
                "peak": mean_trace_peak(group.zall, group.ts, config.norm_window),
            }
        )
    if not rows:
        raise InsufficientDataError(
            f"{session.label}: no contrast with at least {config.min_trials_contrast} trials"
        )
    df = pd.DataFrame(rows)
    reference = float(df["peak"].iloc[-1])
    if reference == 0 or not np.isfinite(reference):
        raise InsufficientDataError(f"{session.label}: invalid reference peak {reference}")
    df["normalized_peak"] = df["peak"] / reference
    return df[PEAK_COLUMNS]


@dataclass(frozen=True)
class ThresholdLinearY:
    threshold: float
    fit: RegressionResult
    value: float


def threshold_linear_y(session: Session, config: AnalysisConfig | None = None) -> ThresholdLinearY:
    """Linear fit of normalised peak on contrast proportion, read off at the threshold.

    The 0% contrast and contrasts without a finite normalised peak are
    excluded. With exactly two contrasts left the line passes through both
    points and carries no Wald test.
    """

    config = config or AnalysisConfig()
    threshold = session_threshold(session, config)
    peaks = normalized_contrast_peaks(session, config)
    peaks = peaks[peaks["contrast"] > 0]
    finite = np.isfinite(peaks["normalized_peak"].to_numpy())
    if not finite.all():
        logger.warning(
            "%s: no finite peak for contrasts %s. Excluded from the linear fit.",
            session.label,
            peaks.loc[~finite, "contrast"].tolist(),
        )
        peaks = peaks[finite]
    x = peaks["proportion"].to_numpy()
    y = peaks["normalized_peak"].to_numpy()
    if x.size == 2:
        fit = fit_line_through(x, y)
    else:
        fit = fit_linear(x, y, alpha=config.alpha)
    value = float(fit.predict(threshold))
    logger.info("%s: threshold %.3f -> linear Y = %.3f", session.label, threshold, value)
    return ThresholdLinearY(threshold=threshold, fit=fit, value=value)


def session_trend(values: Mapping[int, float] | pd.Series, alpha: float = 0.05) -> RegressionResult:
    """Regress per-session values on session index, dropping NaN entries."""

    series = pd.Series(values, dtype=np.float64).dropna().sort_index()
    return fit_linear(series.index.to_numpy(dtype=np.float64), series.to_numpy(), alpha=alpha)


@dataclass(frozen=True)
class TrendReport:
    values: pd.Series
    mean: float
    fit: Optional[RegressionResult]
    batch: BatchResult[ThresholdLinearY]


def threshold_trend_across_sessions(
    sessions: Sequence[Session], config: AnalysisConfig | None = None
) -> TrendReport:
    """Threshold linear Y per session and its trend across sessions."""

    config = config or AnalysisConfig()
    batch = run_per_session(sessions, lambda s: threshold_linear_y(s, config), label="threshold linear Y")
    values = pd.Series({index: r.value for index, r in batch.results.items()}, dtype=np.float64)
    fit = None
    try:
        fit = session_trend(values, alpha=config.alpha)
        logger.info("Trend across sessions: slope = %.4f, p = %.4f", fit.slope, fit.p_value)
    except RECOVERABLE_ERRORS as exc:
        logger.warning("No trend across sessions (%s)", exc)
    return TrendReport(
        values=values,
        mean=float(values.mean()) if not values.empty else np.nan,
        fit=fit,
        batch=batch,
    )


__all__ = [
    "PEAK_COLUMNS",
    "ThresholdLinearY",
    "TrendReport",
    "normalization_peak",
    "normalized_contrast_peaks",
    "session_trend",
    "threshold_linear_y",
    "threshold_trend_across_sessions",
]
