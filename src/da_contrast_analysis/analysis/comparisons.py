"""Hit/miss/false-alarm traces, single-contrast traces and reaction-time relations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..aggregate import AggregateStat, aggregate
from ..batch import BatchResult, run_per_session
from ..config import AnalysisConfig
from ..errors import RECOVERABLE_ERRORS, MissingFieldError
from ..regression import RegressionResult, fit_linear
from ..store import FALSE_ALARM, HIT, MISS, Session
from ..windows import peak_records
from .trends import normalization_peak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryTraces:
    session_index: int
    ts: np.ndarray
    hit: AggregateStat
    miss: AggregateStat
    false_alarm: Optional[AggregateStat]


def category_traces(
    session: Session,
    config: AnalysisConfig | None = None,
    smooth_window: int | None = None,
) -> CategoryTraces:
    """Mean/SEM of all hit, miss and false-alarm trials of a session.

    Hit and miss trials are required. False alarms are optional and
    ``None`` when the session has none.
    """

    config = config or AnalysisConfig()
    window = smooth_window or config.smooth_window
    hit = session.lookup(HIT).unwrap()
    miss = session.lookup(MISS).unwrap()
    false_alarm = None
    fa_lookup = session.lookup(FALSE_ALARM)
    if fa_lookup.ok and fa_lookup.value.trial_count:
        false_alarm = aggregate(fa_lookup.value.zall, window)
    else:
        logger.info("%s: no false-alarm trials", session.label)
    return CategoryTraces(
        session_index=session.index,
        ts=hit.ts,
        hit=aggregate(hit.zall, window),
        miss=aggregate(miss.zall, window),
        false_alarm=false_alarm,
    )


@dataclass(frozen=True)
class ContrastTrace:
    session_index: int
    contrast: int
    ts: np.ndarray
    stat: AggregateStat
    normalization: float

    @property
    def n_trials(self) -> int:
        return self.stat.n_trials


def contrast_trace(
    session: Session, contrast: int, config: AnalysisConfig | None = None, normalize: bool = True
) -> ContrastTrace:
    config = config or AnalysisConfig()
    group = session.lookup(HIT, contrast).unwrap()
    stat = aggregate(group.zall, config.smooth_window)
    norm = 1.0
    if normalize:
        norm = normalization_peak(session, config.norm_window)
        stat = stat.scaled(norm)
    return ContrastTrace(session_index=session.index, contrast=contrast, ts=group.ts, stat=stat, normalization=norm)


def contrast_across_sessions(
    sessions: Sequence[Session],
    contrast: int,
    config: AnalysisConfig | None = None,
    normalize: bool = True,
) -> BatchResult[ContrastTrace]:
    """One contrast's hit traces in every session that recorded it."""

    config = config or AnalysisConfig()
    return run_per_session(
        sessions, lambda s: contrast_trace(s, contrast, config, normalize), label=f"contrast {contrast}% traces"
    )


@dataclass(frozen=True)
class ReactionTimePeaks:
    session_index: int
    reaction_times_ms: np.ndarray
    peaks: np.ndarray
    peak_times: np.ndarray
    fit: Optional[RegressionResult]
    time_fit: Optional[RegressionResult]


def _fit_against_reaction_time(
    reaction_times: np.ndarray, values: np.ndarray, alpha: float, label: str
) -> Optional[RegressionResult]:
    valid = np.isfinite(values) & np.isfinite(reaction_times)
    try:
        return fit_linear(reaction_times[valid], values[valid], alpha=alpha)
    except RECOVERABLE_ERRORS as exc:
        logger.warning("%s: no reaction-time fit (%s)", label, exc)
        return None


def reaction_time_vs_peak(session: Session, config: AnalysisConfig | None = None) -> ReactionTimePeaks:
    """Pair every hit trial's reaction time with its CS-window peak and peak time.

    ``fit`` regresses the peak value on reaction time and ``time_fit`` the
    time of the peak.
    """

    config = config or AnalysisConfig()
    hit = session.lookup(HIT).unwrap()
    reaction_times = session.behavior.reaction_times_ms
    if reaction_times is None:
        raise MissingFieldError(f"{session.label}: no reaction times")
    if reaction_times.shape[0] != hit.trial_count:
        raise MissingFieldError(
            f"{session.label}: {reaction_times.shape[0]} reaction times for {hit.trial_count} hit trials"
        )
    record = peak_records(hit.zall, hit.ts, config.cs_peak_window)
    return ReactionTimePeaks(
        session_index=session.index,
        reaction_times_ms=np.array(reaction_times),
        peaks=record.values,
        peak_times=record.times,
        fit=_fit_against_reaction_time(reaction_times, record.values, config.alpha, session.label),
        time_fit=_fit_against_reaction_time(reaction_times, record.times, config.alpha, f"{session.label} peak times"),
    )


__all__ = [
    "CategoryTraces",
    "ContrastTrace",
    "ReactionTimePeaks",
    "category_traces",
    "contrast_across_sessions",
    "contrast_trace",
    "reaction_time_vs_peak",
]
